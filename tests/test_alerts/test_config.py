"""Tests for AlertConfig and service wiring."""

from datetime import timedelta
from unittest.mock import AsyncMock

from prometheus_client import CollectorRegistry

from src.alerts.channels import CircuitBreaker, UnconfiguredSender
from src.alerts.config import AlertConfig
from src.alerts.service import create_alert_service
from src.config.settings import Settings
from src.observability.metrics import MetricsCollector


class TestAlertConfig:
    def test_defaults(self):
        config = AlertConfig()
        assert config.bucket_width_ms == 300_000
        assert config.cooldown == timedelta(hours=1)
        assert config.lock_ttl == timedelta(minutes=10)
        assert config.job_type == "ALERT_EVALUATION"
        assert config.skip_already_sent is True

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ALERTS_COOLDOWN_MINUTES", "15")
        monkeypatch.setenv("ALERTS_LOCK_TTL_MINUTES", "30")
        config = AlertConfig()
        assert config.cooldown == timedelta(minutes=15)
        assert config.lock_ttl == timedelta(minutes=30)


class TestCreateAlertService:
    def test_wires_unconfigured_sender(self):
        service = create_alert_service(
            AsyncMock(),
            settings=Settings(resend_api_key=None),
            config=AlertConfig(),
            metrics=MetricsCollector(registry=CollectorRegistry()),
        )
        assert isinstance(service.sender, UnconfiguredSender)

    def test_wires_resend_sender(self):
        service = create_alert_service(
            AsyncMock(),
            settings=Settings(resend_api_key="re_key"),
            config=AlertConfig(),
            metrics=MetricsCollector(registry=CollectorRegistry()),
        )
        assert isinstance(service.sender, CircuitBreaker)
        assert service.sender.name == "resend"
