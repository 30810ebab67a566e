"""Shared fixtures for API tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.alerts.repository import AlertEventRepository
from src.alerts.schemas import Alert, AlertEvent, AlertEventDetail, EvaluationResult
from src.alerts.service import AlertEvaluationService
from src.api.app import create_app
from src.api.auth import verify_api_key
from src.api.dependencies import (
    get_alert_service,
    get_database,
    get_event_repository,
    get_optional_database,
)
from src.config.settings import get_settings


def _make_event(
    event_id: str = "evt-1",
    alert_id: str = "alert-1",
    status: str = "SENT",
    **kwargs,
) -> AlertEventDetail:
    """Helper to create a joined AlertEventDetail with sensible defaults."""
    ts = datetime(2026, 3, 2, 10, 30, 0, tzinfo=timezone.utc)
    event = AlertEvent(
        event_id=event_id,
        alert_id=alert_id,
        triggered_at=kwargs.pop("triggered_at", ts),
        time_bucket=kwargs.pop("time_bucket", 5_906_802),
        measured_value=kwargs.pop("measured_value", 12.5),
        status=status,
        sent_at=kwargs.pop("sent_at", ts if status == "SENT" else None),
        created_at=kwargs.pop("created_at", ts),
        error_message=kwargs.pop("error_message", None),
    )
    alert = Alert(
        alert_id=alert_id,
        user_id=kwargs.pop("user_id", "user-1"),
        ticker_id=kwargs.pop("ticker_id", "ticker-1"),
        alert_type=kwargs.pop("alert_type", "PRICE_ABOVE"),
        price_above=kwargs.pop("price_above", 10.0),
    )
    return AlertEventDetail(
        event=event,
        alert=alert,
        user_email=kwargs.pop("user_email", "owner@example.com"),
        ticker_symbol=kwargs.pop("ticker_symbol", "ABCD"),
        ticker_name=kwargs.pop("ticker_name", "ABCD Holdings Inc."),
    )


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Settings are read per request; let tests change env vars."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mock_alert_service():
    """Mock AlertEvaluationService."""
    service = AsyncMock(spec=AlertEvaluationService)
    service.run_evaluation.return_value = EvaluationResult(
        evaluated=3, triggered=1, sent=1, failed=0,
    )
    return service


@pytest.fixture
def mock_event_repo():
    """Mock AlertEventRepository."""
    repo = AsyncMock(spec=AlertEventRepository)
    repo.list_events.return_value = []
    repo.count_events.return_value = 0
    return repo


@pytest.fixture
def mock_db():
    """Mock Database."""
    db = AsyncMock()
    db.health_check.return_value = True
    return db


@pytest.fixture
def app(mock_alert_service, mock_event_repo, mock_db):
    app = create_app()
    app.dependency_overrides[get_alert_service] = lambda: mock_alert_service
    app.dependency_overrides[get_event_repository] = lambda: mock_event_repo
    app.dependency_overrides[get_database] = lambda: mock_db
    app.dependency_overrides[get_optional_database] = lambda: mock_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """FastAPI TestClient with admin auth bypassed."""
    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    with TestClient(app) as c:
        yield c


@pytest.fixture
def raw_client(app):
    """FastAPI TestClient with real authentication."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def set_env(monkeypatch):
    """Set (or with None, unset) env vars and drop the cached settings."""

    def _set(**values: str | None) -> None:
        for key, value in values.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, value)
        get_settings.cache_clear()

    return _set
