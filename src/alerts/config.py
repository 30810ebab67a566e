"""Alert engine configuration.

Controls the idempotency window, the per-alert cooldown, the job lock lease
and notification delivery. All settings can be overridden via ``ALERTS_*``
environment variables.
"""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.alerts.schemas import ALERT_EVALUATION_JOB


class AlertConfig(BaseSettings):
    """Configuration for alert evaluation and notification."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Idempotency: one AlertEvent per (alert_id, bucket)
    bucket_width_seconds: int = Field(
        default=300,
        ge=1,
        le=86_400,
        description="Width of the time bucket used as the idempotency key",
    )

    # Minimum spacing between successful notifications for one alert
    cooldown_minutes: int = Field(
        default=60,
        ge=0,
        description="Minutes after a delivered notification before the alert may fire again",
    )

    # Job lock lease; must exceed the worst-case run duration
    lock_ttl_minutes: int = Field(
        default=10,
        ge=1,
        le=1440,
        description="Minutes before an unreleased job lock may be taken over",
    )
    job_type: str = Field(
        default=ALERT_EVALUATION_JOB,
        min_length=1,
        description="Job lock key for the evaluation run",
    )

    # Delivery
    from_address: str = Field(
        default="alerts@pennystockstracker.com",
        description="Sender address for alert emails",
    )
    skip_already_sent: bool = Field(
        default=True,
        description="Skip the send when the reused AlertEvent is already SENT",
    )
    circuit_breaker_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive send failures before the circuit opens",
    )
    circuit_breaker_recovery_seconds: float = Field(
        default=60.0,
        ge=1.0,
        description="Seconds before an open circuit probes recovery",
    )

    @property
    def bucket_width_ms(self) -> int:
        return self.bucket_width_seconds * 1000

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.cooldown_minutes)

    @property
    def lock_ttl(self) -> timedelta:
        return timedelta(minutes=self.lock_ttl_minutes)
