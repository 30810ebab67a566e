"""
Request and response models for the alert engine API.
"""

from pydantic import BaseModel, Field


class ComponentHealth(BaseModel):
    """Health status of an individual infrastructure component."""

    status: str = Field(
        ...,
        description="Component status: healthy or unhealthy",
    )
    latency_ms: float | None = Field(
        default=None,
        description="Check latency in milliseconds",
    )
    details: dict | None = Field(
        default=None,
        description="Additional details (e.g. error message)",
    )


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy, degraded, or unhealthy",
    )
    email_configured: bool = Field(
        default=False,
        description="Whether the email transport has credentials",
    )
    cron_configured: bool = Field(
        default=False,
        description="Whether the scheduled trigger secret is set",
    )
    components: dict[str, ComponentHealth] = Field(
        default_factory=dict,
        description="Per-component health",
    )
    version: str = Field(
        ...,
        description="API version",
    )


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Error type",
    )


# Evaluation models


class EvaluationResultModel(BaseModel):
    """Aggregate counts of one evaluation run."""

    evaluated: int = Field(..., description="Active alerts loaded")
    triggered: int = Field(..., description="Alerts whose condition fired")
    sent: int = Field(..., description="Notifications delivered")
    failed: int = Field(..., description="Sends that failed or alerts that errored")
    errors: list[str] = Field(default_factory=list, description="Error messages")
    skipped: bool = Field(
        default=False,
        description="True when another run held the job lock",
    )


class EvaluateResponse(BaseModel):
    """Response model for the manual trigger."""

    message: str
    result: EvaluationResultModel


class CronEvaluateResponse(BaseModel):
    """Response model for the scheduled trigger."""

    success: bool
    timestamp: str = Field(..., description="ISO-8601 completion time (UTC)")
    result: EvaluationResultModel


# Event history models


class EventOwner(BaseModel):
    """Owner of the alert that fired."""

    id: str
    email: str


class EventTicker(BaseModel):
    """Ticker the alert watches."""

    id: str
    symbol: str
    name: str


class EventAlert(BaseModel):
    """The alert behind an event, with its owner and ticker."""

    id: str
    type: str
    price_above: float | None = None
    price_below: float | None = None
    volume_above: float | None = None
    change_percent: float | None = None
    is_active: bool
    user: EventOwner
    ticker: EventTicker


class AlertEventItem(BaseModel):
    """One recorded firing."""

    event_id: str
    alert_id: str
    triggered_at: str
    time_bucket: int
    measured_value: float
    status: str
    sent_at: str | None = None
    error_message: str | None = None
    created_at: str | None = None
    alert: EventAlert


class Pagination(BaseModel):
    """Page metadata for list endpoints."""

    page: int
    limit: int
    total: int
    pages: int


class AlertEventsResponse(BaseModel):
    """Response model for the event history listing."""

    events: list[AlertEventItem]
    pagination: Pagination
