"""Schema definitions for the alert engine.

``Alert`` and ``AlertEvent`` map 1:1 to the ``alerts`` and ``alert_events``
tables; ``JobLockRecord`` maps to ``job_locks``. ``TickerSnapshot`` is a
read-only view of the ticker columns the evaluator consults.
``AlertEventDetail`` is the joined row served by the event history listing.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

AlertType = Literal[
    "PRICE_ABOVE",
    "PRICE_BELOW",
    "VOLUME_ABOVE",
    "CHANGE_PERCENT",
]

VALID_ALERT_TYPES: frozenset[str] = frozenset({
    "PRICE_ABOVE",
    "PRICE_BELOW",
    "VOLUME_ABOVE",
    "CHANGE_PERCENT",
})

AlertEventStatus = Literal["PENDING", "SENT", "FAILED"]

VALID_EVENT_STATUSES: frozenset[str] = frozenset({
    "PENDING",
    "SENT",
    "FAILED",
})

ALERT_EVALUATION_JOB = "ALERT_EVALUATION"


@dataclass
class Alert:
    """A user's standing threshold rule.

    Only the threshold matching ``alert_type`` is consulted; the others are
    ignored. ``alert_type`` is not validated here because rows written by
    other services may carry kinds this engine does not know about, and
    those must be skipped rather than crash a run.

    Attributes:
        alert_id: Alert identifier.
        user_id: Owning user.
        ticker_id: Watched ticker.
        alert_type: PRICE_ABOVE, PRICE_BELOW, VOLUME_ABOVE or CHANGE_PERCENT.
        price_above: Threshold for PRICE_ABOVE.
        price_below: Threshold for PRICE_BELOW.
        volume_above: Threshold for VOLUME_ABOVE.
        change_percent: Threshold for CHANGE_PERCENT (sign ignored).
        is_active: Inactive alerts are never loaded for evaluation.
        last_triggered: Time of the last successfully delivered notification.
    """

    alert_id: str
    user_id: str
    ticker_id: str
    alert_type: str
    price_above: float | None = None
    price_below: float | None = None
    volume_above: float | None = None
    change_percent: float | None = None
    is_active: bool = True
    last_triggered: datetime | None = None

    @property
    def has_known_type(self) -> bool:
        return self.alert_type in VALID_ALERT_TYPES


@dataclass(frozen=True)
class TickerSnapshot:
    """Current market metrics for a ticker as of evaluation time."""

    ticker_id: str
    symbol: str
    name: str
    price: float = 0.0
    volume: float = 0.0
    change_percent: float = 0.0


@dataclass
class AlertCandidate:
    """One active alert joined with its ticker and the owner's address."""

    alert: Alert
    snapshot: TickerSnapshot
    owner_email: str


@dataclass(frozen=True)
class AlertTrigger:
    """Everything needed to record and notify a single firing."""

    alert_id: str
    user_id: str
    ticker_id: str
    alert_type: str
    measured_value: float
    threshold: float
    user_email: str
    ticker_symbol: str
    ticker_name: str


@dataclass
class AlertEvent:
    """Durable idempotency and delivery record for one firing.

    Unique on (alert_id, time_bucket). Transitions PENDING -> SENT,
    PENDING -> FAILED and FAILED -> SENT, always on the same row.
    """

    alert_id: str
    triggered_at: datetime
    time_bucket: int
    measured_value: float
    status: str = "PENDING"
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    sent_at: datetime | None = None
    error_message: str | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if self.status not in VALID_EVENT_STATUSES:
            raise ValueError(
                f"Invalid status {self.status!r}. "
                f"Must be one of: {sorted(VALID_EVENT_STATUSES)}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "event_id": self.event_id,
            "alert_id": self.alert_id,
            "triggered_at": self.triggered_at.isoformat(),
            "time_bucket": self.time_bucket,
            "measured_value": self.measured_value,
            "status": self.status,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AlertEventDetail:
    """An AlertEvent joined with its alert, the alert's owner and the ticker."""

    event: AlertEvent
    alert: Alert
    user_email: str
    ticker_symbol: str
    ticker_name: str

    def to_dict(self) -> dict[str, Any]:
        """Event fields plus a nested ``alert`` with ``user`` and ``ticker``."""
        data = self.event.to_dict()
        data["alert"] = {
            "id": self.alert.alert_id,
            "type": self.alert.alert_type,
            "price_above": self.alert.price_above,
            "price_below": self.alert.price_below,
            "volume_above": self.alert.volume_above,
            "change_percent": self.alert.change_percent,
            "is_active": self.alert.is_active,
            "user": {"id": self.alert.user_id, "email": self.user_email},
            "ticker": {
                "id": self.alert.ticker_id,
                "symbol": self.ticker_symbol,
                "name": self.ticker_name,
            },
        }
        return data


@dataclass(frozen=True)
class JobLockRecord:
    """Mutual-exclusion token for one job type."""

    job_type: str
    locked_by: str
    locked_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


@dataclass
class EvaluationResult:
    """Aggregate outcome of one evaluation run.

    ``skipped`` is set when another holder owned the job lock; such a run
    did no work and is not a failure.
    """

    evaluated: int = 0
    triggered: int = 0
    sent: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "evaluated": self.evaluated,
            "triggered": self.triggered,
            "sent": self.sent,
            "failed": self.failed,
            "errors": list(self.errors),
            "skipped": self.skipped,
        }
