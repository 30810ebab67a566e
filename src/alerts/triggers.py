"""Stateless trigger evaluation for threshold alerts.

Decides whether one Alert fires against one TickerSnapshot at a given
instant and what value triggered it. No I/O, no state; every side effect
(event rows, delivery, cooldown writes) lives in AlertEvaluationService.
"""

import logging
from datetime import datetime, timedelta
from typing import Literal

from src.alerts.schemas import Alert, AlertTrigger, TickerSnapshot

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(hours=1)

EvaluationOutcome = Literal[
    "SKIPPED_COOLDOWN",
    "SKIPPED_NO_FIRE",
    "UNKNOWN_TYPE",
    "FIRED",
]


def in_cooldown(
    alert: Alert,
    now: datetime,
    cooldown: timedelta = DEFAULT_COOLDOWN,
) -> bool:
    """True if the alert was delivered less than ``cooldown`` ago."""
    if alert.last_triggered is None:
        return False
    return now - alert.last_triggered < cooldown


def resolve_threshold(alert: Alert) -> float:
    """Return the threshold that applies to the alert's kind (0 if unset or unknown)."""
    if alert.alert_type == "PRICE_ABOVE":
        return alert.price_above or 0.0
    if alert.alert_type == "PRICE_BELOW":
        return alert.price_below or 0.0
    if alert.alert_type == "VOLUME_ABOVE":
        return alert.volume_above or 0.0
    if alert.alert_type == "CHANGE_PERCENT":
        return alert.change_percent or 0.0
    return 0.0


def measure(alert: Alert, snapshot: TickerSnapshot) -> tuple[bool, float] | None:
    """Apply the threshold rule for the alert's kind.

    Returns:
        ``(fires, measured_value)``, or None for an unknown kind.
    """
    threshold = resolve_threshold(alert)

    if alert.alert_type == "PRICE_ABOVE":
        value = snapshot.price or 0.0
        return value > threshold, value

    if alert.alert_type == "PRICE_BELOW":
        value = snapshot.price or 0.0
        return value < threshold, value

    if alert.alert_type == "VOLUME_ABOVE":
        value = snapshot.volume or 0.0
        return value > threshold, value

    if alert.alert_type == "CHANGE_PERCENT":
        # a 5% threshold fires on +5% or -5%
        value = snapshot.change_percent or 0.0
        return abs(value) >= abs(threshold), value

    return None


def classify_alert(
    alert: Alert,
    snapshot: TickerSnapshot,
    now: datetime,
    owner_email: str,
    cooldown: timedelta = DEFAULT_COOLDOWN,
) -> tuple[EvaluationOutcome, AlertTrigger | None]:
    """Evaluate one alert and report why it did or did not fire.

    The cooldown gate runs before the threshold check.

    Args:
        alert: Alert definition.
        snapshot: Ticker metrics at evaluation time.
        now: Evaluation instant (timezone-aware).
        owner_email: Notification address of the alert's owner.
        cooldown: Minimum spacing between delivered notifications.

    Returns:
        Outcome label and the trigger descriptor when the outcome is FIRED.
    """
    if in_cooldown(alert, now, cooldown):
        return "SKIPPED_COOLDOWN", None

    measured = measure(alert, snapshot)
    if measured is None:
        logger.warning(
            "Unknown alert type %r on alert %s, skipping",
            alert.alert_type, alert.alert_id,
        )
        return "UNKNOWN_TYPE", None

    fires, value = measured
    if not fires:
        return "SKIPPED_NO_FIRE", None

    return "FIRED", AlertTrigger(
        alert_id=alert.alert_id,
        user_id=alert.user_id,
        ticker_id=snapshot.ticker_id,
        alert_type=alert.alert_type,
        measured_value=value,
        threshold=resolve_threshold(alert),
        user_email=owner_email,
        ticker_symbol=snapshot.symbol,
        ticker_name=snapshot.name,
    )


def evaluate_alert(
    alert: Alert,
    snapshot: TickerSnapshot,
    now: datetime,
    owner_email: str,
    cooldown: timedelta = DEFAULT_COOLDOWN,
) -> AlertTrigger | None:
    """Return the trigger descriptor if the alert fires, otherwise None."""
    _, trigger = classify_alert(alert, snapshot, now, owner_email, cooldown)
    return trigger
