"""Tests for alert schema validation and serialization."""

from datetime import datetime, timedelta, timezone

import pytest

from src.alerts.schemas import (
    VALID_ALERT_TYPES,
    VALID_EVENT_STATUSES,
    Alert,
    AlertEvent,
    EvaluationResult,
    JobLockRecord,
)

NOW = datetime(2026, 3, 2, 10, 30, 0, tzinfo=timezone.utc)


class TestAlert:
    def test_known_types(self):
        assert VALID_ALERT_TYPES == {"PRICE_ABOVE", "PRICE_BELOW", "VOLUME_ABOVE", "CHANGE_PERCENT"}

    def test_unknown_type_allowed(self):
        alert = Alert(alert_id="a", user_id="u", ticker_id="t", alert_type="MOON_PHASE")
        assert alert.has_known_type is False

    def test_defaults(self):
        alert = Alert(alert_id="a", user_id="u", ticker_id="t", alert_type="PRICE_ABOVE")
        assert alert.has_known_type is True
        assert alert.is_active is True
        assert alert.last_triggered is None
        assert alert.price_above is None


class TestAlertEvent:
    """Test AlertEvent validation and to_dict."""

    def test_defaults(self):
        event = AlertEvent(alert_id="a", triggered_at=NOW, time_bucket=1, measured_value=12.5)
        assert event.status == "PENDING"
        assert event.event_id
        assert event.sent_at is None
        assert event.error_message is None

    def test_statuses(self):
        assert VALID_EVENT_STATUSES == {"PENDING", "SENT", "FAILED"}

    def test_invalid_status_raises(self):
        with pytest.raises(ValueError, match="Invalid status"):
            AlertEvent(
                alert_id="a", triggered_at=NOW, time_bucket=1, measured_value=1.0, status="DONE",
            )

    def test_to_dict(self):
        event = AlertEvent(
            alert_id="a",
            triggered_at=NOW,
            time_bucket=5,
            measured_value=-7.5,
            status="SENT",
            event_id="evt-1",
            sent_at=NOW,
            created_at=NOW,
        )
        assert event.to_dict() == {
            "event_id": "evt-1",
            "alert_id": "a",
            "triggered_at": NOW.isoformat(),
            "time_bucket": 5,
            "measured_value": -7.5,
            "status": "SENT",
            "sent_at": NOW.isoformat(),
            "error_message": None,
            "created_at": NOW.isoformat(),
        }


class TestJobLockRecord:
    def test_is_expired_strict(self):
        record = JobLockRecord("JOB", "h", NOW, NOW + timedelta(minutes=10))
        assert record.is_expired(NOW + timedelta(minutes=10)) is False
        assert record.is_expired(NOW + timedelta(minutes=10, seconds=1)) is True


class TestEvaluationResult:
    def test_to_dict_copies_errors(self):
        result = EvaluationResult(evaluated=2, errors=["x"])
        data = result.to_dict()
        data["errors"].append("y")
        assert result.errors == ["x"]
        assert data["evaluated"] == 2
        assert data["skipped"] is False
