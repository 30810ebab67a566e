"""Repositories for alert definitions and alert events.

Follows the asyncpg repository pattern used across the codebase: each
repository wraps a ``Database`` and maps records to dataclasses through
module-level ``_row_to_*`` helpers.

The (alert_id, time_bucket) uniqueness of ``alert_events`` is enforced by
the ``alert_event_idempotency_5m`` constraint; this module never checks for
existence before inserting.
"""

import logging
import uuid
from datetime import datetime
from typing import Any

import asyncpg

from src.alerts.exceptions import AlertEventNotFoundError, DuplicateAlertEventError
from src.alerts.schemas import (
    VALID_EVENT_STATUSES,
    Alert,
    AlertCandidate,
    AlertEvent,
    AlertEventDetail,
    TickerSnapshot,
)
from src.storage.database import Database

logger = logging.getLogger(__name__)


class AlertRepository:
    """Read access to active alerts and the engine's single write to them."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def list_active_with_tickers(self) -> list[AlertCandidate]:
        """Load every active alert joined with its ticker and owner email.

        Returns:
            Candidates in store order; no ordering is guaranteed.
        """
        sql = """
            SELECT
                a.id, a.user_id, a.ticker_id, a.type,
                a.price_above, a.price_below, a.volume_above, a.change_percent,
                a.is_active, a.last_triggered,
                u.email AS user_email,
                t.symbol AS ticker_symbol,
                t.name AS ticker_name,
                t.current_price, t.volume, t.change_percent_24h
            FROM alerts a
            JOIN users u ON u.id = a.user_id
            JOIN tickers t ON t.id = a.ticker_id
            WHERE a.is_active = TRUE
        """
        rows = await self._db.fetch(sql)
        return [_row_to_candidate(row) for row in rows]

    async def get_by_id(self, alert_id: str) -> Alert | None:
        sql = "SELECT * FROM alerts WHERE id = $1"
        row = await self._db.fetchrow(sql, alert_id)
        if row is None:
            return None
        return _row_to_alert(row)

    async def update_last_triggered(self, alert_id: str, timestamp: datetime) -> None:
        """Record a delivered notification, starting the alert's cooldown."""
        sql = "UPDATE alerts SET last_triggered = $2 WHERE id = $1"
        await self._db.execute(sql, alert_id, timestamp)


class AlertEventRepository:
    """Create, look up and transition AlertEvent rows."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_event(
        self,
        alert_id: str,
        triggered_at: datetime,
        time_bucket: int,
        measured_value: float,
    ) -> AlertEvent:
        """Insert a PENDING event.

        Raises:
            DuplicateAlertEventError: A row already exists for the bucket.
        """
        sql = """
            INSERT INTO alert_events (
                id, alert_id, triggered_at, time_bucket, measured_value, status
            ) VALUES ($1, $2, $3, $4, $5, 'PENDING')
            RETURNING *
        """
        try:
            row = await self._db.fetchrow(
                sql,
                str(uuid.uuid4()),
                alert_id,
                triggered_at,
                time_bucket,
                measured_value,
            )
        except asyncpg.exceptions.UniqueViolationError as e:
            raise DuplicateAlertEventError(alert_id, time_bucket) from e
        return _row_to_event(row)

    async def find_event(self, alert_id: str, time_bucket: int) -> AlertEvent | None:
        sql = """
            SELECT * FROM alert_events
            WHERE alert_id = $1 AND time_bucket = $2
        """
        row = await self._db.fetchrow(sql, alert_id, time_bucket)
        if row is None:
            return None
        return _row_to_event(row)

    async def create_or_get(
        self,
        alert_id: str,
        triggered_at: datetime,
        time_bucket: int,
        measured_value: float,
    ) -> tuple[AlertEvent, bool]:
        """Insert a PENDING event or return the one already in the bucket.

        Uses ``ON CONFLICT DO NOTHING`` so concurrent callers never see a
        duplicate-key error; the loser reads the winner's row. Rows are
        never deleted, so the follow-up lookup always finds it.

        Returns:
            ``(event, created)`` where ``created`` is False for a reused row.
        """
        sql = """
            INSERT INTO alert_events (
                id, alert_id, triggered_at, time_bucket, measured_value, status
            ) VALUES ($1, $2, $3, $4, $5, 'PENDING')
            ON CONFLICT ON CONSTRAINT alert_event_idempotency_5m DO NOTHING
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            str(uuid.uuid4()),
            alert_id,
            triggered_at,
            time_bucket,
            measured_value,
        )
        if row is not None:
            return _row_to_event(row), True

        existing = await self.find_event(alert_id, time_bucket)
        if existing is None:
            raise AlertEventNotFoundError(
                f"AlertEvent for alert {alert_id} in bucket {time_bucket} "
                "conflicted on insert but could not be read back"
            )
        return existing, False

    async def update_status(
        self,
        event_id: str,
        status: str,
        *,
        sent_at: datetime | None = None,
        error_message: str | None = None,
    ) -> AlertEvent:
        """Transition an event's delivery status.

        Raises:
            ValueError: Unknown status.
            AlertEventNotFoundError: No event with this id.
        """
        if status not in VALID_EVENT_STATUSES:
            raise ValueError(
                f"Invalid status {status!r}. "
                f"Must be one of: {sorted(VALID_EVENT_STATUSES)}"
            )

        sql = """
            UPDATE alert_events
            SET status = $2, sent_at = $3, error_message = $4
            WHERE id = $1
            RETURNING *
        """
        row = await self._db.fetchrow(sql, event_id, status, sent_at, error_message)
        if row is None:
            raise AlertEventNotFoundError(f"AlertEvent {event_id} not found")
        return _row_to_event(row)

    async def mark_sent(self, event_id: str, sent_at: datetime) -> AlertEvent:
        return await self.update_status(event_id, "SENT", sent_at=sent_at)

    async def mark_failed(self, event_id: str, error_message: str) -> AlertEvent:
        return await self.update_status(event_id, "FAILED", error_message=error_message)

    async def list_events(
        self,
        *,
        status: str | None = None,
        alert_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AlertEventDetail]:
        """List events with their alert, owner and ticker, newest trigger first.

        Args:
            status: Filter by delivery status.
            alert_id: Filter by alert.
            date_from: Inclusive lower bound on triggered_at.
            date_to: Inclusive upper bound on triggered_at.
            limit: Maximum events to return.
            offset: Offset for pagination.
        """
        where_clause, params = _build_event_filters(status, alert_id, date_from, date_to)
        param_idx = len(params) + 1

        sql = f"""
            SELECT e.*,
                   a.user_id, a.ticker_id, a.type, a.price_above, a.price_below,
                   a.volume_above, a.change_percent, a.is_active, a.last_triggered,
                   u.email AS user_email,
                   t.symbol AS ticker_symbol, t.name AS ticker_name
            FROM alert_events e
            JOIN alerts a ON a.id = e.alert_id
            JOIN users u ON u.id = a.user_id
            JOIN tickers t ON t.id = a.ticker_id
            {where_clause}
            ORDER BY e.triggered_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
        """
        params.extend([limit, offset])

        rows = await self._db.fetch(sql, *params)
        return [_row_to_event_detail(row) for row in rows]

    async def count_events(
        self,
        *,
        status: str | None = None,
        alert_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> int:
        where_clause, params = _build_event_filters(status, alert_id, date_from, date_to)
        sql = f"SELECT COUNT(*) FROM alert_events e {where_clause}"
        count = await self._db.fetchval(sql, *params)
        return count or 0


def _build_event_filters(
    status: str | None,
    alert_id: str | None,
    date_from: datetime | None,
    date_to: datetime | None,
) -> tuple[str, list[Any]]:
    """Build a WHERE clause over ``alert_events e`` with positional parameters."""
    conditions: list[str] = []
    params: list[Any] = []
    param_idx = 1

    if status is not None:
        conditions.append(f"e.status = ${param_idx}")
        params.append(status)
        param_idx += 1

    if alert_id is not None:
        conditions.append(f"e.alert_id = ${param_idx}")
        params.append(alert_id)
        param_idx += 1

    if date_from is not None:
        conditions.append(f"e.triggered_at >= ${param_idx}")
        params.append(date_from)
        param_idx += 1

    if date_to is not None:
        conditions.append(f"e.triggered_at <= ${param_idx}")
        params.append(date_to)
        param_idx += 1

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)
    return where_clause, params


def _row_to_alert(row: Any) -> Alert:
    """Convert an asyncpg Record from ``alerts`` to an Alert."""
    return Alert(
        alert_id=row["id"],
        user_id=row["user_id"],
        ticker_id=row["ticker_id"],
        alert_type=row["type"],
        price_above=row.get("price_above"),
        price_below=row.get("price_below"),
        volume_above=row.get("volume_above"),
        change_percent=row.get("change_percent"),
        is_active=row.get("is_active", True),
        last_triggered=row.get("last_triggered"),
    )


def _row_to_candidate(row: Any) -> AlertCandidate:
    """Convert a joined alert/user/ticker record to an AlertCandidate."""
    snapshot = TickerSnapshot(
        ticker_id=row["ticker_id"],
        symbol=row["ticker_symbol"],
        name=row["ticker_name"],
        price=row.get("current_price") or 0.0,
        volume=row.get("volume") or 0.0,
        change_percent=row.get("change_percent_24h") or 0.0,
    )
    return AlertCandidate(
        alert=_row_to_alert(row),
        snapshot=snapshot,
        owner_email=row["user_email"],
    )


def _row_to_event(row: Any) -> AlertEvent:
    """Convert an asyncpg Record from ``alert_events`` to an AlertEvent."""
    return AlertEvent(
        event_id=row["id"],
        alert_id=row["alert_id"],
        triggered_at=row["triggered_at"],
        time_bucket=row["time_bucket"],
        measured_value=row["measured_value"],
        status=row["status"],
        sent_at=row.get("sent_at"),
        error_message=row.get("error_message"),
        created_at=row["created_at"],
    )


def _row_to_event_detail(row: Any) -> AlertEventDetail:
    """Convert a joined event/alert/user/ticker record to an AlertEventDetail."""
    alert = Alert(
        alert_id=row["alert_id"],
        user_id=row["user_id"],
        ticker_id=row["ticker_id"],
        alert_type=row["type"],
        price_above=row.get("price_above"),
        price_below=row.get("price_below"),
        volume_above=row.get("volume_above"),
        change_percent=row.get("change_percent"),
        is_active=row.get("is_active", True),
        last_triggered=row.get("last_triggered"),
    )
    return AlertEventDetail(
        event=_row_to_event(row),
        alert=alert,
        user_email=row["user_email"],
        ticker_symbol=row["ticker_symbol"],
        ticker_name=row["ticker_name"],
    )
