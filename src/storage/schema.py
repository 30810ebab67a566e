"""
Database schema for the alert engine.

Only the tables and columns the engine reads or writes are declared here.
The wider application owns the full user/ticker schema; these statements
are idempotent so they can run against an existing database.
"""

import logging

from src.storage.database import Database

logger = logging.getLogger(__name__)

CREATE_TABLES_SQL = """
-- Owners of alerts; only the notification address is consulted
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Ticker metrics are written by the price-update process
CREATE TABLE IF NOT EXISTS tickers (
    id TEXT PRIMARY KEY,
    symbol TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    current_price DOUBLE PRECISION,
    volume DOUBLE PRECISION,
    change_percent_24h DOUBLE PRECISION,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS alerts (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    ticker_id TEXT NOT NULL REFERENCES tickers(id) ON DELETE CASCADE,
    type TEXT NOT NULL,
    price_above DOUBLE PRECISION,
    price_below DOUBLE PRECISION,
    volume_above DOUBLE PRECISION,
    change_percent DOUBLE PRECISION,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    last_triggered TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_alerts_active ON alerts(is_active) WHERE is_active;

-- One row per (alert, time bucket): the idempotency key
CREATE TABLE IF NOT EXISTS alert_events (
    id TEXT PRIMARY KEY,
    alert_id TEXT NOT NULL REFERENCES alerts(id) ON DELETE CASCADE,
    triggered_at TIMESTAMPTZ NOT NULL,
    time_bucket BIGINT NOT NULL,
    measured_value DOUBLE PRECISION NOT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING'
        CHECK (status IN ('PENDING', 'SENT', 'FAILED')),
    sent_at TIMESTAMPTZ,
    error_message TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT alert_event_idempotency_5m UNIQUE (alert_id, time_bucket)
);

CREATE INDEX IF NOT EXISTS idx_alert_events_triggered_at
    ON alert_events(triggered_at DESC);
CREATE INDEX IF NOT EXISTS idx_alert_events_status ON alert_events(status);

-- Run-level mutual exclusion with lease expiry
CREATE TABLE IF NOT EXISTS job_locks (
    job_type TEXT PRIMARY KEY,
    locked_by TEXT NOT NULL,
    locked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    expires_at TIMESTAMPTZ NOT NULL
);
"""


async def create_tables(db: Database) -> None:
    """Create the alert engine tables and indexes if they don't exist."""
    async with db.transaction() as conn:
        await conn.execute(CREATE_TABLES_SQL)
    logger.info("Alert engine schema ensured")
