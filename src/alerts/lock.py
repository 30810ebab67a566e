"""Run-level job lock backed by a ``job_locks`` table row with a lease.

Acquisition inserts a row keyed by job type. When the key already exists
and its lease has expired, the row is taken over with a conditional
UPDATE so that only one of several concurrent stealers succeeds. Release
deletes the row unconditionally; if a holder crashes instead, the lease
bounds how long later runs are blocked.
"""

import logging
import secrets
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

from src.alerts.exceptions import JobLockError
from src.alerts.schemas import JobLockRecord
from src.storage.database import Database

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL = timedelta(minutes=10)


def new_holder_id() -> str:
    """Opaque holder identifier: epoch milliseconds plus a random suffix."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(5)}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobLockRepository:
    """Store primitives for the job lock table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def insert_if_absent(
        self,
        job_type: str,
        holder: str,
        locked_at: datetime,
        expires_at: datetime,
    ) -> bool:
        """Insert a lock row; False if one already exists for the job type."""
        sql = """
            INSERT INTO job_locks (job_type, locked_by, locked_at, expires_at)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (job_type) DO NOTHING
            RETURNING job_type
        """
        result = await self._db.fetchval(sql, job_type, holder, locked_at, expires_at)
        return result is not None

    async def replace_if_expired(
        self,
        job_type: str,
        holder: str,
        locked_at: datetime,
        expires_at: datetime,
    ) -> bool:
        """Take over the row only if its lease ended before ``locked_at``."""
        sql = """
            UPDATE job_locks
            SET locked_by = $2, locked_at = $3, expires_at = $4
            WHERE job_type = $1 AND expires_at < $3
            RETURNING job_type
        """
        result = await self._db.fetchval(sql, job_type, holder, locked_at, expires_at)
        return result is not None

    async def get(self, job_type: str) -> JobLockRecord | None:
        sql = "SELECT * FROM job_locks WHERE job_type = $1"
        row = await self._db.fetchrow(sql, job_type)
        if row is None:
            return None
        return _row_to_lock(row)

    async def delete(self, job_type: str) -> None:
        await self._db.execute("DELETE FROM job_locks WHERE job_type = $1", job_type)


class JobLock:
    """Mutual exclusion for periodic jobs.

    Failing to acquire is a normal outcome ("someone else is running"),
    never an exception. Store failures raise ``JobLockError``.

    Usage:
        lock = JobLock(JobLockRepository(db))
        async with lock.hold("ALERT_EVALUATION") as acquired:
            if acquired:
                ...
    """

    def __init__(
        self,
        store: Any,
        ttl: timedelta = DEFAULT_LOCK_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def acquire(
        self,
        job_type: str,
        holder_id: str | None = None,
        ttl: timedelta | None = None,
    ) -> bool:
        """Try to take the lock for ``job_type``.

        Args:
            job_type: Lock key.
            holder_id: Opaque holder identifier (generated if omitted).
            ttl: Lease length (defaults to the lock's TTL).

        Returns:
            True if this holder now owns the lock, False if a live holder has it.

        Raises:
            JobLockError: If the lock store failed; the lock state is unknown.
        """
        holder_id = holder_id or new_holder_id()
        now = self._clock()
        expires_at = now + (ttl or self._ttl)

        try:
            if await self._store.insert_if_absent(job_type, holder_id, now, expires_at):
                logger.info("Job lock acquired for %s by %s", job_type, holder_id)
                return True

            existing = await self._store.get(job_type)
            if existing is not None and not existing.is_expired(now):
                logger.info(
                    "Job lock already held for %s by %s until %s",
                    job_type, existing.locked_by, existing.expires_at.isoformat(),
                )
                return False

            # Expired (or released between the insert and the read)
            if await self._store.replace_if_expired(job_type, holder_id, now, expires_at):
                logger.info("Expired job lock replaced for %s by %s", job_type, holder_id)
                return True

            if existing is None and await self._store.insert_if_absent(
                job_type, holder_id, now, expires_at,
            ):
                logger.info("Job lock acquired for %s by %s", job_type, holder_id)
                return True

            logger.info("Failed to take over job lock for %s", job_type)
            return False

        except Exception as e:
            logger.error("Failed to acquire job lock for %s: %s", job_type, e)
            raise JobLockError(job_type, e) from e

    async def release(self, job_type: str) -> None:
        """Delete the lock row. Errors are logged; the lease bounds the damage."""
        try:
            await self._store.delete(job_type)
            logger.info("Job lock released for %s", job_type)
        except Exception as e:
            logger.error("Failed to release job lock for %s: %s", job_type, e)

    @asynccontextmanager
    async def hold(
        self,
        job_type: str,
        holder_id: str | None = None,
        ttl: timedelta | None = None,
    ) -> AsyncIterator[bool]:
        """Acquire for the duration of the block; yields whether it was acquired.

        Release runs even if the block raises, but only when this holder
        acquired the lock.
        """
        acquired = await self.acquire(job_type, holder_id, ttl)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(job_type)


def _row_to_lock(row: Any) -> JobLockRecord:
    """Convert an asyncpg Record from ``job_locks`` to a JobLockRecord."""
    return JobLockRecord(
        job_type=row["job_type"],
        locked_by=row["locked_by"],
        locked_at=row["locked_at"],
        expires_at=row["expires_at"],
    )
