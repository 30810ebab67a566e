"""
PostgreSQL access for the alert engine stores.

One asyncpg pool is shared by the alert, event and job lock repositories.
Sessions run in UTC so TIMESTAMPTZ columns come back as aware datetimes
that compare directly with the engine clock. Connecting retries while the
server is still starting, which is common when the service and its
database come up together.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

SERVER_SETTINGS = {"timezone": "UTC", "application_name": "penny-alerts"}

# Errors worth another attempt: refused/reset sockets, timeouts, and
# "the database system is starting up"
RETRYABLE_CONNECT_ERRORS: tuple[type[Exception], ...] = (
    OSError,
    asyncpg.CannotConnectNowError,
)


class Database:
    """
    Connection pool shared by the alert engine repositories.

    Usage:
        db = Database()
        await db.connect()
        rows = await db.fetch("SELECT id FROM alerts WHERE is_active")
        await db.close()
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        connect_attempts: int | None = None,
        retry_delay: float | None = None,
    ):
        """
        Args:
            database_url: PostgreSQL connection URL
            min_size: Minimum pool size
            max_size: Maximum pool size
            connect_attempts: Tries before ``connect()`` gives up
            retry_delay: Seconds between connection attempts
        """
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = settings.db_command_timeout_seconds
        self._connect_attempts = connect_attempts or settings.db_connect_attempts
        self._retry_delay = (
            settings.db_connect_retry_seconds if retry_delay is None else retry_delay
        )

        self._pool: asyncpg.Pool | None = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """
        Create the connection pool. A no-op when already connected.

        Raises:
            The last connection error once every attempt has failed, or
            the first non-retryable error (bad credentials, unknown database).
        """
        if self._pool is not None:
            return

        for attempt in range(1, self._connect_attempts + 1):
            try:
                self._pool = await asyncpg.create_pool(
                    self._database_url,
                    min_size=self._min_size,
                    max_size=self._max_size,
                    command_timeout=self._command_timeout,
                    server_settings=SERVER_SETTINGS,
                )
                break
            except RETRYABLE_CONNECT_ERRORS as e:
                if attempt == self._connect_attempts:
                    logger.error(
                        "Failed to connect to database after %d attempts: %s", attempt, e,
                    )
                    raise
                logger.warning(
                    "Database connection attempt %d/%d failed, retrying in %.1fs: %s",
                    attempt, self._connect_attempts, self._retry_delay, e,
                )
                await asyncio.sleep(self._retry_delay)
            except Exception as e:
                logger.error("Failed to connect to database: %s", e)
                raise

        logger.info("Database connected (pool: %d-%d)", self._min_size, self._max_size)

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection closed")

    @property
    def pool(self) -> asyncpg.Pool:
        """Get connection pool, raising if not connected."""
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Run statements on one connection inside a transaction.

        Usage:
            async with db.transaction() as conn:
                await conn.execute(CREATE_TABLES_SQL)
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement; returns the PostgreSQL status string."""
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True if the pool is up and answers ``SELECT 1``."""
        if not self.is_connected:
            return False
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            return False


# Process-wide instance, published only once connected
_database: Database | None = None


async def get_database() -> Database:
    """
    Get the shared, connected Database.

    A failed connect leaves nothing behind, so the next call tries again
    instead of handing out an unconnected pool.

    Returns:
        Connected Database instance
    """
    global _database

    if _database is not None:
        return _database

    database = Database()
    await database.connect()

    if _database is not None:
        # Another caller finished connecting during our await
        await database.close()
        return _database

    _database = database
    return _database


async def close_database() -> None:
    """Close the shared Database, if one was connected."""
    global _database

    database, _database = _database, None
    if database is not None:
        await database.close()
