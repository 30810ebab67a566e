"""
Dependency injection for FastAPI endpoints.

The database is the process-wide instance from ``src.storage.database``,
shared with anything else in the process that asks for it.
"""

from src.alerts.repository import AlertEventRepository
from src.alerts.service import AlertEvaluationService, create_alert_service
from src.observability.logging import get_logger
from src.storage.database import Database, close_database, get_database

logger = get_logger(__name__)

# Global instance (initialized on first request)
_alert_service: AlertEvaluationService | None = None

__all__ = [
    "cleanup_dependencies",
    "get_alert_service",
    "get_database",
    "get_event_repository",
    "get_optional_database",
]


async def get_optional_database() -> Database | None:
    """
    Get the shared Database, or None when it cannot be connected.

    For endpoints that must answer even while the database is down.
    """
    try:
        return await get_database()
    except Exception as e:
        logger.warning("Database unavailable", error=str(e))
        return None


async def get_alert_service() -> AlertEvaluationService:
    """
    Get the alert evaluation service.

    Creates a singleton so the sender's circuit breaker state survives
    across requests.
    """
    global _alert_service

    if _alert_service is None:
        database = await get_database()
        _alert_service = create_alert_service(database)

    return _alert_service


async def get_event_repository() -> AlertEventRepository:
    """Get an AlertEventRepository over the shared database."""
    database = await get_database()
    return AlertEventRepository(database)


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _alert_service

    _alert_service = None
    await close_database()
