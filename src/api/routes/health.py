"""
Health check endpoint.
"""

import time

from fastapi import APIRouter, Depends

from src.api.dependencies import get_optional_database
from src.api.models import ComponentHealth, HealthResponse
from src.config.settings import get_settings
from src.storage.database import Database

router = APIRouter()


async def _check_database(db: Database | None) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    if db is None:
        return ComponentHealth(
            status="unhealthy",
            details={"error": "Database connection could not be established"},
        )

    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy" if healthy else "unhealthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the health of the service and its dependencies.",
)
async def health_check(
    db: Database | None = Depends(get_optional_database),
) -> HealthResponse:
    """
    Check service health.

    Status logic:
    - unhealthy: database is down
    - degraded: email transport not configured (firings are recorded as FAILED)
    - healthy: all components operational
    """
    settings = get_settings()

    db_health = await _check_database(db)
    components = {"database": db_health}

    if db_health.status == "unhealthy":
        status = "unhealthy"
    elif not settings.email_configured:
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        email_configured=settings.email_configured,
        cron_configured=settings.cron_configured,
        components=components,
        version="0.1.0",
    )
