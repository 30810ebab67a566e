"""Admin alert endpoints: manual evaluation and event history."""

import math
import time
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.alerts.repository import AlertEventRepository
from src.alerts.schemas import VALID_EVENT_STATUSES, AlertEventDetail
from src.alerts.service import AlertEvaluationService
from src.api.auth import verify_api_key
from src.api.dependencies import get_alert_service, get_event_repository
from src.api.models import (
    AlertEventItem,
    AlertEventsResponse,
    ErrorResponse,
    EvaluateResponse,
    EvaluationResultModel,
    Pagination,
)
from src.observability.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post(
    "/admin/alerts/evaluate",
    response_model=EvaluateResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Run alert evaluation now",
    description=(
        "Run one evaluation pass over all active alerts. If a run is already "
        "in progress the result is returned with skipped=true."
    ),
)
async def evaluate_alerts(
    api_key: str = Depends(verify_api_key),
    service: AlertEvaluationService = Depends(get_alert_service),
) -> EvaluateResponse:
    start_time = time.perf_counter()

    try:
        result = await service.run_evaluation()
    except Exception as e:
        logger.error(f"Manual alert evaluation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to evaluate alerts",
        )

    logger.info(
        "Manual alert evaluation completed",
        evaluated=result.evaluated,
        triggered=result.triggered,
        sent=result.sent,
        failed=result.failed,
        skipped=result.skipped,
        latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )

    return EvaluateResponse(
        message="Alert evaluation completed",
        result=EvaluationResultModel(**result.to_dict()),
    )


@router.get(
    "/admin/alerts/events",
    response_model=AlertEventsResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "Invalid filter parameter"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="List alert events",
    description=(
        "List recorded firings with their alert, owner and ticker, optionally "
        "filtered by status, alert, and trigger date. Most recent trigger first."
    ),
)
async def list_alert_events(
    status_filter: str | None = Query(
        default=None,
        alias="status",
        description="Filter by status: PENDING, SENT, FAILED",
    ),
    alert_id: str | None = Query(default=None, description="Filter by alert identifier"),
    date_from: datetime | None = Query(
        default=None,
        description="Only events triggered at or after this instant",
    ),
    date_to: datetime | None = Query(
        default=None,
        description="Only events triggered at or before this instant",
    ),
    page: int = Query(default=1, ge=1, description="Page number (1-based)"),
    limit: int = Query(default=50, ge=1, le=100, description="Events per page"),
    api_key: str = Depends(verify_api_key),
    event_repo: AlertEventRepository = Depends(get_event_repository),
) -> AlertEventsResponse:
    start_time = time.perf_counter()

    try:
        if status_filter and status_filter not in VALID_EVENT_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=(
                    f"Invalid status {status_filter!r}. "
                    f"Must be one of: {sorted(VALID_EVENT_STATUSES)}"
                ),
            )

        filters = {
            "status": status_filter,
            "alert_id": alert_id,
            "date_from": date_from,
            "date_to": date_to,
        }
        events = await event_repo.list_events(
            **filters,
            limit=limit,
            offset=(page - 1) * limit,
        )
        total = await event_repo.count_events(**filters)

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Alert events listed",
            returned=len(events),
            total=total,
            status=status_filter,
            page=page,
            latency_ms=round(latency_ms, 2),
        )

        return AlertEventsResponse(
            events=[_to_item(e) for e in events],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit),
            ),
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list alert events: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch alert events",
        )


def _to_item(detail: AlertEventDetail) -> AlertEventItem:
    return AlertEventItem(**detail.to_dict())
