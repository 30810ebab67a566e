"""Scheduled trigger for alert evaluation.

Called by an external scheduler every few minutes. Authenticated with the
shared CRON_SECRET rather than an admin key.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.alerts.service import AlertEvaluationService
from src.api.auth import verify_cron_secret
from src.api.dependencies import get_alert_service
from src.api.models import CronEvaluateResponse, EvaluationResultModel
from src.observability.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.api_route(
    "/cron/evaluate-alerts",
    methods=["GET", "POST"],
    response_model=CronEvaluateResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Scheduled alert evaluation",
)
async def cron_evaluate_alerts(
    service: AlertEvaluationService = Depends(get_alert_service),
):
    logger.info("Starting scheduled alert evaluation")
    try:
        result = await service.run_evaluation()
    except Exception as e:
        logger.error(f"Scheduled alert evaluation failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e), "timestamp": _timestamp()},
        )

    logger.info(
        "Scheduled alert evaluation completed",
        evaluated=result.evaluated,
        triggered=result.triggered,
        sent=result.sent,
        failed=result.failed,
        skipped=result.skipped,
    )
    return CronEvaluateResponse(
        success=True,
        timestamp=_timestamp(),
        result=EvaluationResultModel(**result.to_dict()),
    )
