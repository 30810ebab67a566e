"""Alert evaluation run: lock, evaluate, record, deliver, release.

The only component with side effects. Trigger logic is delegated to the
stateless functions in ``triggers.py``; persistence to the repositories;
delivery to a ``NotificationSender``.

Per alert the chain is strictly ordered: create-or-reuse the AlertEvent,
send, record the status, then (on delivery only) start the cooldown.
A failure inside one alert's chain is recorded in the run result and
never aborts the remaining alerts.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from src.alerts import time_bucket
from src.alerts.channels import NotificationSender, SendResult, build_sender
from src.alerts.config import AlertConfig
from src.alerts.exceptions import JobLockError
from src.alerts.formatting import DEFAULT_BASE_URL, build_html_body, build_subject
from src.alerts.lock import JobLock, JobLockRepository, new_holder_id
from src.alerts.repository import AlertEventRepository, AlertRepository
from src.alerts.schemas import AlertCandidate, AlertEvent, AlertTrigger, EvaluationResult
from src.alerts.triggers import classify_alert
from src.config.settings import Settings, get_settings
from src.observability.metrics import MetricsCollector, get_metrics
from src.observability.tracing import get_tracer, traced
from src.storage.database import Database

logger = logging.getLogger(__name__)

ALREADY_RUNNING_MESSAGE = "Job already running - concurrent execution prevented"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertEvaluationService:
    """Orchestrator for one evaluation run over all active alerts.

    Stateless between runs and safe to invoke repeatedly: the job lock keeps
    runs from overlapping, the (alert, bucket) unique key keeps a retry from
    creating a second event, and the cooldown keeps a delivered alert quiet.
    """

    def __init__(
        self,
        config: AlertConfig,
        alert_repo: AlertRepository,
        event_repo: AlertEventRepository,
        lock: JobLock,
        sender: NotificationSender,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] = _utcnow,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self._config = config
        self._alert_repo = alert_repo
        self._event_repo = event_repo
        self._lock = lock
        self._sender = sender
        self._metrics = metrics
        self._clock = clock
        self._base_url = base_url
        self._tracer = get_tracer("alerts.service")

    @property
    def sender(self) -> NotificationSender:
        return self._sender

    async def run_evaluation(self) -> EvaluationResult:
        """Main entry point for both the scheduled and the manual trigger.

        Returns:
            Aggregate counts and error strings. A run that found the lock
            held returns ``skipped=True`` with no counts. A lock store that
            cannot be reached is reported as a system error, not a skip.
        """
        result = EvaluationResult()
        job_type = self._config.job_type
        holder_id = new_holder_id()
        start_time = time.perf_counter()

        try:
            async with self._lock.hold(job_type, holder_id, self._config.lock_ttl) as acquired:
                if not acquired:
                    logger.info("Alert evaluation already running, skipping this execution")
                    result.skipped = True
                    result.errors.append(ALREADY_RUNNING_MESSAGE)
                    if self._metrics is not None:
                        self._metrics.record_lock_contention(job_type)
                        self._metrics.record_run("skipped")
                    return result

                outcome = await self._evaluate_all(holder_id, result)
        except JobLockError as e:
            outcome = "error"
            logger.error("Alert evaluation could not take the job lock: %s", e)
            result.errors.append(f"System error: {e}")

        if self._metrics is not None:
            self._metrics.record_run(outcome, time.perf_counter() - start_time)
        return result

    async def _evaluate_all(self, holder_id: str, result: EvaluationResult) -> str:
        """Evaluate every active alert while holding the lock.

        Returns:
            The run outcome label, "completed" or "error".
        """
        try:
            logger.info("Alert evaluation started (holder %s)", holder_id)
            with traced(self._tracer, "alerts.evaluate", {"job.holder": holder_id}) as span:
                # Store unreachable for the whole batch aborts the run
                candidates = await self._alert_repo.list_active_with_tickers()

                result.evaluated = len(candidates)
                for candidate in candidates:
                    await self._process_candidate(candidate, result)

                span.set_attribute("alerts.evaluated", result.evaluated)
                span.set_attribute("alerts.triggered", result.triggered)
                span.set_attribute("alerts.sent", result.sent)
                span.set_attribute("alerts.failed", result.failed)
        except Exception as e:
            logger.error("Alert evaluation system error: %s", e, exc_info=True)
            result.errors.append(f"System error: {e}")
            return "error"

        logger.info(
            "Alert evaluation complete: evaluated=%d triggered=%d sent=%d failed=%d",
            result.evaluated, result.triggered, result.sent, result.failed,
        )
        return "completed"

    async def _process_candidate(
        self,
        candidate: AlertCandidate,
        result: EvaluationResult,
    ) -> None:
        """Run one alert through evaluate → record → deliver, containing failures."""
        alert = candidate.alert
        try:
            with traced(self._tracer, "alerts.process_alert", {"alert.id": alert.alert_id}):
                now = self._clock()
                outcome, trigger = classify_alert(
                    alert,
                    candidate.snapshot,
                    now,
                    candidate.owner_email,
                    self._config.cooldown,
                )
                self._record_outcome(outcome)
                if trigger is None:
                    return

                result.triggered += 1
                event = await self._create_or_reuse_event(trigger, now)

                if event.status == "SENT" and self._config.skip_already_sent:
                    logger.info(
                        "AlertEvent %s already SENT for alert %s, not resending",
                        event.event_id, alert.alert_id,
                    )
                    if self._metrics is not None:
                        self._metrics.record_notification("suppressed")
                    return

                if await self._deliver(trigger, event, now):
                    result.sent += 1
                else:
                    result.failed += 1

        except Exception as e:
            result.failed += 1
            result.errors.append(f"Alert {alert.alert_id}: {e}")
            logger.error(
                "Alert evaluation error for %s: %s", alert.alert_id, e, exc_info=True,
            )
            self._record_outcome("ERROR")

    async def _create_or_reuse_event(self, trigger: AlertTrigger, now: datetime) -> AlertEvent:
        """Create the PENDING event for this bucket, or reuse the existing one as-is."""
        bucket = time_bucket.bucket(now, self._config.bucket_width_ms)
        event, created = await self._event_repo.create_or_get(
            trigger.alert_id, now, bucket, trigger.measured_value,
        )
        if created:
            logger.info(
                "Created AlertEvent %s for alert %s in bucket %d",
                event.event_id, trigger.alert_id, bucket,
            )
        else:
            logger.info(
                "Reusing AlertEvent %s for alert %s in bucket %d (status: %s)",
                event.event_id, trigger.alert_id, bucket, event.status,
            )
            if self._metrics is not None:
                self._metrics.record_event_reused()
        return event

    async def _deliver(self, trigger: AlertTrigger, event: AlertEvent, now: datetime) -> bool:
        """Send the notification and record the outcome on the event.

        ``last_triggered`` is written only after a confirmed delivery so a
        failed send stays retryable without tripping its own cooldown.

        Returns:
            True if delivered.
        """
        subject = build_subject(trigger)
        body = build_html_body(trigger, now, self._base_url)

        start_time = time.perf_counter()
        try:
            send_result = await self._sender.send(trigger.user_email, subject, body)
        except Exception as e:
            send_result = SendResult.failure(str(e) or type(e).__name__)
        latency = time.perf_counter() - start_time

        if send_result.ok:
            await self._event_repo.mark_sent(event.event_id, now)
            await self._alert_repo.update_last_triggered(trigger.alert_id, now)
            logger.info(
                "Alert notification sent to %s for %s (event %s)",
                trigger.user_email, trigger.ticker_symbol, event.event_id,
            )
            if self._metrics is not None:
                self._metrics.record_notification("sent", self._sender.name, latency)
            return True

        error = send_result.error or "Unknown send error"
        await self._event_repo.mark_failed(event.event_id, error)
        logger.warning(
            "Failed to send alert notification for %s (event %s): %s",
            trigger.alert_id, event.event_id, error,
        )
        if self._metrics is not None:
            self._metrics.record_notification("failed", self._sender.name, latency)
        return False

    def _record_outcome(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_alert_outcome(outcome)


def create_alert_service(
    database: Database,
    settings: Settings | None = None,
    config: AlertConfig | None = None,
    sender: NotificationSender | None = None,
    metrics: MetricsCollector | None = None,
) -> AlertEvaluationService:
    """Wire an AlertEvaluationService against a connected database.

    Args:
        database: Connected Database.
        settings: Application settings (defaults to the cached settings).
        config: Alert engine config (defaults to environment).
        sender: Override the transport (defaults to ``build_sender``).
        metrics: Metrics collector (defaults to the global collector).
    """
    settings = settings or get_settings()
    config = config or AlertConfig()

    return AlertEvaluationService(
        config=config,
        alert_repo=AlertRepository(database),
        event_repo=AlertEventRepository(database),
        lock=JobLock(JobLockRepository(database), ttl=config.lock_ttl),
        sender=sender or build_sender(settings, config),
        metrics=metrics if metrics is not None else get_metrics(),
        base_url=settings.app_base_url,
    )
