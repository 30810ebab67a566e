"""Alert evaluation and notification engine.

Components:
- time_bucket: Fixed-width windows used as the idempotency key
- Alert / TickerSnapshot / AlertEvent / JobLockRecord: Dataclasses mapping to tables
- AlertConfig: Pydantic settings for windows, cooldown, lock lease and delivery
- classify_alert / evaluate_alert: Stateless threshold and cooldown evaluation
- AlertRepository / AlertEventRepository: asyncpg persistence
- JobLock / JobLockRepository: Run-level mutual exclusion with lease expiry
- NotificationSender / ResendEmailSender / UnconfiguredSender / CircuitBreaker: Delivery
- AlertEvaluationService: Orchestrator for one evaluation run
"""

from src.alerts.channels import (
    CircuitBreaker,
    NotificationSender,
    ResendEmailSender,
    SendResult,
    UnconfiguredSender,
    build_sender,
)
from src.alerts.config import AlertConfig
from src.alerts.exceptions import (
    AlertEngineError,
    AlertEventNotFoundError,
    DuplicateAlertEventError,
    JobLockError,
)
from src.alerts.lock import JobLock, JobLockRepository
from src.alerts.repository import AlertEventRepository, AlertRepository
from src.alerts.schemas import (
    ALERT_EVALUATION_JOB,
    VALID_ALERT_TYPES,
    VALID_EVENT_STATUSES,
    Alert,
    AlertCandidate,
    AlertEvent,
    AlertEventDetail,
    AlertTrigger,
    EvaluationResult,
    JobLockRecord,
    TickerSnapshot,
)
from src.alerts.service import AlertEvaluationService, create_alert_service
from src.alerts.triggers import classify_alert, evaluate_alert

__all__ = [
    "ALERT_EVALUATION_JOB",
    "Alert",
    "AlertCandidate",
    "AlertConfig",
    "AlertEngineError",
    "AlertEvaluationService",
    "AlertEvent",
    "AlertEventDetail",
    "AlertEventNotFoundError",
    "AlertEventRepository",
    "AlertRepository",
    "AlertTrigger",
    "CircuitBreaker",
    "DuplicateAlertEventError",
    "EvaluationResult",
    "JobLock",
    "JobLockError",
    "JobLockRecord",
    "JobLockRepository",
    "NotificationSender",
    "ResendEmailSender",
    "SendResult",
    "TickerSnapshot",
    "UnconfiguredSender",
    "VALID_ALERT_TYPES",
    "VALID_EVENT_STATUSES",
    "build_sender",
    "classify_alert",
    "create_alert_service",
    "evaluate_alert",
]
