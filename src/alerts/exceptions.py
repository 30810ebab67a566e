"""Exceptions raised by the alert engine's store adapters."""


class AlertEngineError(Exception):
    """Base class for alert engine errors."""


class DuplicateAlertEventError(AlertEngineError):
    """An AlertEvent already exists for (alert_id, time_bucket)."""

    def __init__(self, alert_id: str, time_bucket: int) -> None:
        self.alert_id = alert_id
        self.time_bucket = time_bucket
        super().__init__(
            f"AlertEvent already exists for alert {alert_id} in bucket {time_bucket}"
        )


class AlertEventNotFoundError(AlertEngineError):
    """Lookup by id or (alert_id, time_bucket) found no row."""


class JobLockError(AlertEngineError):
    """The lock store could not be read or written while acquiring."""

    def __init__(self, job_type: str, cause: Exception) -> None:
        self.job_type = job_type
        super().__init__(f"Job lock store unavailable for {job_type}: {cause}")
