"""Notification senders for alert delivery.

Provides an ABC for senders plus a Resend email implementation, a sender
for the unconfigured case, and a CircuitBreaker decorator that stops
hammering the transport while it is unhealthy.

Senders report failure through ``SendResult`` instead of raising, so the
orchestrator can record the message on the AlertEvent.

Pattern: Decorator (CircuitBreaker wraps any NotificationSender).
"""

import enum
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from src.alerts.config import AlertConfig
from src.config.settings import Settings

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Email service not configured"


@dataclass(frozen=True)
class SendResult:
    """Outcome of one delivery attempt."""

    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> "SendResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> "SendResult":
        return cls(ok=False, error=error)


class NotificationSender(ABC):
    """Abstract base for notification transports."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this sender (e.g. 'resend')."""

    @property
    def configured(self) -> bool:
        return True

    @abstractmethod
    async def send(self, recipient: str, subject: str, body: str) -> SendResult:
        """Deliver a message.

        Args:
            recipient: Destination address.
            subject: Message subject.
            body: HTML body.

        Returns:
            SendResult with ``ok`` or an error message.
        """


class ResendEmailSender(NotificationSender):
    """Sends HTML email through the Resend REST API.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling)
    matching the project's HTTP pattern.
    """

    def __init__(
        self,
        api_key: str,
        from_address: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._from_address = from_address
        self._api_url = api_url
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "resend"

    def _build_payload(self, recipient: str, subject: str, body: str) -> dict:
        return {
            "from": self._from_address,
            "to": recipient,
            "subject": subject,
            "html": body,
        }

    async def send(self, recipient: str, subject: str, body: str) -> SendResult:
        payload = self._build_payload(recipient, subject, body)
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._api_url, json=payload, headers=headers)
                if resp.is_success:
                    return SendResult.success()
                error = _error_from_response(resp)
                logger.warning(
                    "Resend returned %d for %s: %s",
                    resp.status_code, recipient, error,
                )
                return SendResult.failure(error)
        except httpx.TimeoutException:
            logger.warning("Resend timed out sending to %s", recipient)
            return SendResult.failure("Email send timed out")
        except httpx.HTTPError as e:
            logger.warning("Resend request failed for %s: %s", recipient, e)
            return SendResult.failure(f"Email transport error: {e}")


class UnconfiguredSender(NotificationSender):
    """Stands in when no transport credentials are configured.

    Every send fails with the same message, so events land in FAILED and
    stay retryable once the transport is configured.
    """

    @property
    def name(self) -> str:
        return "unconfigured"

    @property
    def configured(self) -> bool:
        return False

    async def send(self, recipient: str, subject: str, body: str) -> SendResult:
        logger.warning("Email service not available - marking alert as failed")
        return SendResult.failure(NOT_CONFIGURED_MESSAGE)


class CircuitState(enum.Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker(NotificationSender):
    """Wraps a NotificationSender with circuit breaker protection.

    State machine: CLOSED → OPEN → HALF_OPEN → CLOSED.

    - CLOSED: All sends pass through. Consecutive failures tracked.
    - OPEN: Sends rejected immediately. After recovery_timeout, moves
      to HALF_OPEN.
    - HALF_OPEN: Single probe allowed. Success → CLOSED, failure → OPEN.
    """

    def __init__(
        self,
        sender: NotificationSender,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ) -> None:
        self._sender = sender
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: float = 0.0

    @property
    def name(self) -> str:
        return self._sender.name

    @property
    def configured(self) -> bool:
        return self._sender.configured

    @property
    def state(self) -> CircuitState:
        return self._state

    async def send(self, recipient: str, subject: str, body: str) -> SendResult:
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time >= self._recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info(
                    "Circuit breaker %s: OPEN → HALF_OPEN (recovery probe)",
                    self.name,
                )
            else:
                logger.debug(
                    "Circuit breaker %s: OPEN, rejecting send to %s",
                    self.name, recipient,
                )
                return SendResult.failure(f"Circuit open for {self.name}")

        result = await self._sender.send(recipient, subject, body)

        if result.ok:
            if self._state == CircuitState.HALF_OPEN:
                logger.info(
                    "Circuit breaker %s: HALF_OPEN → CLOSED (probe succeeded)",
                    self.name,
                )
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
        else:
            self._consecutive_failures += 1
            self._last_failure_time = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.warning(
                    "Circuit breaker %s: HALF_OPEN → OPEN (probe failed)",
                    self.name,
                )
            elif self._consecutive_failures >= self._failure_threshold:
                self._state = CircuitState.OPEN
                logger.warning(
                    "Circuit breaker %s: CLOSED → OPEN after %d failures",
                    self.name, self._consecutive_failures,
                )

        return result


def build_sender(settings: Settings, config: AlertConfig) -> NotificationSender:
    """Create the configured sender.

    Without a Resend API key the unconfigured sender is used; that is a
    normal deployment state, not an error. A real transport is wrapped in
    a circuit breaker.
    """
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY not configured - email notifications disabled")
        return UnconfiguredSender()

    sender = ResendEmailSender(
        api_key=settings.resend_api_key,
        from_address=config.from_address,
        api_url=settings.resend_api_url,
        timeout=settings.email_timeout_seconds,
    )
    return CircuitBreaker(
        sender=sender,
        failure_threshold=config.circuit_breaker_threshold,
        recovery_timeout=config.circuit_breaker_recovery_seconds,
    )


def _error_from_response(resp: httpx.Response) -> str:
    """Pull Resend's ``message`` out of an error response, falling back to the status."""
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"HTTP {resp.status_code}"
