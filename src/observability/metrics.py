"""
Prometheus metrics for monitoring the alert engine.

Defines and exposes metrics for:
- Evaluation runs and their outcome
- Per-alert evaluation outcomes
- Notification delivery
- Job lock contention
- Run and send latency

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for run latency (in seconds); a run may take minutes
RUN_LATENCY_BUCKETS = (0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0)
SEND_LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the alert engine.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_run("completed", latency=1.2)
        metrics.record_notification("sent")
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        """Initialize Prometheus metrics.

        Args:
            registry: Registry to register into (tests pass a fresh one).
        """
        self.evaluation_runs = Counter(
            "penny_alerts_evaluation_runs_total",
            "Total evaluation runs",
            ["outcome"],  # completed, skipped, error
            registry=registry,
        )

        self.alerts_evaluated = Counter(
            "penny_alerts_alerts_evaluated_total",
            "Alerts evaluated, by outcome",
            ["outcome"],  # fired, skipped_cooldown, skipped_no_fire, unknown_type, error
            registry=registry,
        )

        self.notifications = Counter(
            "penny_alerts_notifications_total",
            "Notification attempts, by result",
            ["status"],  # sent, failed, suppressed
            registry=registry,
        )

        self.events_reused = Counter(
            "penny_alerts_events_reused_total",
            "AlertEvent rows reused within a bucket",
            registry=registry,
        )

        self.lock_contention = Counter(
            "penny_alerts_lock_contention_total",
            "Runs that found the job lock held by a live holder",
            ["job_type"],
            registry=registry,
        )

        self.run_latency = Histogram(
            "penny_alerts_run_latency_seconds",
            "Duration of an evaluation run",
            buckets=RUN_LATENCY_BUCKETS,
            registry=registry,
        )

        self.send_latency = Histogram(
            "penny_alerts_send_latency_seconds",
            "Duration of one notification send",
            ["sender"],
            buckets=SEND_LATENCY_BUCKETS,
            registry=registry,
        )

    def start_server(self, port: int | None = None) -> None:
        """
        Start HTTP server for Prometheus scraping.

        Args:
            port: Port to listen on (defaults to settings.metrics_port)
        """
        port = port or get_settings().metrics_port
        try:
            start_http_server(port)
            logger.info("Metrics server started on port %d", port)
        except OSError as e:
            logger.warning("Could not start metrics server on port %d: %s", port, e)

    def record_run(self, outcome: str, latency: float | None = None) -> None:
        """
        Record a finished evaluation run.

        Args:
            outcome: completed, skipped or error
            latency: Run duration in seconds
        """
        self.evaluation_runs.labels(outcome=outcome).inc()
        if latency is not None:
            self.run_latency.observe(latency)

    def record_alert_outcome(self, outcome: str) -> None:
        self.alerts_evaluated.labels(outcome=outcome.lower()).inc()

    def record_notification(
        self,
        status: str,
        sender: str | None = None,
        latency: float | None = None,
    ) -> None:
        """
        Record one notification attempt.

        Args:
            status: sent, failed or suppressed
            sender: Sender name, for the latency histogram
            latency: Send duration in seconds
        """
        self.notifications.labels(status=status).inc()
        if sender is not None and latency is not None:
            self.send_latency.labels(sender=sender).observe(latency)

    def record_event_reused(self) -> None:
        self.events_reused.inc()

    def record_lock_contention(self, job_type: str) -> None:
        self.lock_contention.labels(job_type=job_type).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
