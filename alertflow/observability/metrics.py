"""
Prometheus metrics for the alert pipeline.

Covers both halves of the system:
- Alert processing outcomes (new / duplicate / correlated) and conflicts
- Change-feed throughput and disconnects
- Per-notifier delivery results and latency

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from alertflow.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class MetricsCollector:
    """
    Prometheus metrics collector for alertflow.

    Usage:
        metrics = get_metrics()
        metrics.record_processed("duplicate")
        metrics.record_notification("webhook", "success", 0.12)
    """

    def __init__(self):
        self.alerts_processed = Counter(
            "alertflow_alerts_processed_total",
            "Alerts submitted to the processor",
            ["outcome"],  # new, duplicate, correlated
        )

        self.process_conflicts = Counter(
            "alertflow_process_conflicts_total",
            "Optimistic concurrency conflicts seen while processing",
            ["error_type"],
        )

        self.feed_events = Counter(
            "alertflow_feed_events_total",
            "Change events read from the change feed",
            ["kind"],  # insert, update
        )

        self.feed_disconnects = Counter(
            "alertflow_feed_disconnects_total",
            "Change feed read failures",
        )

        self.feed_position = Gauge(
            "alertflow_feed_position",
            "Last change-feed sequence handed to the dispatcher",
        )

        self.notifications = Counter(
            "alertflow_notifications_total",
            "Notifier deliveries",
            ["notifier", "status"],  # success, failure, timeout, dropped
        )

        self.notification_latency = Histogram(
            "alertflow_notification_latency_seconds",
            "Time spent in a single notifier call",
            ["notifier"],
            buckets=LATENCY_BUCKETS,
        )

        self._server_started = False

    def start_server(self, port: int | None = None) -> None:
        """Start the Prometheus HTTP endpoint (idempotent)."""
        if self._server_started:
            return

        port = port or get_settings().metrics_port
        start_http_server(port)
        self._server_started = True
        logger.info("Metrics server started on port %d", port)

    def record_processed(self, outcome: str) -> None:
        self.alerts_processed.labels(outcome=outcome).inc()

    def record_conflict(self, error_type: str) -> None:
        self.process_conflicts.labels(error_type=error_type).inc()

    def record_feed_event(self, kind: str, sequence: int) -> None:
        self.feed_events.labels(kind=kind).inc()
        self.feed_position.set(sequence)

    def record_feed_disconnect(self) -> None:
        self.feed_disconnects.inc()

    def record_notification(
        self,
        notifier: str,
        status: str,
        latency: float | None = None,
    ) -> None:
        self.notifications.labels(notifier=notifier, status=status).inc()
        if latency is not None:
            self.notification_latency.labels(notifier=notifier).observe(latency)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
