"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)

from dbqueue.constants import (
    METRIC_JOBS_DELETED,
    METRIC_JOBS_PUSHED,
    METRIC_JOBS_RELEASED,
    METRIC_JOBS_RESERVED,
    METRIC_QUEUE_DEPTH,
    METRIC_RESERVATIONS_LOST,
    METRIC_RESERVATIONS_RECLAIMED,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the queue.

    Collects metrics for:
    - Queue depth
    - Pushes, claims, releases and deletes
    - Reservations reclaimed after expiry
    - Reservations lost by their holder
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of jobs in the queue, reserved ones included",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_pushed = Counter(
            METRIC_JOBS_PUSHED,
            "Total number of jobs pushed",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_reserved = Counter(
            METRIC_JOBS_RESERVED,
            "Total number of jobs claimed by pop",
            ["queue"],
            registry=self._registry,
        )

        self.reservations_reclaimed = Counter(
            METRIC_RESERVATIONS_RECLAIMED,
            "Total number of expired reservations claimed again",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_released = Counter(
            METRIC_JOBS_RELEASED,
            "Total number of jobs released back to the queue",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_deleted = Counter(
            METRIC_JOBS_DELETED,
            "Total number of reserved jobs deleted",
            ["queue"],
            registry=self._registry,
        )

        self.reservations_lost = Counter(
            METRIC_RESERVATIONS_LOST,
            "Total number of release/delete calls on a lost reservation",
            ["queue"],
            registry=self._registry,
        )

    def record_pushed(self, queue: str, count: int = 1) -> None:
        """Record pushed jobs."""
        self.jobs_pushed.labels(queue=queue).inc(count)

    def record_reserved(self, queue: str, reclaimed: bool = False) -> None:
        """Record a claim, flagging claims of an expired reservation."""
        self.jobs_reserved.labels(queue=queue).inc()
        if reclaimed:
            self.reservations_reclaimed.labels(queue=queue).inc()

    def record_released(self, queue: str) -> None:
        """Record a release."""
        self.jobs_released.labels(queue=queue).inc()

    def record_deleted(self, queue: str) -> None:
        """Record a delete."""
        self.jobs_deleted.labels(queue=queue).inc()

    def record_reservation_lost(self, queue: str) -> None:
        """Record a lost reservation."""
        self.reservations_lost.labels(queue=queue).inc()

    def update_queue_depth(self, queue: str, depth: int) -> None:
        """Update queue depth for a queue."""
        self.queue_depth.labels(queue=queue).set(depth)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
