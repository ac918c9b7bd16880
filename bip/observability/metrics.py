"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from bip.constants import (
    METRIC_API_LATENCY,
    METRIC_API_REQUESTS,
    METRIC_JOBS_BY_STATUS,
    METRIC_JOBS_CLAIMED,
    METRIC_JOBS_CREATED,
    METRIC_RESULTS_ADDED,
    METRIC_STORAGE_ERRORS,
    METRIC_TRANSITIONS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Jobs per status
    - Job creations, claims and status transitions
    - Results stored
    - Storage failures
    - API requests
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_by_status = Gauge(
            METRIC_JOBS_BY_STATUS,
            "Number of jobs per status",
            ["status"],
            registry=self._registry,
        )

        self.jobs_created = Counter(
            METRIC_JOBS_CREATED,
            "Total number of jobs created",
            registry=self._registry,
        )

        self.jobs_claimed = Counter(
            METRIC_JOBS_CLAIMED,
            "Total number of jobs handed out by claim-next",
            registry=self._registry,
        )

        self.transitions = Counter(
            METRIC_TRANSITIONS,
            "Total number of job status transitions",
            ["status"],
            registry=self._registry,
        )

        self.results_added = Counter(
            METRIC_RESULTS_ADDED,
            "Total number of job results stored",
            registry=self._registry,
        )

        self.storage_errors = Counter(
            METRIC_STORAGE_ERRORS,
            "Total number of durable storage failures",
            ["operation"],
            registry=self._registry,
        )

        self.api_requests = Counter(
            METRIC_API_REQUESTS,
            "Total number of API requests",
            ["method", "endpoint", "status"],
            registry=self._registry,
        )

        self.api_latency = Histogram(
            METRIC_API_LATENCY,
            "API request latency in seconds",
            ["method", "endpoint"],
            buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

    def record_job_created(self) -> None:
        self.jobs_created.inc()

    def record_job_claimed(self) -> None:
        self.jobs_claimed.inc()

    def record_transition(self, status: str) -> None:
        self.transitions.labels(status=status).inc()

    def record_result_added(self) -> None:
        self.results_added.inc()

    def record_storage_error(self, operation: str) -> None:
        self.storage_errors.labels(operation=operation).inc()

    def update_job_counts(self, stats: dict[str, int]) -> None:
        """Set the per-status gauge from a status -> count mapping."""
        for status, count in stats.items():
            self.jobs_by_status.labels(status=status).set(count)

    def record_api_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration_seconds: float,
    ) -> None:
        """Record an API request."""
        self.api_requests.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()
        self.api_latency.labels(method=method, endpoint=endpoint).observe(
            duration_seconds
        )

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
