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

from jobdispatch.constants import (
    METRIC_API_LATENCY,
    METRIC_API_REQUESTS,
    METRIC_CALLBACK_FAILURES,
    METRIC_JOB_RUN_TIME,
    METRIC_JOBS_COMMITTED,
    METRIC_JOBS_DEQUEUED,
    METRIC_JOBS_ENQUEUED,
    METRIC_JOBS_REJECTED,
    METRIC_QUEUE_DEPTH,
    JobState,
)
from jobdispatch.types.job import JobCounts

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job dispatcher.

    Collects metrics for:
    - Queue depth per state
    - Job transitions and rejected requests
    - Time jobs spend checked out to a worker
    - Commit callback failures
    - API requests
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
            "Number of jobs in each dispatcher queue",
            ["state"],
            registry=self._registry,
        )

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of jobs enqueued",
            registry=self._registry,
        )

        self.jobs_dequeued = Counter(
            METRIC_JOBS_DEQUEUED,
            "Total number of jobs handed to a worker",
            registry=self._registry,
        )

        self.jobs_committed = Counter(
            METRIC_JOBS_COMMITTED,
            "Total number of jobs committed by a worker",
            registry=self._registry,
        )

        # Duplicate enqueues and unknown or repeated commits
        self.jobs_rejected = Counter(
            METRIC_JOBS_REJECTED,
            "Total number of rejected dispatcher operations",
            ["operation"],
            registry=self._registry,
        )

        self.callback_failures = Counter(
            METRIC_CALLBACK_FAILURES,
            "Total number of commit callback failures",
            registry=self._registry,
        )

        self.job_run_time = Histogram(
            METRIC_JOB_RUN_TIME,
            "Time between dequeue and commit in seconds",
            buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0, 3600.0),
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
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0),
            registry=self._registry,
        )

    def record_enqueued(self) -> None:
        self.jobs_enqueued.inc()

    def record_dequeued(self) -> None:
        self.jobs_dequeued.inc()

    def record_committed(self, run_time_seconds: float | None) -> None:
        """Record a commit and how long the job was checked out."""
        self.jobs_committed.inc()
        if run_time_seconds is not None:
            self.job_run_time.observe(run_time_seconds)

    def record_rejected(self, operation: str) -> None:
        self.jobs_rejected.labels(operation=operation).inc()

    def record_callback_failure(self) -> None:
        self.callback_failures.inc()

    def update_queue_depth(self, counts: JobCounts) -> None:
        """Publish the size of every queue."""
        self.queue_depth.labels(state=JobState.WAITING.value).set(counts.waiting)
        self.queue_depth.labels(state=JobState.RUNNING.value).set(counts.running)
        self.queue_depth.labels(state=JobState.COMMITTED.value).set(counts.committed)

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
