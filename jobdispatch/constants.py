"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobState(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - WAITING -> RUNNING (dequeued by a worker)
    - RUNNING -> COMMITTED (worker returned its result)

    There is no way back: a job never leaves COMMITTED and a RUNNING job
    abandoned by its worker stays RUNNING.
    """

    WAITING = "waiting"
    RUNNING = "running"
    COMMITTED = "committed"


# Default values
DEFAULT_PORT = 6758
DEFAULT_CACHE_SIZE = 200
DEFAULT_SHUTDOWN_GRACE_SECONDS = 5

# Wire format
JOB_ID_KEY = "id"
JSON_MEDIA_TYPE = "application/json"
PROTOBUF_MEDIA_TYPE = "application/x-protobuf"

# Fields written by workers
JOB_TYPE_FIELD = "job_type"
RESULT_STATUS_FIELD = "status"
RESULT_ERROR_FIELD = "error"
RESULT_DURATION_FIELD = "duration_ms"

# API constants
API_V1_PREFIX = "/v1"
RESOURCES_PREFIX = "/resources"

# HTML reports
REPORT_COLUMNS = 30
REPORT_REFRESH_SECONDS = 5
REPORT_TIME_FORMAT = "%Y/%m/%d at %H:%M:%S %Z"

# Metrics names
METRIC_QUEUE_DEPTH = "dispatcher_queue_depth"
METRIC_JOBS_ENQUEUED = "jobs_enqueued_total"
METRIC_JOBS_DEQUEUED = "jobs_dequeued_total"
METRIC_JOBS_COMMITTED = "jobs_committed_total"
METRIC_JOBS_REJECTED = "jobs_rejected_total"
METRIC_CALLBACK_FAILURES = "commit_callback_failures_total"
METRIC_JOB_RUN_TIME = "job_run_time_seconds"
METRIC_API_REQUESTS = "api_requests_total"
METRIC_API_LATENCY = "api_request_latency_seconds"

# Trace span names
SPAN_ENQUEUE_JOB = "enqueue_job"
SPAN_DEQUEUE_JOB = "dequeue_job"
SPAN_COMMIT_JOB = "commit_job"
SPAN_EXECUTE_JOB = "execute_job"
