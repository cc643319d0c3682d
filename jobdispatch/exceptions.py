"""
Error types raised by the dispatcher, the wire codec and the worker client.
"""


class DispatcherError(Exception):
    """Base class for all dispatcher errors."""


class DuplicateJobIdError(DispatcherError):
    """A job with the same id was already enqueued."""

    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"Job {job_id} is already known to the dispatcher")


class UnknownOrNotRunningJobError(DispatcherError):
    """
    A commit referenced a job that was never enqueued or is not running.

    Raised for duplicate and out-of-order commits; dispatcher state is left
    untouched.
    """

    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"Job {job_id} is unknown or not running")


class MalformedPayloadError(DispatcherError):
    """An inbound job representation could not be decoded."""


class CommitCallbackError(DispatcherError):
    """
    The commit callback failed after the job was committed.

    The state transition is not rolled back, so retrying the commit would be
    rejected.
    """

    def __init__(self, job_id: int, reason: str | None = None):
        self.job_id = job_id
        message = f"Commit callback failed for job {job_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DispatcherClientError(DispatcherError):
    """A worker-side request to the dispatcher failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
