"""
Job handlers registry and implementations.

A handler is picked by the ``job_type`` field of the job. Whatever the
outcome, the worker commits the job: failures are reported through the
result fields, never by leaving the job running.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from jobdispatch.constants import (
    JOB_TYPE_FIELD,
    RESULT_DURATION_FIELD,
    RESULT_ERROR_FIELD,
    RESULT_STATUS_FIELD,
)
from jobdispatch.types.job import Job, JobResult

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[Job], Awaitable[JobResult]]

DEFAULT_JOB_TYPE = "echo"

STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"

# Handler registry
_handlers: dict[str, JobHandler] = {}


def register_handler(job_type: str) -> Callable[[JobHandler], JobHandler]:
    """
    Decorator to register a job handler.

    Args:
        job_type: The job type this handler processes.

    Returns:
        Decorator function.

    Example:
        @register_handler("render")
        async def handle_render(job: Job) -> JobResult:
            ...
    """
    def decorator(handler: JobHandler) -> JobHandler:
        _handlers[job_type] = handler
        logger.debug("Registered job handler", extra={"job_type": job_type})
        return handler
    return decorator


def get_handler(job_type: str) -> JobHandler | None:
    """Get the handler for a job type, or None if there is none."""
    return _handlers.get(job_type)


def list_handlers() -> list[str]:
    """List all registered job types."""
    return list(_handlers.keys())


# ============================================================================
# Built-in job handlers
# ============================================================================


@register_handler("echo")
async def handle_echo(job: Job) -> JobResult:
    """
    Echo handler for testing.

    Returns the value of the ``message`` field as ``echo``.
    """
    logger.info("Echo job executing", extra={"job_id": job.id})

    return JobResult(
        success=True,
        output={"echo": job.fields.get("message", "")},
    )


@register_handler("sleep")
async def handle_sleep(job: Job) -> JobResult:
    """
    Sleep handler for testing delays.

    Reads the number of seconds from the ``duration_seconds`` field.
    """
    try:
        duration = float(job.fields.get("duration_seconds", "1"))
    except ValueError:
        return JobResult(
            success=False,
            error=f"Invalid duration_seconds: {job.fields['duration_seconds']!r}",
        )

    logger.info("Sleep job starting", extra={"job_id": job.id, "duration": duration})

    await asyncio.sleep(duration)

    return JobResult(
        success=True,
        output={"slept_for": str(duration)},
    )


@register_handler("failing_job")
async def handle_failing_job(job: Job) -> JobResult:
    """Handler that always fails."""
    logger.info("Failing job executing (will fail)", extra={"job_id": job.id})

    return JobResult(
        success=False,
        error=f"Intentional failure of job {job.id}",
    )


async def run_handler(job: Job) -> JobResult:
    """
    Run the handler matching the job's type.

    Jobs without a ``job_type`` field are echoed. Exceptions raised by the
    handler are turned into a failed result.
    """
    job_type = job.fields.get(JOB_TYPE_FIELD, DEFAULT_JOB_TYPE)

    handler = get_handler(job_type)

    if handler is None:
        logger.error(
            "No handler for job type",
            extra={"job_id": job.id, "job_type": job_type},
        )
        return JobResult(
            success=False,
            error=f"No handler registered for job type: {job_type}",
        )

    try:
        return await handler(job)
    except Exception as e:
        logger.exception(
            "Handler raised exception",
            extra={"job_id": job.id, "error": str(e)},
        )
        return JobResult(
            success=False,
            error=f"Handler exception: {e}",
        )


async def execute_job(job: Job) -> dict[str, str]:
    """
    Execute a job and build the fields to commit with it.

    Returns:
        The handler output plus ``status``, ``duration_ms`` and, on failure,
        ``error``.
    """
    start = time.perf_counter()
    result = await run_handler(job)
    duration_ms = (time.perf_counter() - start) * 1000

    fields = dict(result.output or {})
    fields[RESULT_STATUS_FIELD] = STATUS_SUCCEEDED if result.success else STATUS_FAILED
    fields[RESULT_DURATION_FIELD] = f"{result.duration_ms or duration_ms:.0f}"
    if not result.success:
        fields[RESULT_ERROR_FIELD] = result.error or "Unknown error"
    return fields
