"""
Mapping of dispatcher errors to HTTP responses.

Each error type gets its own status code so that workers can tell an empty
queue, a rejected request and a server fault apart.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from jobdispatch.exceptions import (
    CommitCallbackError,
    DuplicateJobIdError,
    MalformedPayloadError,
    UnknownOrNotRunningJobError,
)
from jobdispatch.types.api import ErrorResponse

logger = logging.getLogger(__name__)

ERROR_DUPLICATE_JOB_ID = "duplicate_job_id"
ERROR_UNKNOWN_OR_NOT_RUNNING = "unknown_or_not_running_job"
ERROR_MALFORMED_PAYLOAD = "malformed_payload"
ERROR_COMMIT_CALLBACK_FAILED = "commit_callback_failed"


def _error_response(status_code: int, error: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(exclude_none=True),
    )


async def duplicate_job_id_handler(request: Request, exc: DuplicateJobIdError) -> JSONResponse:
    return _error_response(
        status.HTTP_409_CONFLICT,
        ErrorResponse(error=ERROR_DUPLICATE_JOB_ID, detail=str(exc), job_id=exc.job_id),
    )


async def unknown_or_not_running_handler(
    request: Request,
    exc: UnknownOrNotRunningJobError,
) -> JSONResponse:
    logger.warning(
        "Rejected commit",
        extra={"job_id": exc.job_id, "path": request.url.path},
    )
    return _error_response(
        status.HTTP_409_CONFLICT,
        ErrorResponse(error=ERROR_UNKNOWN_OR_NOT_RUNNING, detail=str(exc), job_id=exc.job_id),
    )


async def malformed_payload_handler(request: Request, exc: MalformedPayloadError) -> JSONResponse:
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        ErrorResponse(error=ERROR_MALFORMED_PAYLOAD, detail=str(exc)),
    )


async def commit_callback_handler(request: Request, exc: CommitCallbackError) -> JSONResponse:
    # The job is committed; the worker must not retry
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(error=ERROR_COMMIT_CALLBACK_FAILED, detail=str(exc), job_id=exc.job_id),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the dispatcher error handlers on an application."""
    app.add_exception_handler(DuplicateJobIdError, duplicate_job_id_handler)
    app.add_exception_handler(UnknownOrNotRunningJobError, unknown_or_not_running_handler)
    app.add_exception_handler(MalformedPayloadError, malformed_payload_handler)
    app.add_exception_handler(CommitCallbackError, commit_callback_handler)
