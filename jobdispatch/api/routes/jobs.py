"""
Job routes: the protocol workers use to pull and return work.
"""

import logging
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request, Response, status
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool

from jobdispatch.api.deps import DispatcherDep
from jobdispatch.api.reports import render_job_report
from jobdispatch.constants import API_V1_PREFIX, JSON_MEDIA_TYPE
from jobdispatch.exceptions import MalformedPayloadError
from jobdispatch.types.api import ErrorResponse
from jobdispatch.types.codec import decode_job, decode_new_job, encode_job

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])


def _job_response(body: str, status_code: int = status.HTTP_200_OK) -> Response:
    return Response(content=body, status_code=status_code, media_type=JSON_MEDIA_TYPE)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Enqueue a job",
    description="Add a job at the tail of the waiting queue. The id is allocated when omitted.",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)
async def enqueue_job(request: Request, dispatcher: DispatcherDep) -> Response:
    """
    Enqueue a job submitted by a producer.

    Args:
        request: Request whose body is the encoded job.
        dispatcher: The dispatcher.

    Returns:
        The encoded job, including its id.
    """
    payload = decode_new_job(await request.body())
    job_id = payload.id if payload.id is not None else dispatcher.next_id()
    job = payload.to_job(job_id)

    await run_in_threadpool(dispatcher.enqueue, job)

    logger.info("Job enqueued", extra={"job_id": job.id})
    return _job_response(encode_job(job), status.HTTP_201_CREATED)


@router.get(
    "/dequeue",
    summary="Dequeue a job",
    description="Hand the oldest waiting job to the calling worker.",
    responses={status.HTTP_204_NO_CONTENT: {"description": "No work available"}},
)
def dequeue_job(dispatcher: DispatcherDep) -> Response:
    """
    Dequeue the oldest waiting job.

    An empty queue is a normal condition and answers 204 rather than an
    error.
    """
    job = dispatcher.dequeue()
    if job is None:
        logger.debug("No waiting jobs")
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return _job_response(encode_job(job))


@router.get(
    "/{job_id}",
    summary="Get a job",
    description="Get the current state of a job, as JSON or as an HTML page.",
)
def get_job(
    job_id: int,
    dispatcher: DispatcherDep,
    output: Literal["json", "html"] = Query(default="json"),
) -> Response:
    """
    Get a job by id, whatever its state.

    Raises:
        HTTPException: If the id is unknown.
    """
    job = dispatcher.get_job(job_id)

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    if output == "html":
        return HTMLResponse(render_job_report(job))
    return _job_response(encode_job(job))


@router.post(
    "/{job_id}/commit",
    summary="Commit a job",
    description="Return the result fields of a running job.",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def commit_job(job_id: int, request: Request, dispatcher: DispatcherDep) -> Response:
    """
    Commit a running job.

    The body is the encoded job; its id must match the one in the path.

    Raises:
        MalformedPayloadError: If the body cannot be decoded or names
            another job.
        UnknownOrNotRunningJobError: If the job is not running.
        CommitCallbackError: If the commit callback failed after the commit.
    """
    job = decode_job(await request.body())
    if job.id != job_id:
        raise MalformedPayloadError(
            f"Job id {job.id} in body does not match job id {job_id} in path"
        )

    await run_in_threadpool(dispatcher.commit, job)

    return Response(status_code=status.HTTP_200_OK)
