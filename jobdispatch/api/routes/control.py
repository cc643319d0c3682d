"""
Dispatcher-wide routes: overall status, HTML overview and shutdown.
"""

import logging
from collections import Counter

from fastapi import APIRouter, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from jobdispatch.api.deps import DispatcherDep
from jobdispatch.api.reports import render_jobs_report
from jobdispatch.constants import API_V1_PREFIX, JobState
from jobdispatch.types.job import JobCounts

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Dispatcher"])


@router.get(
    "/",
    response_class=HTMLResponse,
    summary="Jobs overview",
    description="Human-readable page listing every job and its state.",
)
def jobs_report(dispatcher: DispatcherDep) -> HTMLResponse:
    """Render the overview of all jobs."""
    jobs = dispatcher.list_jobs()
    states = Counter(job.state for job in jobs)
    counts = JobCounts(
        waiting=states[JobState.WAITING],
        running=states[JobState.RUNNING],
        committed=states[JobState.COMMITTED],
    )
    return HTMLResponse(render_jobs_report(jobs, counts))


@router.get(
    f"{API_V1_PREFIX}/status",
    response_class=PlainTextResponse,
    summary="Queue sizes",
    description="Number of waiting, running and committed jobs as 'waiting/running/committed'.",
)
def overall_status(dispatcher: DispatcherDep) -> PlainTextResponse:
    """Report the size of the three queues."""
    return PlainTextResponse(str(dispatcher.counts()))


@router.api_route(
    f"{API_V1_PREFIX}/stop",
    methods=["GET", "POST"],
    summary="Stop the dispatcher",
    description="Stop serving once in-flight requests are done. Queue state is kept.",
)
def stop(request: Request, dispatcher: DispatcherDep) -> Response:
    """Ask the server hosting this application to shut down."""
    logger.info(
        "Stop requested",
        extra={"counts": str(dispatcher.counts()), "client": request.client.host if request.client else None},
    )
    request.app.state.on_stop()
    return Response(status_code=status.HTTP_200_OK)
