"""
Health check routes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import Response

from jobdispatch import __version__
from jobdispatch.api.deps import DispatcherDep
from jobdispatch.observability.metrics import get_metrics
from jobdispatch.types.api import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the dispatcher and report its queue sizes.",
)
def health_check(dispatcher: DispatcherDep) -> HealthResponse:
    """
    Perform a health check.

    Args:
        dispatcher: The dispatcher.

    Returns:
        HealthResponse with service status and queue sizes.
    """
    counts = dispatcher.counts()
    return HealthResponse(
        status="healthy",
        version=__version__,
        waiting=counts.waiting,
        running=counts.running,
        committed=counts.committed,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    """
    Kubernetes liveness probe endpoint.

    Returns:
        Alive status.
    """
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics() -> Response:
    """
    Expose Prometheus metrics.

    Returns:
        Prometheus-formatted metrics.
    """
    metrics_collector = get_metrics()
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
