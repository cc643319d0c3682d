"""
FastAPI application entry point.
"""

import logging
import mimetypes
import time
from collections.abc import Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from jobdispatch import __version__
from jobdispatch.api.errors import register_error_handlers
from jobdispatch.api.routes import control_router, health_router, jobs_router
from jobdispatch.callbacks import CommitCallback, JsonLinesCommitWriter, log_committed_job
from jobdispatch.config import Settings, get_settings
from jobdispatch.constants import PROTOBUF_MEDIA_TYPE, RESOURCES_PREFIX
from jobdispatch.dispatcher import Dispatcher
from jobdispatch.observability.logging import setup_logging
from jobdispatch.observability.metrics import get_metrics, setup_metrics
from jobdispatch.observability.tracing import instrument_fastapi, setup_tracing

logger = logging.getLogger(__name__)

# Serialized jobs are commonly shipped as protobuf resources
mimetypes.add_type(PROTOBUF_MEDIA_TYPE, ".pbd")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events. Queue state is left as is on
    shutdown.
    """
    # Startup
    setup_logging()
    setup_metrics()
    setup_tracing()

    logger.info("Dispatcher started", extra={"counts": str(app.state.dispatcher.counts())})

    yield

    # Shutdown
    logger.info("Dispatcher stopped", extra={"counts": str(app.state.dispatcher.counts())})


def build_commit_callback(settings: Settings) -> CommitCallback:
    """Pick the commit callback configured by the settings."""
    if settings.commit_log_path is not None:
        return JsonLinesCommitWriter(settings.commit_log_path)
    return log_committed_job


def _stop_not_supported() -> None:
    logger.warning("Stop requested but no server is attached to this application")


def create_app(
    dispatcher: Dispatcher | None = None,
    settings: Settings | None = None,
    on_stop: Callable[[], None] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        dispatcher: The dispatcher to serve. A new one is created when
            omitted.
        settings: Settings to use instead of the environment.
        on_stop: Called by the stop route to shut the server down.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = settings or get_settings()
    if dispatcher is None:
        dispatcher = Dispatcher(on_commit=build_commit_callback(settings))

    app = FastAPI(
        title="Job Dispatcher API",
        description="Hands out jobs to remote workers and collects their results",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.dispatcher = dispatcher
    app.state.on_stop = on_stop or _stop_not_supported

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    @app.middleware("http")
    async def record_request_metrics(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        route = request.scope.get("route")
        get_metrics().record_api_request(
            method=request.method,
            endpoint=getattr(route, "path", "unmatched"),
            status=response.status_code,
            duration_seconds=time.perf_counter() - start,
        )
        return response

    # Include routers
    app.include_router(control_router)
    app.include_router(health_router)
    app.include_router(jobs_router)

    if settings.resource_root is not None:
        app.mount(
            RESOURCES_PREFIX,
            StaticFiles(directory=settings.resource_root),
            name="resources",
        )

    # Instrument with OpenTelemetry
    instrument_fastapi(app)

    return app


def run(dispatcher: Dispatcher | None = None) -> None:
    """
    Serve a dispatcher until the stop route is called or the process is
    interrupted.

    Args:
        dispatcher: Dispatcher already filled by the embedding application.
    """
    settings = get_settings()
    server: uvicorn.Server | None = None

    def request_shutdown() -> None:
        if server is not None:
            server.should_exit = True

    app = create_app(dispatcher=dispatcher, settings=settings, on_stop=request_shutdown)

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower(),
            timeout_graceful_shutdown=settings.shutdown_grace_seconds,
        )
    )
    server.run()


if __name__ == "__main__":
    run()
