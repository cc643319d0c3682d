"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client import CollectorRegistry

from jobdispatch.api.main import create_app
from jobdispatch.config import Settings
from jobdispatch.dispatcher import Dispatcher
from jobdispatch.observability.metrics import MetricsCollector
from jobdispatch.types.job import Job

TEST_BASE_URL = "http://test"


class RecordingCallback:
    """Commit callback that keeps every job it is given."""

    def __init__(self):
        self.jobs: list[Job] = []

    def __call__(self, job: Job) -> None:
        self.jobs.append(job)


class StopRecorder:
    """Stands in for the server shutdown hook."""

    def __init__(self):
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector with its own registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def committed_jobs() -> RecordingCallback:
    return RecordingCallback()


@pytest.fixture
def dispatcher(committed_jobs: RecordingCallback, metrics: MetricsCollector) -> Dispatcher:
    """Create an empty dispatcher recording its commits."""
    return Dispatcher(on_commit=committed_jobs, metrics=metrics)


@pytest.fixture
def resource_root(tmp_path: Path) -> Path:
    """Directory of static resources served by the test app."""
    root = tmp_path / "resources"
    (root / "models").mkdir(parents=True)
    (root / "models" / "vm.pbd").write_bytes(b"\x08\x96\x01")
    (root / "config.txt").write_text("nodes=12\n", encoding="utf-8")
    return root


@pytest.fixture
def test_settings(resource_root: Path) -> Settings:
    """Create test settings."""
    return Settings(
        log_level="DEBUG",
        log_format="console",
        resource_root=resource_root,
        worker_poll_interval_seconds=0.01,
        worker_exit_when_idle=True,
    )


@pytest.fixture
def stop_recorder() -> StopRecorder:
    return StopRecorder()


@pytest.fixture
def app(dispatcher: Dispatcher, test_settings: Settings, stop_recorder: StopRecorder) -> FastAPI:
    """Create a FastAPI app serving the test dispatcher."""
    return create_app(dispatcher=dispatcher, settings=test_settings, on_stop=stop_recorder)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=TEST_BASE_URL) as client:
        yield client


@pytest.fixture
def sample_job() -> Job:
    """Create a sample job."""
    return Job(id=1, fields={"job_type": "echo", "message": "Hello, World!"})
