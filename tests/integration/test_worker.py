"""
Integration tests for the worker side: the dispatcher client and the
polling worker, run against the in-process API.
"""

import asyncio
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport

from jobdispatch.constants import JobState
from jobdispatch.dispatcher import Dispatcher
from jobdispatch.exceptions import CommitCallbackError, DispatcherClientError
from jobdispatch.types.job import Job, JobCounts
from jobdispatch.worker.client import DispatcherClient
from jobdispatch.worker.main import Worker

TEST_BASE_URL = "http://test"


@pytest_asyncio.fixture
async def dispatcher_client(app: FastAPI) -> AsyncGenerator[DispatcherClient]:
    """Create a dispatcher client talking to the test app."""
    async with DispatcherClient(
        base_url=TEST_BASE_URL,
        cache_size=2,
        transport=ASGITransport(app=app),
    ) as client:
        yield client


class TestDispatcherClient:
    """Integration tests for DispatcherClient."""

    @pytest.mark.asyncio
    async def test_dequeue_and_commit(
        self,
        dispatcher_client: DispatcherClient,
        dispatcher: Dispatcher,
        committed_jobs,
    ):
        dispatcher.enqueue(Job(id=1, fields={"input": "x"}))

        job = await dispatcher_client.dequeue()
        assert job.id == 1
        assert job.fields == {"input": "x"}

        job.fields["output"] = "y"
        await dispatcher_client.commit(job)

        assert committed_jobs.jobs[0].fields == {"input": "x", "output": "y"}
        assert await dispatcher_client.status() == JobCounts(0, 0, 1)

    @pytest.mark.asyncio
    async def test_dequeue_empty(self, dispatcher_client: DispatcherClient):
        assert await dispatcher_client.dequeue() is None

    @pytest.mark.asyncio
    async def test_commit_rejected(self, dispatcher_client: DispatcherClient):
        with pytest.raises(DispatcherClientError) as exc_info:
            await dispatcher_client.commit(Job(id=5))

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_commit_callback_failure(
        self,
        dispatcher_client: DispatcherClient,
        dispatcher: Dispatcher,
    ):
        def failing_callback(job: Job) -> None:
            raise RuntimeError("sink unavailable")

        dispatcher._on_commit = failing_callback
        dispatcher.enqueue(Job(id=1))
        job = await dispatcher_client.dequeue()

        with pytest.raises(CommitCallbackError):
            await dispatcher_client.commit(job)

        assert dispatcher.get_job(1).state == JobState.COMMITTED

    @pytest.mark.asyncio
    async def test_get_job(self, dispatcher_client: DispatcherClient, dispatcher: Dispatcher):
        dispatcher.enqueue(Job(id=3, fields={"a": "b"}))

        job = await dispatcher_client.get_job(3)

        assert job.fields == {"a": "b"}
        assert await dispatcher_client.get_job(4) is None

    @pytest.mark.asyncio
    async def test_stop_dispatcher(self, dispatcher_client: DispatcherClient, stop_recorder):
        await dispatcher_client.stop_dispatcher()

        assert stop_recorder.calls == 1

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with DispatcherClient(
            base_url=TEST_BASE_URL,
            transport=httpx.MockTransport(refuse),
        ) as client:
            with pytest.raises(DispatcherClientError):
                await client.dequeue()


class TestResources:
    """Tests for resource fetching and caching."""

    @pytest.mark.asyncio
    async def test_get_resource(self, dispatcher_client: DispatcherClient):
        content = await dispatcher_client.get_resource("models/vm.pbd")

        assert content == b"\x08\x96\x01"
        assert dispatcher_client.cached_resources == ["models/vm.pbd"]

    @pytest.mark.asyncio
    async def test_get_resource_missing(self, dispatcher_client: DispatcherClient):
        assert await dispatcher_client.get_resource("nothing.bin") is None
        assert dispatcher_client.cached_resources == []

    @pytest.mark.asyncio
    async def test_cache_served_without_request(
        self,
        dispatcher_client: DispatcherClient,
        resource_root,
    ):
        await dispatcher_client.get_resource("config.txt")
        (resource_root / "config.txt").unlink()

        assert await dispatcher_client.get_resource_as_string("config.txt") == "nodes=12\n"

    @pytest.mark.asyncio
    async def test_cache_evicts_oldest(self, dispatcher_client: DispatcherClient, resource_root):
        (resource_root / "third.txt").write_text("3", encoding="utf-8")

        await dispatcher_client.get_resource("config.txt")
        await dispatcher_client.get_resource("models/vm.pbd")
        await dispatcher_client.get_resource("third.txt")

        assert dispatcher_client.cached_resources == ["models/vm.pbd", "third.txt"]

    @pytest.mark.asyncio
    async def test_flush_cache(self, dispatcher_client: DispatcherClient):
        await dispatcher_client.get_resource("config.txt")

        dispatcher_client.flush_cache()

        assert dispatcher_client.cached_resources == []

    @pytest.mark.asyncio
    async def test_store_resource(self, dispatcher_client: DispatcherClient):
        path = await dispatcher_client.store_resource("models/vm.pbd")

        try:
            assert path.name.endswith("vm.pbd")
            assert path.read_bytes() == b"\x08\x96\x01"
        finally:
            path.unlink()

    @pytest.mark.asyncio
    async def test_store_resource_missing(self, dispatcher_client: DispatcherClient):
        assert await dispatcher_client.store_resource("nothing.bin") is None


class TestWorker:
    """Integration tests for the polling worker."""

    @pytest.mark.asyncio
    async def test_processes_every_job_then_exits(
        self,
        dispatcher_client: DispatcherClient,
        dispatcher: Dispatcher,
        committed_jobs,
    ):
        dispatcher.enqueue(Job(id=1, fields={"job_type": "echo", "message": "one"}))
        dispatcher.enqueue(Job(id=2, fields={"job_type": "failing_job"}))
        dispatcher.enqueue(Job(id=3, fields={"job_type": "unknown"}))

        worker = Worker(dispatcher_client, worker_id="test-worker", poll_interval=0.01, exit_when_idle=True)
        await asyncio.wait_for(worker.start(), timeout=5)

        assert worker.jobs_processed == 3
        assert dispatcher.counts() == JobCounts(0, 0, 3)

        results = {job.id: job.fields for job in committed_jobs.jobs}
        assert results[1]["status"] == "succeeded"
        assert results[1]["echo"] == "one"
        assert results[2]["status"] == "failed"
        assert "Intentional failure" in results[2]["error"]
        assert "No handler registered" in results[3]["error"]

    @pytest.mark.asyncio
    async def test_stop(self, dispatcher_client: DispatcherClient):
        worker = Worker(dispatcher_client, worker_id="test-worker", poll_interval=0.01, exit_when_idle=False)
        task = asyncio.create_task(worker.start())

        await asyncio.sleep(0.05)
        assert worker.running is True

        await worker.stop()
        await asyncio.wait_for(task, timeout=5)

        assert worker.running is False
        assert worker.jobs_processed == 0

    @pytest.mark.asyncio
    async def test_commit_callback_failure_does_not_stop_worker(
        self,
        dispatcher_client: DispatcherClient,
        dispatcher: Dispatcher,
    ):
        def failing_callback(job: Job) -> None:
            raise RuntimeError("sink unavailable")

        dispatcher._on_commit = failing_callback
        dispatcher.enqueue(Job(id=1))
        dispatcher.enqueue(Job(id=2))

        worker = Worker(dispatcher_client, worker_id="test-worker", poll_interval=0.01, exit_when_idle=True)
        await asyncio.wait_for(worker.start(), timeout=5)

        assert dispatcher.counts() == JobCounts(0, 0, 2)
