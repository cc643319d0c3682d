"""
Integration tests for the API endpoints.
"""

import json

import pytest
import pytest_asyncio
from httpx import AsyncClient

from jobdispatch.constants import JobState
from jobdispatch.dispatcher import Dispatcher
from jobdispatch.types.job import Job


async def enqueue(client: AsyncClient, **fields) -> dict:
    response = await client.post("/v1/jobs", json=fields)
    assert response.status_code == 201
    return response.json()


class TestJobAPI:
    """Integration tests for job API endpoints."""

    @pytest_asyncio.fixture
    async def running_job(self, client: AsyncClient) -> dict:
        """Enqueue a job and dequeue it."""
        await enqueue(client, id=1, job_type="echo", message="hi")
        response = await client.get("/v1/jobs/dequeue")
        return response.json()

    @pytest.mark.asyncio
    async def test_enqueue_with_id(self, client: AsyncClient, dispatcher: Dispatcher):
        data = await enqueue(client, id=10, message="hello")

        assert data == {"id": 10, "message": "hello"}
        assert dispatcher.snapshot(JobState.WAITING) == [10]

    @pytest.mark.asyncio
    async def test_enqueue_allocates_id(self, client: AsyncClient, dispatcher: Dispatcher):
        dispatcher.enqueue(Job(id=0))

        data = await enqueue(client, message="hello")

        assert data["id"] == 1
        assert dispatcher.get_job(1).fields == {"message": "hello"}

    @pytest.mark.asyncio
    async def test_enqueue_duplicate_id(self, client: AsyncClient):
        await enqueue(client, id=3)

        response = await client.post("/v1/jobs", json={"id": 3})

        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_job_id"
        assert response.json()["job_id"] == 3

    @pytest.mark.asyncio
    async def test_enqueue_malformed(self, client: AsyncClient):
        response = await client.post("/v1/jobs", json={"id": 3, "count": 4})

        assert response.status_code == 400
        assert response.json()["error"] == "malformed_payload"

    @pytest.mark.asyncio
    async def test_dequeue_fifo(self, client: AsyncClient):
        for job_id in (1, 2, 3):
            await enqueue(client, id=job_id)

        response = await client.get("/v1/jobs/dequeue")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"id": 1}

        status = await client.get("/v1/status")
        assert status.text == "2/1/0"

    @pytest.mark.asyncio
    async def test_dequeue_empty(self, client: AsyncClient):
        response = await client.get("/v1/jobs/dequeue")

        assert response.status_code == 204
        assert response.content == b""

        status = await client.get("/v1/status")
        assert status.text == "0/0/0"

    @pytest.mark.asyncio
    async def test_commit(self, client: AsyncClient, running_job: dict, committed_jobs):
        running_job["echo"] = "hi"

        response = await client.post("/v1/jobs/1/commit", content=json.dumps(running_job))

        assert response.status_code == 200
        assert committed_jobs.jobs[0].fields == {"job_type": "echo", "message": "hi", "echo": "hi"}

        job = await client.get("/v1/jobs/1")
        assert job.json()["echo"] == "hi"

        status = await client.get("/v1/status")
        assert status.text == "0/0/1"

    @pytest.mark.asyncio
    async def test_commit_twice(self, client: AsyncClient, running_job: dict):
        await client.post("/v1/jobs/1/commit", content=json.dumps(running_job))

        response = await client.post("/v1/jobs/1/commit", content=json.dumps(running_job))

        assert response.status_code == 409
        assert response.json()["error"] == "unknown_or_not_running_job"

    @pytest.mark.asyncio
    async def test_commit_unknown(self, client: AsyncClient):
        response = await client.post("/v1/jobs/42/commit", json={"id": 42})

        assert response.status_code == 409

        status = await client.get("/v1/status")
        assert status.text == "0/0/0"

    @pytest.mark.asyncio
    async def test_commit_id_mismatch(self, client: AsyncClient, running_job: dict):
        response = await client.post("/v1/jobs/2/commit", json=running_job)

        assert response.status_code == 400
        assert "does not match" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_commit_malformed(self, client: AsyncClient, running_job: dict):
        response = await client.post("/v1/jobs/1/commit", content=b"{not json")

        assert response.status_code == 400

        status = await client.get("/v1/status")
        assert status.text == "0/1/0"

    @pytest.mark.asyncio
    async def test_commit_callback_failure(self, client: AsyncClient, dispatcher: Dispatcher):
        def failing_callback(job: Job) -> None:
            raise RuntimeError("sink unavailable")

        dispatcher._on_commit = failing_callback
        await enqueue(client, id=1)
        await client.get("/v1/jobs/dequeue")

        response = await client.post("/v1/jobs/1/commit", json={"id": 1})

        assert response.status_code == 500
        assert response.json()["error"] == "commit_callback_failed"
        assert dispatcher.get_job(1).state == JobState.COMMITTED

    @pytest.mark.asyncio
    async def test_get_job(self, client: AsyncClient):
        await enqueue(client, id=5, vm="vm-1")

        response = await client.get("/v1/jobs/5")

        assert response.status_code == 200
        assert response.json() == {"id": 5, "vm": "vm-1"}

    @pytest.mark.asyncio
    async def test_get_job_not_found(self, client: AsyncClient):
        response = await client.get("/v1/jobs/5")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_get_job_html(self, client: AsyncClient):
        await enqueue(client, id=5, vm="vm-1")

        response = await client.get("/v1/jobs/5", params={"output": "html"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Details of job 5" in response.text
        assert "<li>vm: vm-1</li>" in response.text


class TestDispatcherAPI:
    """Integration tests for dispatcher-wide endpoints."""

    @pytest.mark.asyncio
    async def test_overview(self, client: AsyncClient):
        for job_id in (1, 2, 3):
            await enqueue(client, id=job_id)
        await client.get("/v1/jobs/dequeue")

        response = await client.get("/")

        assert response.status_code == 200
        assert "3 jobs: 2 waiting; 1 running; 0 committed" in response.text
        assert response.text.index(">1</a>") < response.text.index(">2</a>")

    @pytest.mark.asyncio
    async def test_stop(self, client: AsyncClient, stop_recorder):
        response = await client.post("/v1/stop")

        assert response.status_code == 200
        assert stop_recorder.calls == 1

    @pytest.mark.asyncio
    async def test_stop_keeps_state(self, client: AsyncClient, stop_recorder):
        await enqueue(client, id=1)

        await client.get("/v1/stop")

        status = await client.get("/v1/status")
        assert status.text == "1/0/0"

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        await enqueue(client, id=1)

        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["waiting"] == 1

    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient):
        await client.get("/v1/status")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "api_requests_total" in response.text

    @pytest.mark.asyncio
    async def test_resource(self, client: AsyncClient):
        response = await client.get("/resources/models/vm.pbd")

        assert response.status_code == 200
        assert response.content == b"\x08\x96\x01"
        assert response.headers["content-type"] == "application/x-protobuf"

    @pytest.mark.asyncio
    async def test_resource_missing(self, client: AsyncClient):
        response = await client.get("/resources/nothing.txt")

        assert response.status_code == 404
