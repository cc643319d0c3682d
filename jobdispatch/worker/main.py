"""
Worker process for executing jobs.

The worker pulls jobs from a dispatcher one at a time, executes them and
commits them back with their result fields.
"""

import asyncio
import logging
import os
import signal

from jobdispatch.config import get_settings
from jobdispatch.constants import SPAN_EXECUTE_JOB
from jobdispatch.exceptions import CommitCallbackError, DispatcherError
from jobdispatch.observability.logging import bind_context, setup_logging
from jobdispatch.observability.tracing import get_tracer, setup_tracing
from jobdispatch.types.job import Job
from jobdispatch.worker.client import DispatcherClient
from jobdispatch.worker.handlers import execute_job

logger = logging.getLogger(__name__)


class Worker:
    """
    Job worker that polls a dispatcher for jobs and executes them.

    Features:
    - One job at a time, committed whatever the handler outcome
    - Back-off of ``poll_interval`` seconds while the queue is empty
    - Optional exit once the queue is empty
    - Graceful shutdown on SIGTERM/SIGINT: the current job is finished first
    """

    def __init__(
        self,
        client: DispatcherClient,
        worker_id: str | None = None,
        poll_interval: float | None = None,
        exit_when_idle: bool | None = None,
    ):
        """
        Initialize the worker.

        Args:
            client: Client for the dispatcher to pull jobs from.
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            poll_interval: Seconds between polls when the queue is empty.
            exit_when_idle: Stop as soon as the queue is found empty.
        """
        settings = get_settings()

        self.client = client
        self.worker_id = worker_id or settings.worker_id or f"{os.uname().nodename}-{os.getpid()}"
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.worker_poll_interval_seconds
        )
        self.exit_when_idle = (
            exit_when_idle if exit_when_idle is not None else settings.worker_exit_when_idle
        )

        self.jobs_processed = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the polling loop until stopped."""
        bind_context(worker_id=self.worker_id)
        logger.info(
            "Worker starting",
            extra={"dispatcher_url": self.client.base_url, "poll_interval": self.poll_interval},
        )

        self._running = True

        while self._running:
            try:
                processed = await self._poll_and_execute()
            except DispatcherError as e:
                logger.warning(f"Dispatcher request failed: {e}")
                await asyncio.sleep(self.poll_interval)
                continue

            if processed:
                continue

            if self.exit_when_idle:
                logger.info("No waiting jobs, exiting")
                break
            await asyncio.sleep(self.poll_interval)

        self._running = False
        logger.info("Worker stopped", extra={"jobs_processed": self.jobs_processed})

    async def stop(self) -> None:
        """Stop the worker once the current job is committed."""
        logger.info("Worker stopping")
        self._running = False

    async def _poll_and_execute(self) -> bool:
        """
        Dequeue, execute and commit one job.

        Returns:
            Whether a job was processed.
        """
        job = await self.client.dequeue()
        if job is None:
            return False

        await self._execute_job(job)
        self.jobs_processed += 1
        return True

    async def _execute_job(self, job: Job) -> None:
        """
        Execute a job and commit its result fields.

        The commit is not retried: a rejected commit means the dispatcher
        no longer considers the job ours.
        """
        logger.info("Executing job", extra={"job_id": job.id})

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", job.id)
            span.set_attribute("worker_id", self.worker_id)

            result_fields = await execute_job(job)

        job.fields.update(result_fields)

        try:
            await self.client.commit(job)
        except CommitCallbackError as e:
            # Committed anyway; the failure is on the dispatcher side
            logger.warning(str(e), extra={"job_id": job.id})
            return

        logger.info(
            "Job committed",
            extra={"job_id": job.id, "status": result_fields.get("status")},
        )


async def run_async() -> None:
    """Run the worker asynchronously."""
    settings = get_settings()
    setup_logging()
    setup_tracing()

    async with DispatcherClient(
        base_url=settings.dispatcher_url,
        cache_size=settings.worker_cache_size,
    ) as client:
        worker = Worker(client)

        # Handle shutdown signals
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda: asyncio.create_task(worker.stop())
            )

        await worker.start()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
