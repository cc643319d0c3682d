"""
In-memory job dispatcher.

Owns job identity and the three queues a job moves through:

- waiting: FIFO of ids not handed out yet
- running: ids checked out to a worker
- committed: ids returned by their worker, in commit order

A single lock guards the queues and the id -> job table, so every
transition is atomic with respect to every other operation.
"""

import logging
import threading
from collections import deque
from datetime import datetime, timezone

from jobdispatch.callbacks import CommitCallback, log_committed_job
from jobdispatch.constants import (
    SPAN_COMMIT_JOB,
    SPAN_DEQUEUE_JOB,
    SPAN_ENQUEUE_JOB,
    JobState,
)
from jobdispatch.exceptions import (
    CommitCallbackError,
    DuplicateJobIdError,
    UnknownOrNotRunningJobError,
)
from jobdispatch.observability.metrics import MetricsCollector, get_metrics
from jobdispatch.observability.tracing import get_tracer
from jobdispatch.types.job import Job, JobCounts

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Dispatcher:
    """
    Thread-safe queue of jobs handed out to remote workers.

    Jobs are served in enqueue order, each one to a single worker, and are
    never removed: committed jobs stay queryable for the dispatcher's
    lifetime. A job dequeued by a worker that never commits stays running.

    Every job returned to a caller is a copy; mutating it has no effect on
    the dispatcher.
    """

    def __init__(
        self,
        on_commit: CommitCallback | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize an empty dispatcher.

        Args:
            on_commit: Callback invoked with each committed job. Defaults to
                logging the job.
            metrics: Metrics collector. Defaults to the process-wide one.
        """
        self._on_commit = on_commit or log_committed_job
        self._metrics = metrics or get_metrics()
        self._lock = threading.Lock()
        self._next_id = 0
        self._jobs: dict[int, Job] = {}
        self._waiting: deque[int] = deque()
        # Insertion-ordered set
        self._running: dict[int, None] = {}
        self._committed: list[int] = []

    def next_id(self) -> int:
        """
        Allocate an id that no enqueued job uses yet.

        Two calls never return the same id. The id is not reserved: a
        producer enqueuing the same id by hand in between still wins.
        """
        with self._lock:
            while self._next_id in self._jobs:
                self._next_id += 1
            job_id = self._next_id
            self._next_id += 1
            return job_id

    def enqueue(self, job: Job) -> None:
        """
        Add a job at the tail of the waiting queue.

        The dispatcher stores its own copy of the job with enqueued_at set
        and the other timestamps cleared.

        Raises:
            DuplicateJobIdError: If a job with the same id was already
                enqueued. Nothing is changed.
        """
        with get_tracer().start_as_current_span(SPAN_ENQUEUE_JOB) as span:
            span.set_attribute("job_id", job.id)
            with self._lock:
                if job.id in self._jobs:
                    self._metrics.record_rejected("enqueue")
                    raise DuplicateJobIdError(job.id)

                stored = Job(id=job.id, fields=dict(job.fields), enqueued_at=_now())
                self._jobs[job.id] = stored
                self._waiting.append(job.id)
                counts = self._counts()

            self._metrics.record_enqueued()
            self._metrics.update_queue_depth(counts)
            logger.debug("Job enqueued", extra={"job_id": job.id})

    def dequeue(self) -> Job | None:
        """
        Hand the oldest waiting job to the caller.

        Returns:
            A copy of the job, now running, or None when nothing is waiting.
        """
        with get_tracer().start_as_current_span(SPAN_DEQUEUE_JOB) as span:
            with self._lock:
                if not self._waiting:
                    return None

                job_id = self._waiting.popleft()
                job = self._jobs[job_id]
                job.dequeued_at = _now()
                self._running[job_id] = None
                dequeued = job.copy()
                counts = self._counts()

            span.set_attribute("job_id", job_id)
            self._metrics.record_dequeued()
            self._metrics.update_queue_depth(counts)
            logger.info("Job dequeued", extra={"job_id": job_id})
            return dequeued

    def commit(self, updated: Job) -> Job:
        """
        Finish a running job with the fields returned by its worker.

        Every field of ``updated`` is merged into the stored job, overwriting
        fields with the same name. The job then moves to the committed queue
        and the commit callback is invoked with it.

        Args:
            updated: Job carrying the id to commit and the result fields.

        Returns:
            A copy of the committed job.

        Raises:
            UnknownOrNotRunningJobError: If the id was never enqueued or is
                not running (e.g. a second commit). Nothing is changed.
            CommitCallbackError: If the callback raised. The job stays
                committed.
        """
        with get_tracer().start_as_current_span(SPAN_COMMIT_JOB) as span:
            span.set_attribute("job_id", updated.id)
            with self._lock:
                job = self._jobs.get(updated.id)
                if job is None or updated.id not in self._running:
                    self._metrics.record_rejected("commit")
                    raise UnknownOrNotRunningJobError(updated.id)

                job.fields.update(updated.fields)
                del self._running[updated.id]
                self._committed.append(updated.id)
                job.committed_at = _now()
                committed = job.copy()
                counts = self._counts()

            run_time = None
            if committed.dequeued_at is not None:
                run_time = (committed.committed_at - committed.dequeued_at).total_seconds()
            self._metrics.record_committed(run_time)
            self._metrics.update_queue_depth(counts)

            # Outside the lock: the callback may be slow or call back into us
            try:
                self._on_commit(committed)
            except Exception as e:
                self._metrics.record_callback_failure()
                span.record_exception(e)
                logger.exception(
                    "Commit callback failed",
                    extra={"job_id": updated.id},
                )
                raise CommitCallbackError(updated.id, str(e)) from e

            return committed

    def get_job(self, job_id: int) -> Job | None:
        """Return a copy of a job in any state, or None if unknown."""
        with self._lock:
            job = self._jobs.get(job_id)
            return job.copy() if job is not None else None

    def snapshot(self, state: JobState) -> list[int]:
        """Return a copy of the ids currently in one queue, in queue order."""
        state = JobState(state)
        with self._lock:
            if state == JobState.WAITING:
                return list(self._waiting)
            if state == JobState.RUNNING:
                return list(self._running)
            return list(self._committed)

    def counts(self) -> JobCounts:
        """Return the size of the three queues, read together."""
        with self._lock:
            return self._counts()

    def list_jobs(self) -> list[Job]:
        """Return copies of every job: committed, then running, then waiting."""
        with self._lock:
            ids = [*self._committed, *self._running, *self._waiting]
            return [self._jobs[job_id].copy() for job_id in ids]

    def _counts(self) -> JobCounts:
        return JobCounts(
            waiting=len(self._waiting),
            running=len(self._running),
            committed=len(self._committed),
        )
