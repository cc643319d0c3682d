"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime

from pydantic import BaseModel

from jobdispatch.constants import JobState


@dataclass(eq=False)
class Job:
    """
    A unit of work exchanged between the dispatcher and its workers.

    Identity is the integer id only: two jobs with the same id are equal
    whatever their fields. Producer fields and worker result fields share a
    single namespace.
    """

    id: int
    fields: dict[str, str] = field(default_factory=dict)
    enqueued_at: datetime | None = None
    dequeued_at: datetime | None = None
    committed_at: datetime | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Job):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"job({self.id}, {self.fields})"

    @property
    def state(self) -> JobState:
        """Lifecycle state derived from the transition timestamps."""
        if self.committed_at is not None:
            return JobState.COMMITTED
        if self.dequeued_at is not None:
            return JobState.RUNNING
        return JobState.WAITING

    def copy(self) -> "Job":
        """Return a copy whose field map can be mutated independently."""
        return replace(self, fields=dict(self.fields))


@dataclass(frozen=True)
class JobCounts:
    """Number of jobs in each queue, read in one consistent step."""

    waiting: int
    running: int
    committed: int

    @property
    def total(self) -> int:
        return self.waiting + self.running + self.committed

    def __str__(self) -> str:
        return f"{self.waiting}/{self.running}/{self.committed}"

    @classmethod
    def parse(cls, text: str) -> "JobCounts":
        """Parse the ``waiting/running/committed`` status line."""
        try:
            waiting, running, committed = (int(part) for part in text.strip().split("/"))
        except ValueError as e:
            raise ValueError(f"Invalid status line: {text!r}") from e
        return cls(waiting=waiting, running=running, committed=committed)


class JobResult(BaseModel):
    """
    Result of job execution.
    Returned by job handlers after processing.
    """

    success: bool
    output: dict[str, str] | None = None
    error: str | None = None
    duration_ms: float | None = None
