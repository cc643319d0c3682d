"""
Commit callbacks.

A dispatcher owns exactly one callback, invoked with the committed job once
its transition to COMMITTED is complete. A callback that raises does not undo
the commit.
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from jobdispatch.types.codec import encode_job
from jobdispatch.types.job import Job

logger = logging.getLogger(__name__)

# Type alias for commit callbacks
CommitCallback = Callable[[Job], None]


def log_committed_job(job: Job) -> None:
    """Default callback: record the committed job in the log."""
    logger.info(
        "Job committed",
        extra={"job_id": job.id, "fields": job.fields},
    )


class JsonLinesCommitWriter:
    """
    Append every committed job to a file, one encoded job per line.

    Writes are serialized so that concurrent commits never interleave lines.
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def __call__(self, job: Job) -> None:
        line = encode_job(job) + "\n"
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line)
        logger.debug(
            "Committed job written",
            extra={"job_id": job.id, "path": str(self.path)},
        )
