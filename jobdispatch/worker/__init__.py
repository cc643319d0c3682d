"""
Worker module.
Contains the dispatcher client, job handlers and the polling worker.
"""

from jobdispatch.worker.client import DispatcherClient
from jobdispatch.worker.main import Worker, run

__all__ = ["DispatcherClient", "Worker", "run"]
