"""
HTTP Job Dispatcher

A single coordinator hands out jobs to remote workers over HTTP, tracks every
job through waiting -> running -> committed and notifies the embedding
application when a worker commits a result.
"""

__version__ = "1.0.0"
