"""
Type definitions for the job dispatcher.
Contains the job entity, its wire codec and API payload models.
"""

from jobdispatch.types.api import (
    ErrorResponse,
    HealthResponse,
)
from jobdispatch.types.codec import (
    JobPayload,
    NewJobPayload,
    decode_job,
    decode_new_job,
    encode_job,
)
from jobdispatch.types.job import (
    Job,
    JobCounts,
    JobResult,
)

__all__ = [
    # API types
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "Job",
    "JobCounts",
    "JobResult",
    # Wire format
    "JobPayload",
    "NewJobPayload",
    "encode_job",
    "decode_job",
    "decode_new_job",
]
