"""
JSON wire format for jobs.

A job travels as a flat JSON object: ``id`` is an integer and every other
top-level key is a string field. Timestamps are dispatcher-local bookkeeping
and are never serialized.
"""

import json
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from jobdispatch.constants import JOB_ID_KEY
from jobdispatch.exceptions import MalformedPayloadError
from jobdispatch.types.job import Job


class JobPayload(BaseModel):
    """Wire representation of a job: an id plus flat string fields."""

    model_config = ConfigDict(extra="allow")

    __pydantic_extra__: dict[str, StrictStr] = Field(init=False)

    id: StrictInt

    def to_job(self) -> Job:
        return Job(id=self.id, fields=dict(self.model_extra or {}))


class NewJobPayload(BaseModel):
    """Producer submission; the dispatcher assigns an id when none is given."""

    model_config = ConfigDict(extra="allow")

    __pydantic_extra__: dict[str, StrictStr] = Field(init=False)

    id: StrictInt | None = None

    def to_job(self, job_id: int) -> Job:
        return Job(id=job_id, fields=dict(self.model_extra or {}))


PayloadT = TypeVar("PayloadT", JobPayload, NewJobPayload)


def encode_job(job: Job) -> str:
    """Serialize a job to its JSON wire form."""
    payload: dict[str, int | str] = {JOB_ID_KEY: job.id}
    for key, value in job.fields.items():
        if key != JOB_ID_KEY:
            payload[key] = value
    return json.dumps(payload)


def _validate(model: type[PayloadT], raw: str | bytes) -> PayloadT:
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in error['loc']) or 'body'}: {error['msg']}"
            for error in e.errors()
        )
        raise MalformedPayloadError(f"Invalid job payload: {errors}") from e


def decode_job(raw: str | bytes) -> Job:
    """
    Decode a job from its JSON wire form.

    Raises:
        MalformedPayloadError: If the body is not a flat object with an
            integer id and string values.
    """
    return _validate(JobPayload, raw).to_job()


def decode_new_job(raw: str | bytes) -> NewJobPayload:
    """Decode a producer submission whose id may be missing."""
    return _validate(NewJobPayload, raw)
