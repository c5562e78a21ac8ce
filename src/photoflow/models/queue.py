"""Job queue message models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from photoflow.models.photo import PhotoStatus, utc_now


class Job(BaseModel):
    """Message asking a worker to process one photo."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    photo_id: str
    status: PhotoStatus = PhotoStatus.QUEUED
    enqueued_at: datetime = Field(default_factory=utc_now)


class Delivery(BaseModel):
    """A job handed to one worker, pending acknowledgement."""

    job: Job
    receipt: str
    attempts: int = 1
