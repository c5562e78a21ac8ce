"""Photo, event, and status models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(value: datetime) -> str:
    """Fixed-width ISO-8601 UTC string; sorts lexicographically in time order."""
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class PhotoStatus(StrEnum):
    UPLOADED = "UPLOADED"
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (PhotoStatus.COMPLETED, PhotoStatus.FAILED)


class PhotoEventType(StrEnum):
    PHOTO_CREATED = "PHOTO_CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    PROCESSING_STARTED = "PROCESSING_STARTED"
    PROCESSING_COMPLETED = "PROCESSING_COMPLETED"
    PROCESSING_FAILED = "PROCESSING_FAILED"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Photo(_CamelModel):
    """Current state of one uploaded photo."""

    id: str
    filename: str
    original_name: str
    status: PhotoStatus
    storage_path: str
    created_at: datetime
    updated_at: datetime
    processed_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _processed_at_matches_status(self) -> Photo:
        if self.status.is_terminal and self.processed_at is None:
            raise ValueError(f"processed_at is required for status {self.status}")
        if not self.status.is_terminal and self.processed_at is not None:
            raise ValueError(f"processed_at must be empty for status {self.status}")
        return self


class PhotoEvent(_CamelModel):
    """One appended status transition. Never mutated."""

    id: str
    photo_id: str
    type: PhotoEventType
    from_status: Optional[PhotoStatus] = None
    to_status: PhotoStatus
    message: str = ""
    created_at: datetime
    sequence: int = 0  # position in the photo's walk, 0 for PHOTO_CREATED


class PhotoDetail(Photo):
    """A photo together with its ordered event history."""

    events: list[PhotoEvent] = Field(default_factory=list)


class PhotoUpload(_CamelModel):
    """Metadata handed over by the upload layer for one stored file."""

    original_name: str
    storage_path: str
    filename: Optional[str] = None


class CreatePhotosResult(_CamelModel):
    """Outcome of a batch creation request."""

    photos: list[Photo] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def message(self) -> str:
        created = len(self.photos)
        if self.errors:
            return f"Created {created} photo(s), {len(self.errors)} failed"
        return f"Created {created} photo(s)"
