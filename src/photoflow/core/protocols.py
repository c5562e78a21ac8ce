"""Protocol interfaces for all PhotoFlow collaborators.

The workflow engine and the workers depend only on these Protocols; in-memory
fakes and the Redis/DynamoDB/SQS backends satisfy them structurally.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from photoflow.core.types import LockToken
from photoflow.models.photo import Photo, PhotoEvent, PhotoStatus
from photoflow.models.queue import Delivery, Job


# ---------------------------------------------------------------------------
# Persistence: Photo Record Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IPhotoStore(Protocol):
    """Current-state table for photos with compare-and-set on status.

    Every write also inserts the event that records it, atomically with the
    record change: either both land or neither does.
    """

    def create(self, photo: Photo, event: PhotoEvent) -> None: ...

    def get(self, photo_id: str) -> Photo | None: ...

    def compare_and_set_status(
        self,
        photo_id: str,
        expected: PhotoStatus,
        status: PhotoStatus,
        updated_at: datetime,
        processed_at: datetime | None,
        event: PhotoEvent,
    ) -> Photo | None: ...

    def list_by_status(
        self, status: PhotoStatus | None, offset: int, limit: int
    ) -> tuple[list[Photo], int]: ...

    def ping(self) -> bool: ...


# ---------------------------------------------------------------------------
# Persistence: Event Log
# ---------------------------------------------------------------------------

@runtime_checkable
class IEventLog(Protocol):
    """Append-only status transition history."""

    def append(self, event: PhotoEvent) -> None: ...

    def for_photo(self, photo_id: str) -> list[PhotoEvent]: ...

    def recent(self, offset: int, limit: int) -> tuple[list[PhotoEvent], int]: ...

    def ping(self) -> bool: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...

    def incr(self, key: str) -> int: ...

    def ping(self) -> bool: ...


# ---------------------------------------------------------------------------
# Lock Manager
# ---------------------------------------------------------------------------

@runtime_checkable
class ILockManager(Protocol):
    """Non-blocking per-photo exclusive lock with expiry."""

    def acquire(self, photo_id: str, ttl_ms: int) -> LockToken | None: ...

    def release(self, photo_id: str, token: LockToken) -> bool: ...


# ---------------------------------------------------------------------------
# Job Queue
# ---------------------------------------------------------------------------

@runtime_checkable
class IJobQueue(Protocol):
    """At-least-once job queue with visibility timeout."""

    def enqueue(self, job: Job) -> None: ...

    def dequeue(self, wait_seconds: float = 0.0) -> Delivery | None: ...

    def ack(self, delivery: Delivery) -> None: ...

    def release(self, delivery: Delivery, delay_seconds: float = 0.0) -> None: ...

    def pending_count(self) -> int: ...

    def ping(self) -> bool: ...
