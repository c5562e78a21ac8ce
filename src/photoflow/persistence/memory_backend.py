"""In-memory backends: dict-backed, thread-safe, clock-injectable.

Used by the unit tests and by the single-process ``memory`` backend.
"""

from __future__ import annotations

import math
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from itertools import count

from photoflow.core.exceptions import StoreUnavailable
from photoflow.core.types import Clock
from photoflow.models.photo import Photo, PhotoEvent, PhotoStatus
from photoflow.models.queue import Delivery, Job


class MemoryPhotoStore:
    """Dict-backed IPhotoStore. Record and event writes share one lock.

    The event is appended to ``events`` while the record lock is held, and
    the record change is rolled back if the append fails.
    """

    def __init__(self, events: MemoryEventLog) -> None:
        self._photos: dict[str, Photo] = {}
        self._events = events
        self._lock = threading.Lock()

    def create(self, photo: Photo, event: PhotoEvent) -> None:
        with self._lock:
            if photo.id in self._photos:
                raise StoreUnavailable(f"Photo {photo.id!r} already exists")
            self._photos[photo.id] = photo
            try:
                self._events.append(event)
            except Exception:
                del self._photos[photo.id]
                raise

    def get(self, photo_id: str) -> Photo | None:
        with self._lock:
            return self._photos.get(photo_id)

    def compare_and_set_status(
        self,
        photo_id: str,
        expected: PhotoStatus,
        status: PhotoStatus,
        updated_at: datetime,
        processed_at: datetime | None,
        event: PhotoEvent,
    ) -> Photo | None:
        with self._lock:
            current = self._photos.get(photo_id)
            if current is None or current.status != expected:
                return None
            updated = current.model_copy(
                update={"status": status, "updated_at": updated_at, "processed_at": processed_at}
            )
            self._photos[photo_id] = updated
            try:
                self._events.append(event)
            except Exception:
                self._photos[photo_id] = current
                raise
            return updated

    def list_by_status(
        self, status: PhotoStatus | None, offset: int, limit: int
    ) -> tuple[list[Photo], int]:
        with self._lock:
            photos = [p for p in self._photos.values() if status is None or p.status == status]
        photos.sort(key=lambda p: (p.created_at, p.id), reverse=True)
        return photos[offset:offset + limit], len(photos)

    def ping(self) -> bool:
        return True


class MemoryEventLog:
    """List-backed IEventLog."""

    def __init__(self) -> None:
        self._events: list[tuple[int, PhotoEvent]] = []
        self._seq = count()
        self._lock = threading.Lock()

    def append(self, event: PhotoEvent) -> None:
        with self._lock:
            self._events.append((next(self._seq), event))

    def for_photo(self, photo_id: str) -> list[PhotoEvent]:
        with self._lock:
            matching = [(n, e) for n, e in self._events if e.photo_id == photo_id]
        matching.sort(key=lambda item: (item[1].sequence, item[1].created_at, item[0]))
        return [e for _, e in matching]

    def recent(self, offset: int, limit: int) -> tuple[list[PhotoEvent], int]:
        with self._lock:
            events = list(self._events)
        events.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [e for _, e in events[offset:offset + limit]], len(events)

    def ping(self) -> bool:
        return True


@dataclass
class _CacheEntry:
    value: str
    expires_at: float


class MemoryCacheBackend:
    """Dict-backed ICacheBackend with TTL expiry."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._store: dict[str, _CacheEntry] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._store[key]
                return None
            return entry.value

    def setex(self, key: str, ttl: int, value: str) -> None:
        with self._lock:
            self._store[key] = _CacheEntry(value=value, expires_at=self._clock() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for key in keys:
                del self._store[key]
            return len(keys)

    def incr(self, key: str) -> int:
        with self._lock:
            entry = self._store.get(key)
            if entry is None or self._clock() >= entry.expires_at:
                entry = _CacheEntry(value="0", expires_at=math.inf)
            entry.value = str(int(entry.value) + 1)
            self._store[key] = entry
            return int(entry.value)

    def ping(self) -> bool:
        return True


class MemoryLockManager:
    """Dict-backed ILockManager; a lock past its expiry is free to take."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._locks: dict[str, tuple[str, float]] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def acquire(self, photo_id: str, ttl_ms: int) -> str | None:
        now = self._clock()
        with self._lock:
            held = self._locks.get(photo_id)
            if held is not None and now < held[1]:
                return None
            token = uuid.uuid4().hex
            self._locks[photo_id] = (token, now + ttl_ms / 1000)
            return token

    def release(self, photo_id: str, token: str) -> bool:
        with self._lock:
            held = self._locks.get(photo_id)
            if held is None or held[0] != token:
                return False
            del self._locks[photo_id]
            return True

    def is_locked(self, photo_id: str) -> bool:
        with self._lock:
            held = self._locks.get(photo_id)
            return held is not None and self._clock() < held[1]


@dataclass
class _Message:
    receipt_seed: str
    job: Job
    visible_at: float
    attempts: int = 0
    receipt: str = ""


class MemoryJobQueue:
    """List-backed IJobQueue with visibility timeout and per-photo FIFO.

    A photo whose oldest message is in flight blocks its later messages, so
    two jobs for the same photo are never handed out out of order.
    """

    def __init__(self, visibility_timeout: float = 60.0, clock: Clock = time.monotonic,
                 poll_interval: float = 0.05) -> None:
        self._visibility_timeout = visibility_timeout
        self._clock = clock
        self._poll_interval = poll_interval
        self._messages: list[_Message] = []
        self._cond = threading.Condition()

    def enqueue(self, job: Job) -> None:
        with self._cond:
            self._messages.append(
                _Message(receipt_seed=uuid.uuid4().hex, job=job, visible_at=self._clock())
            )
            self._cond.notify()

    def dequeue(self, wait_seconds: float = 0.0) -> Delivery | None:
        deadline = time.monotonic() + max(0.0, wait_seconds)
        with self._cond:
            while True:
                message = self._next_visible()
                if message is not None:
                    message.attempts += 1
                    message.receipt = f"{message.receipt_seed}:{message.attempts}"
                    message.visible_at = self._clock() + self._visibility_timeout
                    return Delivery(job=message.job, receipt=message.receipt,
                                    attempts=message.attempts)
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                # In-flight messages may time out without a notify.
                self._cond.wait(min(remaining, self._poll_interval))

    def _next_visible(self) -> _Message | None:
        now = self._clock()
        blocked: set[str] = set()
        for message in self._messages:
            partition = message.job.photo_id
            if partition in blocked:
                continue
            if message.visible_at <= now:
                return message
            blocked.add(partition)
        return None

    def ack(self, delivery: Delivery) -> None:
        with self._cond:
            self._messages = [m for m in self._messages if m.receipt != delivery.receipt]
            self._cond.notify_all()

    def release(self, delivery: Delivery, delay_seconds: float = 0.0) -> None:
        with self._cond:
            for message in self._messages:
                if message.receipt == delivery.receipt:
                    message.visible_at = self._clock() + delay_seconds
                    break
            self._cond.notify_all()

    def pending_count(self) -> int:
        with self._cond:
            return len(self._messages)

    def ping(self) -> bool:
        return True
