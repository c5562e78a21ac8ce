"""Shared test doubles: memory backends plus a controllable clock."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

from photoflow.persistence.memory_backend import (
    MemoryCacheBackend,
    MemoryEventLog,
    MemoryJobQueue,
    MemoryLockManager,
    MemoryPhotoStore,
)


class FakeClock:
    """Monotonic seconds when called, wall time via ``now()``; both move on ``advance``."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, tzinfo=UTC)) -> None:
        self._start = start
        self._offset = 0.0
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._offset

    def now(self) -> datetime:
        with self._lock:
            # Tick a microsecond per read so timestamps stay strictly ordered.
            self._offset += 0.000001
            return self._start + timedelta(seconds=self._offset)

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._offset += seconds


__all__ = [
    "FakeClock",
    "MemoryCacheBackend",
    "MemoryEventLog",
    "MemoryJobQueue",
    "MemoryLockManager",
    "MemoryPhotoStore",
]
