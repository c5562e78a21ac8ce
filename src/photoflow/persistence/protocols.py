"""Re-export persistence protocols from core for convenience."""

from __future__ import annotations

from photoflow.core.protocols import (
    ICacheBackend,
    IEventLog,
    IJobQueue,
    ILockManager,
    IPhotoStore,
)

__all__ = ["ICacheBackend", "IEventLog", "IJobQueue", "ILockManager", "IPhotoStore"]
