"""PhotoFlow exception hierarchy."""

from __future__ import annotations


class PhotoFlowError(Exception):
    """Base exception for all PhotoFlow errors."""


class InvalidTransition(PhotoFlowError):
    """Requested status change does not match the photo's current status."""

    def __init__(
        self,
        photo_id: str,
        expected: str | None,
        requested: str,
        actual: str | None = None,
    ) -> None:
        self.photo_id = photo_id
        self.expected = expected
        self.requested = requested
        self.actual = actual
        if actual is None:
            detail = f"{expected} -> {requested} is not a legal transition"
        else:
            detail = f"expected {expected} but photo is {actual} (requested {requested})"
        super().__init__(f"Invalid transition for photo {photo_id}: {detail}")


class PhotoNotFoundError(PhotoFlowError):
    """No photo with the given id."""

    def __init__(self, photo_id: str) -> None:
        self.photo_id = photo_id
        super().__init__(f"Photo {photo_id} not found")


class StoreUnavailable(PhotoFlowError):
    """Photo record store or event log operation failed."""


class QueueUnavailable(PhotoFlowError):
    """Job queue operation failed."""


class CacheUnavailable(PhotoFlowError):
    """Cache backend operation failed."""


class LockUnavailable(PhotoFlowError):
    """Lock backend operation failed."""
