"""Photo status state machine: legal edges and the event each edge emits.

    UPLOADED -> QUEUED -> PROCESSING -> COMPLETED | FAILED

COMPLETED and FAILED are terminal. Nothing moves a photo backwards.
"""

from __future__ import annotations

from photoflow.models.photo import PhotoEventType, PhotoStatus

TRANSITIONS: dict[tuple[PhotoStatus | None, PhotoStatus], PhotoEventType] = {
    (None, PhotoStatus.UPLOADED): PhotoEventType.PHOTO_CREATED,
    (PhotoStatus.UPLOADED, PhotoStatus.QUEUED): PhotoEventType.STATUS_CHANGED,
    (PhotoStatus.QUEUED, PhotoStatus.PROCESSING): PhotoEventType.PROCESSING_STARTED,
    (PhotoStatus.PROCESSING, PhotoStatus.COMPLETED): PhotoEventType.PROCESSING_COMPLETED,
    (PhotoStatus.PROCESSING, PhotoStatus.FAILED): PhotoEventType.PROCESSING_FAILED,
}

# Every status is reached by exactly one edge, so its depth doubles as the
# event's position in the photo's history.
SEQUENCE: dict[PhotoStatus, int] = {
    PhotoStatus.UPLOADED: 0,
    PhotoStatus.QUEUED: 1,
    PhotoStatus.PROCESSING: 2,
    PhotoStatus.COMPLETED: 3,
    PhotoStatus.FAILED: 3,
}


def is_legal(from_status: PhotoStatus | None, to_status: PhotoStatus) -> bool:
    return (from_status, to_status) in TRANSITIONS


def event_type_for(from_status: PhotoStatus | None, to_status: PhotoStatus) -> PhotoEventType:
    """Return the event type for an edge. Raises KeyError for illegal edges."""
    return TRANSITIONS[(from_status, to_status)]


def next_statuses(from_status: PhotoStatus) -> list[PhotoStatus]:
    return [to for (frm, to) in TRANSITIONS if frm == from_status]


def is_valid_history(statuses: list[PhotoStatus]) -> bool:
    """True when ``statuses`` is a gapless walk starting at UPLOADED."""
    previous: PhotoStatus | None = None
    for status in statuses:
        if not is_legal(previous, status):
            return False
        previous = status
    return True
