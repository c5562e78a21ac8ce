"""WorkflowEngine: the only writer of photo records and events.

Every status change is a guarded compare-and-set on the record store that
writes its event in the same atomic step, followed by a cache invalidation.
"""

from __future__ import annotations

import logging
import os
import uuid

from photoflow.core.exceptions import InvalidTransition, PhotoFlowError, PhotoNotFoundError
from photoflow.core.protocols import ICacheBackend, IEventLog, IJobQueue, IPhotoStore
from photoflow.core.types import WallClock
from photoflow.models.common import HealthStatus, Page, normalize_pagination
from photoflow.models.photo import (
    CreatePhotosResult,
    Photo,
    PhotoDetail,
    PhotoEvent,
    PhotoStatus,
    PhotoUpload,
    utc_now,
)
from photoflow.models.queue import Job
from photoflow.workflow import state_machine
from photoflow.workflow.query_cache import PhotoQueryCache

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """Drives photos through UPLOADED -> QUEUED -> PROCESSING -> terminal."""

    def __init__(
        self,
        *,
        store: IPhotoStore,
        events: IEventLog,
        queue: IJobQueue,
        cache: ICacheBackend,
        list_ttl: int = 30,
        detail_ttl: int = 60,
        clock: WallClock = utc_now,
    ) -> None:
        self._store = store
        self._events = events
        self._queue = queue
        self._cache_backend = cache
        self._cache = PhotoQueryCache(cache, list_ttl=list_ttl, detail_ttl=detail_ttl)
        self._clock = clock

    # ---- writes ----

    def create_photo(self, original_name: str, storage_path: str,
                     filename: str | None = None) -> Photo:
        """Create a photo, record it, queue it, and enqueue its job.

        Returns the photo in QUEUED.
        """
        photo_id = str(uuid.uuid4())
        if filename is None:
            filename = f"{photo_id}{os.path.splitext(original_name)[1].lower()}"
        now = self._clock()
        photo = Photo(
            id=photo_id,
            filename=filename,
            original_name=original_name,
            status=PhotoStatus.UPLOADED,
            storage_path=storage_path,
            created_at=now,
            updated_at=now,
        )
        self._store.create(
            photo, self._event(photo_id, None, PhotoStatus.UPLOADED, f"Photo uploaded: {original_name}")
        )
        self._cache.invalidate_lists()

        queued = self.transition(
            photo_id, PhotoStatus.UPLOADED, PhotoStatus.QUEUED, "Photo queued for processing"
        )
        self._queue.enqueue(Job(photo_id=photo_id, status=PhotoStatus.QUEUED, enqueued_at=self._clock()))
        logger.info("Photo %s (%s) created and queued", photo_id, original_name)
        return queued

    def create_photos(self, uploads: list[PhotoUpload]) -> CreatePhotosResult:
        """Create several photos; one file's failure does not stop the others."""
        result = CreatePhotosResult()
        for upload in uploads:
            try:
                result.photos.append(
                    self.create_photo(upload.original_name, upload.storage_path, upload.filename)
                )
            except PhotoFlowError as exc:
                logger.error("Failed to create photo %s: %s", upload.original_name, exc)
                result.errors.append(f"{upload.original_name}: {exc}")
        return result

    def transition(self, photo_id: str, from_expected: PhotoStatus, to_status: PhotoStatus,
                   message: str) -> Photo:
        """Move a photo along one legal edge if it is still in ``from_expected``.

        Raises:
            InvalidTransition: the edge is illegal or the photo has moved on.
            PhotoNotFoundError: no such photo.
        """
        if not state_machine.is_legal(from_expected, to_status):
            raise InvalidTransition(photo_id, expected=from_expected, requested=to_status)

        now = self._clock()
        processed_at = now if to_status.is_terminal else None
        event = self._event(photo_id, from_expected, to_status, message)
        updated = self._store.compare_and_set_status(
            photo_id, from_expected, to_status, now, processed_at, event
        )
        if updated is None:
            current = self._store.get(photo_id)
            if current is None:
                raise PhotoNotFoundError(photo_id)
            raise InvalidTransition(
                photo_id, expected=from_expected, requested=to_status, actual=current.status
            )

        self._cache.invalidate_photo(photo_id)
        logger.info("Photo %s: %s -> %s", photo_id, from_expected, to_status)
        return updated

    def mark_processing_started(self, photo_id: str) -> Photo:
        return self.transition(
            photo_id, PhotoStatus.QUEUED, PhotoStatus.PROCESSING, "Processing started"
        )

    def mark_processing_result(self, photo_id: str, success: bool, detail_message: str) -> Photo:
        to_status = PhotoStatus.COMPLETED if success else PhotoStatus.FAILED
        return self.transition(photo_id, PhotoStatus.PROCESSING, to_status, detail_message)

    def update_status(self, photo_id: str, status: PhotoStatus, message: str | None = None) -> Photo:
        """Manually advance a photo from whatever status it is in now."""
        current = self._store.get(photo_id)
        if current is None:
            raise PhotoNotFoundError(photo_id)
        return self.transition(
            photo_id, current.status, status,
            message or f"Status manually changed from {current.status} to {status}",
        )

    def _event(self, photo_id: str, from_status: PhotoStatus | None, to_status: PhotoStatus,
               message: str) -> PhotoEvent:
        return PhotoEvent(
            id=str(uuid.uuid4()),
            photo_id=photo_id,
            type=state_machine.event_type_for(from_status, to_status),
            from_status=from_status,
            to_status=to_status,
            message=message,
            created_at=self._clock(),
            sequence=state_machine.SEQUENCE[to_status],
        )

    # ---- reads ----

    def get_photo(self, photo_id: str, *, use_cache: bool = True) -> Photo:
        if use_cache:
            photo = self._cache.get_photo(photo_id, lambda: self._store.get(photo_id))
        else:
            photo = self._store.get(photo_id)
        if photo is None:
            raise PhotoNotFoundError(photo_id)
        return photo

    def get_photo_detail(self, photo_id: str) -> PhotoDetail:
        photo = self.get_photo(photo_id)
        return PhotoDetail(**photo.model_dump(), events=self._events.for_photo(photo_id))

    def list_photos(self, status: PhotoStatus | None = None, page: int | None = None,
                    limit: int | None = None) -> Page[Photo]:
        page, limit = normalize_pagination(page, limit)

        def load() -> Page[Photo]:
            photos, total = self._store.list_by_status(status, (page - 1) * limit, limit)
            return Page[Photo](data=photos, total=total, page=page, limit=limit)

        return self._cache.get_photo_page(status, page, limit, load)

    def list_events(self, photo_id: str | None = None, page: int | None = None,
                    limit: int | None = None) -> Page[PhotoEvent]:
        """Per-photo history oldest first, or the global feed newest first."""
        page, limit = normalize_pagination(page, limit)
        offset = (page - 1) * limit
        if photo_id is None:
            events, total = self._events.recent(offset, limit)
        else:
            history = self._events.for_photo(photo_id)
            events, total = history[offset:offset + limit], len(history)
        return Page[PhotoEvent](data=events, total=total, page=page, limit=limit)

    def health_check(self) -> HealthStatus:
        return HealthStatus(
            queue_reachable=self._queue.ping(),
            store_reachable=self._store.ping() and self._events.ping(),
            cache_reachable=self._cache_backend.ping(),
        )
