"""Read-through cache for photo list and detail queries.

Keys carry a generation number. Invalidation bumps the generation, so a
reader that loaded a value before a write can only store it under a key no
later read will look at.

Cache failures never fail the caller: a read error is a miss, a write or
invalidation error is logged and dropped.
"""

from __future__ import annotations

import logging
from typing import Callable

from photoflow.core.exceptions import CacheUnavailable
from photoflow.core.protocols import ICacheBackend
from photoflow.models.common import Page
from photoflow.models.photo import Photo, PhotoStatus

logger = logging.getLogger(__name__)

LIST_PREFIX = "photos:list:"
DETAIL_PREFIX = "photos:detail:"
GENERATION_PREFIX = "photos:gen:"
LIST_GENERATION_KEY = f"{GENERATION_PREFIX}list"


def list_key(status: PhotoStatus | None, page: int, limit: int, generation: int = 0) -> str:
    return f"{LIST_PREFIX}{generation}:{status or 'all'}:{page}:{limit}"


def detail_key(photo_id: str, generation: int = 0) -> str:
    return f"{DETAIL_PREFIX}{photo_id}:{generation}"


def detail_generation_key(photo_id: str) -> str:
    return f"{GENERATION_PREFIX}detail:{photo_id}"


class PhotoQueryCache:
    """Keys photo queries by shape and generation; invalidated on every write."""

    def __init__(self, backend: ICacheBackend, list_ttl: int = 30, detail_ttl: int = 60) -> None:
        self._backend = backend
        self._list_ttl = list_ttl
        self._detail_ttl = detail_ttl

    def get_photo(self, photo_id: str, loader: Callable[[], Photo | None]) -> Photo | None:
        generation = self._generation(detail_generation_key(photo_id))
        if generation is None:
            return loader()
        key = detail_key(photo_id, generation)
        cached = self._read(key)
        if cached is not None:
            return Photo.model_validate_json(cached)
        photo = loader()
        if photo is not None:
            self._write(key, self._detail_ttl, photo.model_dump_json())
        return photo

    def get_photo_page(
        self,
        status: PhotoStatus | None,
        page: int,
        limit: int,
        loader: Callable[[], Page[Photo]],
    ) -> Page[Photo]:
        generation = self._generation(LIST_GENERATION_KEY)
        if generation is None:
            return loader()
        key = list_key(status, page, limit, generation)
        cached = self._read(key)
        if cached is not None:
            return Page[Photo].model_validate_json(cached)
        result = loader()
        self._write(key, self._list_ttl, result.model_dump_json())
        return result

    def invalidate_photo(self, photo_id: str) -> None:
        """Retire the photo's detail entry and every list entry.

        List filters are status based, so any status change can move a photo
        in or out of any list.
        """
        try:
            generation = self._backend.incr(detail_generation_key(photo_id))
            self._backend.delete(detail_key(photo_id, generation - 1))
        except CacheUnavailable as exc:
            logger.warning("Cache invalidation failed for photo %s: %s", photo_id, exc)
        self.invalidate_lists()

    def invalidate_lists(self) -> None:
        try:
            self._backend.incr(LIST_GENERATION_KEY)
            # Pages under the old generation are unreachable now.
            self._backend.delete_prefix(LIST_PREFIX)
        except CacheUnavailable as exc:
            logger.warning("Cache list invalidation failed: %s", exc)

    def _generation(self, key: str) -> int | None:
        """Current generation for ``key``; None when the cache is unreachable."""
        try:
            value = self._backend.get(key)
        except CacheUnavailable as exc:
            logger.warning("Cache read failed, bypassing cache: %s", exc)
            return None
        return int(value) if value is not None else 0

    def _read(self, key: str) -> str | None:
        try:
            return self._backend.get(key)
        except CacheUnavailable as exc:
            logger.warning("Cache read failed, treating as miss: %s", exc)
            return None

    def _write(self, key: str, ttl: int, value: str) -> None:
        try:
            self._backend.setex(key, ttl, value)
        except CacheUnavailable as exc:
            logger.warning("Cache write failed for key=%s: %s", key, exc)
