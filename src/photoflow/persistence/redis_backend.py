"""Redis backends implementing ICacheBackend and ILockManager."""

from __future__ import annotations

import uuid

import redis

from photoflow.core.exceptions import CacheUnavailable, LockUnavailable


class RedisCacheBackend:
    """Production ICacheBackend backed by Redis."""

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0) -> None:
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except Exception as exc:
            raise CacheUnavailable(f"Redis GET failed for key={key!r}: {exc}") from exc

    def setex(self, key: str, ttl: int, value: str) -> None:
        try:
            self._client.setex(key, ttl, value)
        except Exception as exc:
            raise CacheUnavailable(f"Redis SETEX failed for key={key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except Exception as exc:
            raise CacheUnavailable(f"Redis DELETE failed for key={key!r}: {exc}") from exc

    def delete_prefix(self, prefix: str) -> int:
        try:
            keys = list(self._client.scan_iter(match=f"{prefix}*", count=500))
            if not keys:
                return 0
            return self._client.delete(*keys)
        except Exception as exc:
            raise CacheUnavailable(f"Redis prefix DELETE failed for {prefix!r}: {exc}") from exc

    def incr(self, key: str) -> int:
        try:
            return int(self._client.incr(key))
        except Exception as exc:
            raise CacheUnavailable(f"Redis INCR failed for key={key!r}: {exc}") from exc

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except Exception:
            return False


class RedisLockManager:
    """Production ILockManager: ``SET NX PX`` with a per-holder token."""

    KEY_PREFIX = "photos:lock:"

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0) -> None:
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def _key(self, photo_id: str) -> str:
        return f"{self.KEY_PREFIX}{photo_id}"

    def acquire(self, photo_id: str, ttl_ms: int) -> str | None:
        token = uuid.uuid4().hex
        try:
            acquired = self._client.set(self._key(photo_id), token, nx=True, px=ttl_ms)
        except Exception as exc:
            raise LockUnavailable(f"Redis SET NX failed for photo {photo_id}: {exc}") from exc
        return token if acquired else None

    def release(self, photo_id: str, token: str) -> bool:
        key = self._key(photo_id)
        try:
            with self._client.pipeline() as pipe:
                try:
                    pipe.watch(key)
                    if pipe.get(key) != token:
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.delete(key)
                    pipe.execute()
                    return True
                except redis.WatchError:
                    # Expired and re-taken by another worker between GET and DEL.
                    return False
        except Exception as exc:
            raise LockUnavailable(f"Redis lock release failed for photo {photo_id}: {exc}") from exc

    def is_locked(self, photo_id: str) -> bool:
        try:
            return bool(self._client.exists(self._key(photo_id)))
        except Exception as exc:
            raise LockUnavailable(f"Redis EXISTS failed for photo {photo_id}: {exc}") from exc
