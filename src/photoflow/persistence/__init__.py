"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from photoflow.core.config import AppSettings
from photoflow.persistence.dynamodb_backend import DynamoDBEventLog, DynamoDBPhotoStore
from photoflow.persistence.memory_backend import (
    MemoryCacheBackend,
    MemoryEventLog,
    MemoryJobQueue,
    MemoryLockManager,
    MemoryPhotoStore,
)
from photoflow.persistence.redis_backend import RedisCacheBackend, RedisLockManager
from photoflow.persistence.sqs_backend import SQSJobQueue


def create_persistence(settings: AppSettings | None = None):
    """Create wired-up persistence backends from application settings.

    ``backend="memory"`` gives single-process in-memory backends;
    ``backend="aws"`` gives DynamoDB, Redis and SQS.

    Returns:
        Tuple of (photo_store, event_log, cache, locks, queue).
    """
    if settings is None:
        settings = AppSettings()

    if settings.backend == "memory":
        event_log = MemoryEventLog()
        return (
            MemoryPhotoStore(event_log),
            event_log,
            MemoryCacheBackend(),
            MemoryLockManager(),
            MemoryJobQueue(visibility_timeout=settings.sqs.visibility_timeout),
        )

    photo_store = DynamoDBPhotoStore(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
    )
    event_log = DynamoDBEventLog(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
    )
    cache = RedisCacheBackend(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
    )
    locks = RedisLockManager(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
    )
    queue = SQSJobQueue(
        queue_url=settings.sqs.queue_url,
        region=settings.sqs.region,
        endpoint_url=settings.sqs.endpoint_url,
        visibility_timeout=settings.sqs.visibility_timeout,
    )
    return photo_store, event_log, cache, locks, queue
