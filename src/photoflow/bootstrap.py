"""Wire the workflow engine and worker pool from settings."""

from __future__ import annotations

import random

from photoflow.core.config import AppSettings
from photoflow.core.protocols import IJobQueue, ILockManager
from photoflow.persistence import create_persistence
from photoflow.workers.processor import SimulatedProcessor
from photoflow.workers.worker import WorkerPool
from photoflow.workflow.engine import WorkflowEngine


def build(settings: AppSettings | None = None) -> tuple[WorkflowEngine, WorkerPool]:
    """Build an engine and a (not yet started) worker pool sharing backends."""
    if settings is None:
        settings = AppSettings()
    store, events, cache, locks, queue = create_persistence(settings)
    engine = WorkflowEngine(
        store=store,
        events=events,
        queue=queue,
        cache=cache,
        list_ttl=settings.cache.list_ttl,
        detail_ttl=settings.cache.detail_ttl,
    )
    return engine, build_worker_pool(settings, engine, queue, locks)


def build_worker_pool(settings: AppSettings, engine: WorkflowEngine, queue: IJobQueue,
                      locks: ILockManager) -> WorkerPool:
    processing = settings.processing
    processor = SimulatedProcessor(
        min_delay_ms=processing.min_delay_ms,
        max_delay_ms=processing.max_delay_ms,
        success_rate=processing.success_rate,
        rng=random.Random(processing.seed),
    )
    return WorkerPool(
        engine=engine,
        queue=queue,
        locks=locks,
        processor=processor,
        size=settings.worker.concurrency,
        lock_ttl_ms=settings.worker.lock_ttl_ms,
        max_deliveries=settings.worker.max_deliveries,
        contention_delay_seconds=settings.worker.contention_delay_seconds,
        wait_seconds=min(settings.sqs.wait_time_seconds, 20),
        error_backoff_seconds=settings.worker.error_backoff_seconds,
    )
