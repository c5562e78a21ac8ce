"""Queue workers and the fixed-size pool that runs them.

Each worker pulls one job at a time, takes the photo's lock, and reports the
outcome through the workflow engine. A job is acknowledged only after the
outcome is recorded; anything else leaves it to be redelivered.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import StrEnum

from photoflow.core.exceptions import InvalidTransition, LockUnavailable, PhotoNotFoundError
from photoflow.core.protocols import IJobQueue, ILockManager
from photoflow.models.photo import PhotoStatus
from photoflow.models.queue import Delivery
from photoflow.workers.processor import SimulatedProcessor
from photoflow.workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)


class JobOutcome(StrEnum):
    IDLE = "IDLE"  # nothing to dequeue
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CONTENDED = "CONTENDED"  # lock held elsewhere, job released
    SKIPPED = "SKIPPED"  # duplicate or stale delivery, job acknowledged


class Worker:
    """A single pull loop over the job queue."""

    def __init__(
        self,
        *,
        engine: WorkflowEngine,
        queue: IJobQueue,
        locks: ILockManager,
        processor: SimulatedProcessor,
        lock_ttl_ms: int = 30000,
        max_deliveries: int = 5,
        contention_delay_seconds: float = 1.0,
        name: str = "worker",
    ) -> None:
        if lock_ttl_ms <= processor.max_delay_ms:
            raise ValueError("lock_ttl_ms must exceed the processor's max delay")
        self._engine = engine
        self._queue = queue
        self._locks = locks
        self._processor = processor
        self._lock_ttl_ms = lock_ttl_ms
        self._max_deliveries = max_deliveries
        self._contention_delay = contention_delay_seconds
        self.name = name

    def process_next(self, wait_seconds: float = 0.0) -> JobOutcome:
        """Dequeue and handle at most one job."""
        delivery = self._queue.dequeue(wait_seconds)
        if delivery is None:
            return JobOutcome.IDLE

        photo_id = delivery.job.photo_id
        try:
            token = self._locks.acquire(photo_id, self._lock_ttl_ms)
        except LockUnavailable:
            self._queue.release(delivery, self._contention_delay)
            raise
        if token is None:
            logger.debug("%s: photo %s is locked elsewhere, releasing job", self.name, photo_id)
            self._queue.release(delivery, self._contention_delay)
            return JobOutcome.CONTENDED

        try:
            return self._handle(delivery)
        finally:
            self._locks.release(photo_id, token)

    def _handle(self, delivery: Delivery) -> JobOutcome:
        photo_id = delivery.job.photo_id
        try:
            photo = self._engine.get_photo(photo_id, use_cache=False)
        except PhotoNotFoundError:
            logger.warning("%s: job for unknown photo %s dropped", self.name, photo_id)
            self._queue.ack(delivery)
            return JobOutcome.SKIPPED

        if photo.status == PhotoStatus.QUEUED:
            try:
                photo = self._engine.mark_processing_started(photo_id)
            except InvalidTransition as exc:
                logger.warning("%s: %s", self.name, exc)
                self._queue.ack(delivery)
                return JobOutcome.SKIPPED
        elif photo.status == PhotoStatus.PROCESSING:
            # We hold the lock, so the worker that started this photo is gone.
            if delivery.attempts > self._max_deliveries:
                return self._record(
                    delivery, False,
                    f"Processing timed out after {delivery.attempts - 1} delivery attempts",
                )
            logger.warning(
                "%s: resuming orphaned photo %s (delivery %d)", self.name, photo_id, delivery.attempts
            )
        else:
            logger.info("%s: photo %s already %s, dropping duplicate job", self.name, photo_id, photo.status)
            self._queue.ack(delivery)
            return JobOutcome.SKIPPED

        outcome = self._processor.process(photo)
        return self._record(delivery, outcome.success, outcome.message)

    def _record(self, delivery: Delivery, success: bool, message: str) -> JobOutcome:
        photo_id = delivery.job.photo_id
        try:
            self._engine.mark_processing_result(photo_id, success, message)
        except InvalidTransition as exc:
            # Another delivery of this job finished first.
            logger.warning("%s: %s", self.name, exc)
            self._queue.ack(delivery)
            return JobOutcome.SKIPPED
        self._queue.ack(delivery)
        return JobOutcome.COMPLETED if success else JobOutcome.FAILED

    def run(self, stop_event: threading.Event, wait_seconds: float = 1.0,
            error_backoff_seconds: float = 1.0) -> None:
        """Pull jobs until ``stop_event`` is set. Never interrupts a job."""
        logger.info("%s started", self.name)
        while not stop_event.is_set():
            try:
                self.process_next(wait_seconds)
            except Exception:
                logger.exception("%s: job handling failed, leaving it for redelivery", self.name)
                stop_event.wait(error_backoff_seconds)
        logger.info("%s stopped", self.name)


class WorkerPool:
    """Fixed number of worker threads sharing one queue."""

    def __init__(
        self,
        *,
        engine: WorkflowEngine,
        queue: IJobQueue,
        locks: ILockManager,
        processor: SimulatedProcessor,
        size: int = 4,
        lock_ttl_ms: int = 30000,
        max_deliveries: int = 5,
        contention_delay_seconds: float = 1.0,
        wait_seconds: float = 1.0,
        error_backoff_seconds: float = 1.0,
    ) -> None:
        if size < 1:
            raise ValueError("size must be at least 1")
        self._queue = queue
        self._wait_seconds = wait_seconds
        self._error_backoff = error_backoff_seconds
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self.workers = [
            Worker(
                engine=engine,
                queue=queue,
                locks=locks,
                processor=processor,
                lock_ttl_ms=lock_ttl_ms,
                max_deliveries=max_deliveries,
                contention_delay_seconds=contention_delay_seconds,
                name=f"photoflow-worker-{i}",
            )
            for i in range(size)
        ]

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._threads = [
            threading.Thread(
                target=worker.run,
                args=(self._stop, self._wait_seconds, self._error_backoff),
                name=worker.name,
                daemon=True,
            )
            for worker in self.workers
        ]
        for thread in self._threads:
            thread.start()
        logger.info("Worker pool started with %d workers", len(self._threads))

    def stop(self, timeout: float | None = None) -> None:
        """Stop pulling new jobs and wait for in-flight ones to finish."""
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        logger.info("Worker pool stopped")

    def wait_until_idle(self, timeout: float = 30.0, poll_interval: float = 0.05) -> bool:
        """Block until the queue holds no pending or in-flight jobs."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self._queue.pending_count() == 0:
                return True
            time.sleep(poll_interval)
        return self._queue.pending_count() == 0

    def __enter__(self) -> WorkerPool:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
