"""Unit tests for the in-memory backends."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from photoflow.core.exceptions import StoreUnavailable
from photoflow.models.photo import Photo, PhotoEvent, PhotoEventType, PhotoStatus
from photoflow.models.queue import Job
from photoflow.persistence.protocols import ICacheBackend, IEventLog, IJobQueue, ILockManager, IPhotoStore
from tests.fakes import (
    FakeClock,
    MemoryCacheBackend,
    MemoryEventLog,
    MemoryJobQueue,
    MemoryLockManager,
    MemoryPhotoStore,
)

T0 = datetime(2026, 1, 1, tzinfo=UTC)


def _photo(photo_id: str, minutes: int = 0, status: PhotoStatus = PhotoStatus.QUEUED) -> Photo:
    ts = T0 + timedelta(minutes=minutes)
    return Photo(
        id=photo_id, filename=f"{photo_id}.jpg", original_name=f"{photo_id}.jpg",
        status=status, storage_path=f"/u/{photo_id}", created_at=ts, updated_at=ts,
    )


def _event(photo_id: str, to_status: PhotoStatus, seconds: int) -> PhotoEvent:
    return PhotoEvent(
        id=f"{photo_id}-{to_status}", photo_id=photo_id, type=PhotoEventType.STATUS_CHANGED,
        from_status=PhotoStatus.UPLOADED, to_status=to_status, message="",
        created_at=T0 + timedelta(seconds=seconds), sequence=1,
    )


def _store_with(photo: Photo) -> tuple[MemoryPhotoStore, MemoryEventLog]:
    events = MemoryEventLog()
    store = MemoryPhotoStore(events)
    store.create(photo, _event(photo.id, photo.status, 0))
    return store, events


class FailingEventLog(MemoryEventLog):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def append(self, event: PhotoEvent) -> None:
        if self.fail:
            raise StoreUnavailable("event table down")
        super().append(event)


class TestProtocols:
    def test_backends_satisfy_protocols(self):
        assert isinstance(MemoryPhotoStore(MemoryEventLog()), IPhotoStore)
        assert isinstance(MemoryEventLog(), IEventLog)
        assert isinstance(MemoryCacheBackend(), ICacheBackend)
        assert isinstance(MemoryLockManager(), ILockManager)
        assert isinstance(MemoryJobQueue(), IJobQueue)


class TestMemoryPhotoStore:
    def test_create_records_event(self):
        store, events = _store_with(_photo("a"))
        assert store.get("a").status == PhotoStatus.QUEUED
        assert len(events.for_photo("a")) == 1

    def test_create_duplicate_rejected(self):
        store, _ = _store_with(_photo("a"))
        with pytest.raises(StoreUnavailable):
            store.create(_photo("a"), _event("a", PhotoStatus.QUEUED, 1))

    def test_compare_and_set_succeeds_on_match(self):
        store, events = _store_with(_photo("a"))
        updated = store.compare_and_set_status(
            "a", PhotoStatus.QUEUED, PhotoStatus.PROCESSING, T0 + timedelta(hours=1), None,
            _event("a", PhotoStatus.PROCESSING, 1),
        )
        assert updated.status == PhotoStatus.PROCESSING
        assert store.get("a").updated_at == T0 + timedelta(hours=1)
        assert events.for_photo("a")[-1].to_status == PhotoStatus.PROCESSING

    def test_compare_and_set_rejects_mismatch_without_event(self):
        store, events = _store_with(_photo("a"))
        assert store.compare_and_set_status(
            "a", PhotoStatus.PROCESSING, PhotoStatus.COMPLETED, T0, T0,
            _event("a", PhotoStatus.COMPLETED, 1),
        ) is None
        assert store.get("a").status == PhotoStatus.QUEUED
        assert len(events.for_photo("a")) == 1

    def test_compare_and_set_missing_photo(self):
        assert MemoryPhotoStore(MemoryEventLog()).compare_and_set_status(
            "x", PhotoStatus.QUEUED, PhotoStatus.PROCESSING, T0, None,
            _event("x", PhotoStatus.PROCESSING, 1),
        ) is None

    def test_failed_event_append_rolls_back_status(self):
        events = FailingEventLog()
        store = MemoryPhotoStore(events)
        store.create(_photo("a"), _event("a", PhotoStatus.QUEUED, 0))
        events.fail = True
        with pytest.raises(StoreUnavailable):
            store.compare_and_set_status(
                "a", PhotoStatus.QUEUED, PhotoStatus.PROCESSING, T0, None,
                _event("a", PhotoStatus.PROCESSING, 1),
            )
        assert store.get("a").status == PhotoStatus.QUEUED
        assert len(events.for_photo("a")) == 1

    def test_failed_event_append_rolls_back_create(self):
        events = FailingEventLog()
        events.fail = True
        store = MemoryPhotoStore(events)
        with pytest.raises(StoreUnavailable):
            store.create(_photo("a"), _event("a", PhotoStatus.QUEUED, 0))
        assert store.get("a") is None

    def test_concurrent_cas_has_single_winner(self):
        store, events = _store_with(_photo("a", status=PhotoStatus.PROCESSING))
        wins = []
        barrier = threading.Barrier(10)

        def attempt(n):
            barrier.wait()
            event = _event("a", PhotoStatus.COMPLETED, 1).model_copy(update={"id": f"done-{n}"})
            if store.compare_and_set_status("a", PhotoStatus.PROCESSING, PhotoStatus.COMPLETED, T0, T0, event):
                wins.append(1)

        threads = [threading.Thread(target=attempt, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(wins) == 1
        assert len(events.for_photo("a")) == 2

    def test_list_filters_and_orders_newest_first(self):
        events = MemoryEventLog()
        store = MemoryPhotoStore(events)
        for photo in (_photo("old", 0), _photo("mid", 1, PhotoStatus.PROCESSING), _photo("new", 2)):
            store.create(photo, _event(photo.id, photo.status, 0))
        photos, total = store.list_by_status(PhotoStatus.QUEUED, 0, 10)
        assert [p.id for p in photos] == ["new", "old"]
        assert total == 2
        photos, total = store.list_by_status(None, 1, 1)
        assert [p.id for p in photos] == ["mid"]
        assert total == 3


class TestMemoryEventLog:
    def test_for_photo_orders_by_sequence(self):
        log = MemoryEventLog()
        log.append(_event("a", PhotoStatus.QUEUED, 5).model_copy(update={"sequence": 1}))
        log.append(_event("a", PhotoStatus.UPLOADED, 5).model_copy(update={"sequence": 0}))
        log.append(_event("b", PhotoStatus.QUEUED, 1))
        assert [e.to_status for e in log.for_photo("a")] == [PhotoStatus.UPLOADED, PhotoStatus.QUEUED]

    def test_recent_is_newest_first_and_paged(self):
        log = MemoryEventLog()
        for i in range(5):
            log.append(_event(f"p{i}", PhotoStatus.QUEUED, i))
        events, total = log.recent(1, 2)
        assert total == 5
        assert [e.photo_id for e in events] == ["p3", "p2"]


class TestMemoryCacheBackend:
    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = MemoryCacheBackend(clock=clock)
        cache.setex("k", 10, "v")
        assert cache.get("k") == "v"
        clock.advance(10)
        assert cache.get("k") is None

    def test_delete_prefix(self):
        cache = MemoryCacheBackend()
        cache.setex("photos:list:all:1:20", 30, "a")
        cache.setex("photos:list:QUEUED:1:20", 30, "b")
        cache.setex("photos:detail:x", 30, "c")
        assert cache.delete_prefix("photos:list:") == 2
        assert cache.get("photos:detail:x") == "c"

    def test_incr_counts_up_and_never_expires(self):
        clock = FakeClock()
        cache = MemoryCacheBackend(clock=clock)
        assert cache.incr("gen") == 1
        assert cache.incr("gen") == 2
        clock.advance(10_000)
        assert cache.get("gen") == "2"


class TestMemoryLockManager:
    def test_second_acquire_is_refused(self):
        locks = MemoryLockManager()
        assert locks.acquire("a", 1000) is not None
        assert locks.acquire("a", 1000) is None
        assert locks.acquire("b", 1000) is not None

    def test_expired_lock_can_be_taken(self):
        clock = FakeClock()
        locks = MemoryLockManager(clock=clock)
        first = locks.acquire("a", 1000)
        clock.advance(1.5)
        second = locks.acquire("a", 1000)
        assert second is not None
        # The stale holder cannot release the new holder's lock.
        assert locks.release("a", first) is False
        assert locks.is_locked("a")

    def test_release_is_idempotent(self):
        locks = MemoryLockManager()
        token = locks.acquire("a", 1000)
        assert locks.release("a", token) is True
        assert locks.release("a", token) is False
        assert locks.acquire("a", 1000) is not None


class TestMemoryJobQueue:
    def test_fifo_delivery_and_ack(self):
        queue = MemoryJobQueue()
        queue.enqueue(Job(photo_id="a"))
        queue.enqueue(Job(photo_id="b"))
        first = queue.dequeue(0)
        second = queue.dequeue(0)
        assert [first.job.photo_id, second.job.photo_id] == ["a", "b"]
        assert queue.dequeue(0) is None
        queue.ack(first)
        queue.ack(second)
        assert queue.pending_count() == 0

    def test_unacked_job_redelivered_after_visibility_timeout(self):
        clock = FakeClock()
        queue = MemoryJobQueue(visibility_timeout=30, clock=clock)
        queue.enqueue(Job(photo_id="a"))
        first = queue.dequeue(0)
        assert queue.dequeue(0) is None
        clock.advance(30)
        again = queue.dequeue(0)
        assert again.job.photo_id == "a"
        assert again.attempts == 2
        # A stale receipt no longer acknowledges the message.
        queue.ack(first)
        assert queue.pending_count() == 1
        queue.ack(again)
        assert queue.pending_count() == 0

    def test_release_makes_job_visible(self):
        clock = FakeClock()
        queue = MemoryJobQueue(clock=clock)
        queue.enqueue(Job(photo_id="a"))
        queue.release(queue.dequeue(0), delay_seconds=5)
        assert queue.dequeue(0) is None
        clock.advance(5)
        assert queue.dequeue(0).job.photo_id == "a"

    def test_same_photo_jobs_not_reordered(self):
        queue = MemoryJobQueue()
        queue.enqueue(Job(photo_id="a"))
        queue.enqueue(Job(photo_id="a"))
        queue.enqueue(Job(photo_id="b"))
        first = queue.dequeue(0)
        assert first.job.photo_id == "a"
        # Second "a" waits behind the in-flight one; "b" is free.
        assert queue.dequeue(0).job.photo_id == "b"
        assert queue.dequeue(0) is None
        queue.ack(first)
        assert queue.dequeue(0).job.photo_id == "a"

    def test_blocking_dequeue_wakes_on_enqueue(self):
        queue = MemoryJobQueue()
        timer = threading.Timer(0.05, queue.enqueue, args=(Job(photo_id="late"),))
        timer.start()
        delivery = queue.dequeue(wait_seconds=2)
        timer.join()
        assert delivery is not None
        assert delivery.job.photo_id == "late"

    @pytest.mark.parametrize("wait", [0, 0.05])
    def test_dequeue_times_out_when_empty(self, wait):
        assert MemoryJobQueue().dequeue(wait) is None
