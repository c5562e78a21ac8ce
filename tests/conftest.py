"""Shared fixtures: an engine wired to memory backends and a fake clock."""

from __future__ import annotations

import pytest

from photoflow.workflow.engine import WorkflowEngine
from tests.fakes import (
    FakeClock,
    MemoryCacheBackend,
    MemoryEventLog,
    MemoryJobQueue,
    MemoryLockManager,
    MemoryPhotoStore,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    return MemoryEventLog()


@pytest.fixture
def store(events):
    return MemoryPhotoStore(events)


@pytest.fixture
def cache(clock):
    return MemoryCacheBackend(clock=clock)


@pytest.fixture
def locks(clock):
    return MemoryLockManager(clock=clock)


@pytest.fixture
def queue(clock):
    return MemoryJobQueue(visibility_timeout=60, clock=clock)


@pytest.fixture
def engine(store, events, queue, cache, clock):
    return WorkflowEngine(
        store=store, events=events, queue=queue, cache=cache,
        list_ttl=30, detail_ttl=60, clock=clock.now,
    )
