"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from push_dispatch.core.batch import BatchOperator
from push_dispatch.core.config import ExecutionMode, PushConfig, QueueConfig
from push_dispatch.core.dispatch import DispatchEngine
from push_dispatch.core.events import Event, EventBus
from push_dispatch.core.publisher import QueuePublisher
from push_dispatch.queue import InMemoryWorkQueue
from push_dispatch.store import InMemoryRecordStore
from tests.fixtures.transport_mocks import FlakyRecordStore, StubTransport


@pytest.fixture
def store() -> FlakyRecordStore:
    """Provide an in-memory record store with switchable failures."""
    return FlakyRecordStore()


@pytest.fixture
def transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def live_config() -> PushConfig:
    """Dispatch configuration that always contacts the transport."""
    return PushConfig(mode=ExecutionMode.LIVE)


@pytest.fixture
def simulated_config() -> PushConfig:
    return PushConfig(mode=ExecutionMode.SIMULATED)


@pytest.fixture
def live_engine(store: InMemoryRecordStore, transport: StubTransport, live_config: PushConfig) -> DispatchEngine:
    return DispatchEngine(store, transport, live_config)


@pytest.fixture
def simulated_engine(
    store: InMemoryRecordStore,
    transport: StubTransport,
    simulated_config: PushConfig,
) -> DispatchEngine:
    return DispatchEngine(store, transport, simulated_config)


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded_events(events: EventBus) -> list[Event]:
    """Collect every event published on the bus."""
    received: list[Event] = []
    _ = events.subscribe("*", received.append)
    return received


@pytest.fixture
def queue_config() -> QueueConfig:
    return QueueConfig(concurrency=2, timeout=1.0)


@pytest.fixture
def work_queue(events: EventBus) -> InMemoryWorkQueue:
    return InMemoryWorkQueue(events)


@pytest.fixture
def publisher(
    live_engine: DispatchEngine,
    events: EventBus,
    work_queue: InMemoryWorkQueue,
    queue_config: QueueConfig,
) -> QueuePublisher:
    return QueuePublisher(live_engine, events, work_queue, queue_config)


@pytest.fixture
def batch(live_engine: DispatchEngine, publisher: QueuePublisher, events: EventBus) -> BatchOperator:
    return BatchOperator(live_engine, publisher, events)
