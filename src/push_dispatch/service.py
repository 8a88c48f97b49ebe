"""Push service facade.

Wires the record store, transport, dispatch engine, queue publisher, queue
worker, batch operator and event bus from a validated configuration.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Self

from push_dispatch.core.batch import BatchOperator, BatchOutcome
from push_dispatch.core.config import MainConfig, PushConfig, QueueConfig
from push_dispatch.core.dispatch import DispatchEngine
from push_dispatch.core.errors import WorkerConfigurationError
from push_dispatch.core.events import EventBus, EventHandler
from push_dispatch.core.publisher import QueuePublisher
from push_dispatch.core.worker import QueueWorker
from push_dispatch.queue import InMemoryWorkQueue
from push_dispatch.store import InMemoryRecordStore, JsonFileRecordStore
from push_dispatch.transport import FcmTransport
from push_dispatch.types import (
    CompletionCallback,
    Criteria,
    NotificationRecord,
    NotificationRequest,
    PushTransport,
    RecordStore,
    SendOptions,
    WorkQueue,
)

__all__ = ["PushService"]

logger = logging.getLogger(__name__)


class PushService:
    """Entry point bundling every push-dispatch component.

    Queueing and the worker are available only when a work queue is bound
    (the ``queue`` configuration section is present or a queue is passed).

    Example:
        >>> config = parse_config({"push": {"profile": "development"}, "queue": {}})
        >>> async with PushService.from_config(config) as service:
        ...     record = await service.send({"to": "device-token", "data": {"k": "v"}})
    """

    def __init__(
        self,
        store: RecordStore,
        transport: PushTransport | None = None,
        *,
        push_config: PushConfig | None = None,
        queue_config: QueueConfig | None = None,
        work_queue: WorkQueue | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.push_config: PushConfig = push_config if push_config is not None else PushConfig()
        self.queue_config: QueueConfig = queue_config if queue_config is not None else QueueConfig()
        self.events: EventBus = events if events is not None else EventBus()
        self.store: RecordStore = store
        self.transport: PushTransport | None = transport
        self.work_queue: WorkQueue | None = work_queue
        self.engine: DispatchEngine = DispatchEngine(store, transport, self.push_config)
        self.publisher: QueuePublisher = QueuePublisher(
            self.engine,
            self.events,
            work_queue,
            self.queue_config,
        )
        self.batch: BatchOperator = BatchOperator(self.engine, self.publisher, self.events)
        self._worker: QueueWorker | None = None

    @classmethod
    def from_config(cls, config: MainConfig) -> PushService:
        """Build a service with the reference store, transport and work queue."""
        store: RecordStore
        if config.store.path is not None:
            store = JsonFileRecordStore(config.store.path, name=config.push.model.name)
        else:
            store = InMemoryRecordStore(name=config.push.model.name)

        events = EventBus()
        work_queue: WorkQueue | None = None
        if config.queue is not None:
            work_queue = InMemoryWorkQueue(events, connection=config.queue.connection)

        transport = FcmTransport(config.push.api_key, config.push.request_options)
        return cls(
            store,
            transport,
            push_config=config.push,
            queue_config=config.queue,
            work_queue=work_queue,
            events=events,
        )

    async def __aenter__(self) -> Self:
        if isinstance(self.transport, FcmTransport):
            _ = await self.transport.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        try:
            if self._worker is not None:
                await self._worker.stop()
            elif self.work_queue is not None:
                await self.work_queue.shutdown(self.queue_config.timeout)
        finally:
            if isinstance(self.transport, FcmTransport):
                await self.transport.close()

    @property
    def worker(self) -> QueueWorker:
        """Queue worker bound to this service's work queue.

        Raises:
            WorkerConfigurationError: If no work queue is configured
        """
        if self._worker is None:
            if self.work_queue is None:
                raise WorkerConfigurationError("No work queue configured; add a 'queue' section")
            self._worker = QueueWorker(
                self.engine,
                self.work_queue,
                self.queue_config,
                debug=self.push_config.debug,
            )
        return self._worker

    def on(self, topic: str, handler: EventHandler, *, once: bool = False) -> str:
        """Subscribe to ``queued``, ``queue-error`` or job events."""
        return self.events.subscribe(topic, handler, once=once)

    async def create(
        self,
        request: NotificationRequest | Mapping[str, object],
        options: SendOptions | None = None,
    ) -> NotificationRecord:
        return await self.engine.create(request, options)

    async def send(
        self,
        request: NotificationRequest | Mapping[str, object],
        options: SendOptions | None = None,
    ) -> NotificationRecord:
        return await self.engine.send(request, options)

    async def queue(
        self,
        request: NotificationRequest | Mapping[str, object],
        options: SendOptions | None = None,
        callback: CompletionCallback | None = None,
    ) -> NotificationRecord | None:
        return await self.publisher.queue(request, options, callback)

    async def unsent(self, criteria: Criteria | None = None) -> list[NotificationRecord]:
        return await self.batch.unsent(criteria)

    async def sent(self, criteria: Criteria | None = None) -> list[NotificationRecord]:
        return await self.batch.sent(criteria)

    async def resend(self, criteria: Criteria | None = None) -> list[NotificationRecord]:
        return await self.batch.resend(criteria)

    async def resend_outcomes(self, criteria: Criteria | None = None) -> BatchOutcome:
        return await self.batch.resend_outcomes(criteria)

    async def requeue(
        self,
        criteria: Criteria | None = None,
        callback: CompletionCallback | None = None,
    ) -> list[NotificationRecord]:
        return await self.batch.requeue(criteria, callback)
