"""Queue publisher.

Persists notifications and hands them to the work queue for deferred
delivery. Outcomes are reported through the event bus (``queued`` and
``queue-error``) and an optional completion callback; nothing is raised to
the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from push_dispatch.core.config import QueueConfig
from push_dispatch.core.dispatch import DispatchEngine
from push_dispatch.core.errors import PublishError
from push_dispatch.core.events import QUEUE_ERROR, QUEUED, EventBus
from push_dispatch.types import (
    CompletionCallback,
    Job,
    NotificationRecord,
    NotificationRequest,
    SendOptions,
    WorkQueue,
)
from push_dispatch.utils.logging import log_with_context

__all__ = ["QueuePublisher"]

logger = logging.getLogger(__name__)


class QueuePublisher:
    """Create notification records and publish them as queue jobs.

    Args:
        engine: Dispatch engine used to create records
        events: Event bus receiving ``queued`` and ``queue-error`` events
        work_queue: Broker receiving jobs; publishing is skipped when ``None``
        config: Queue settings (queue name, attempts per job)
    """

    def __init__(
        self,
        engine: DispatchEngine,
        events: EventBus,
        work_queue: WorkQueue | None = None,
        config: QueueConfig | None = None,
    ) -> None:
        self.engine: DispatchEngine = engine
        self.events: EventBus = events
        self.work_queue: WorkQueue | None = work_queue
        self.config: QueueConfig = config if config is not None else QueueConfig()

    @property
    def queue_name(self) -> str:
        return self.config.name

    async def queue(
        self,
        request: NotificationRequest | Mapping[str, object],
        options: SendOptions | None = None,
        callback: CompletionCallback | None = None,
    ) -> NotificationRecord | None:
        """Persist a notification and queue it for background delivery.

        Returns:
            The created (unsent) record, or ``None`` when creation failed
        """
        try:
            record = await self.engine.create(request, options)
        except Exception as exc:
            log_with_context(
                logger,
                logging.WARNING,
                "Failed to queue notification",
                extra={"error_type": type(exc).__name__},
            )
            _ = self.events.publish(QUEUE_ERROR, exc)
            if callback is not None:
                callback(exc, None)
            return None

        _ = self.events.publish(QUEUED, record)
        _ = await self.publish(record)
        if callback is not None:
            callback(None, record)
        return record

    async def publish(self, record: NotificationRecord) -> Job | None:
        """Publish a job for an existing record.

        Failures are logged and emitted as ``queue-error`` with a
        ``PublishError`` naming the record.

        Returns:
            The created job, or ``None`` when no queue is bound or publishing failed
        """
        if self.work_queue is None:
            return None

        try:
            job = await self.work_queue.create(
                self.queue_name,
                record.to_document(),
                attempts=self.config.attempts,
            )
        except Exception as exc:
            error = PublishError(record.id, self.queue_name)
            error.__cause__ = exc
            logger.error("%s: %s", error, exc)
            _ = self.events.publish(QUEUE_ERROR, error)
            return None

        log_with_context(
            logger,
            logging.DEBUG,
            "Published notification job",
            extra={"record_id": record.id, "job_id": job.id, "queue_name": self.queue_name},
        )
        return job
