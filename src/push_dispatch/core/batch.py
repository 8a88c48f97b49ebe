"""Batch operations over unsent notifications.

``resend`` retries delivery directly and concurrently; ``requeue`` hands
every unsent record back to the work queue.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from push_dispatch.core.dispatch import DispatchEngine
from push_dispatch.core.events import QUEUE_ERROR, QUEUED, EventBus
from push_dispatch.core.publisher import QueuePublisher
from push_dispatch.types import CompletionCallback, Criteria, NotificationRecord

__all__ = ["BatchOperator", "BatchOutcome", "sent_criteria", "unsent_criteria"]

logger = logging.getLogger(__name__)


def unsent_criteria(criteria: Criteria | None = None) -> dict[str, object]:
    """Combine caller criteria with the unsent predicate.

    The caller's clauses are ANDed with the predicate and cannot override it.

    Examples:
        >>> unsent_criteria({"extra.tenant": "acme"})
        {'$and': [{'extra.tenant': 'acme'}, {'sent_at': {'$exists': False}}]}
    """
    return {"$and": [dict(criteria or {}), {"sent_at": {"$exists": False}}]}


def sent_criteria(criteria: Criteria | None = None) -> dict[str, object]:
    """Combine caller criteria with the sent predicate."""
    return {"$and": [dict(criteria or {}), {"sent_at": {"$exists": True}}]}


@dataclass(slots=True)
class BatchOutcome:
    """Per-record outcome of a batch resend."""

    succeeded: list[NotificationRecord] = field(default_factory=list)
    failed: list[tuple[NotificationRecord, BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def first_error(self) -> BaseException | None:
        return self.failed[0][1] if self.failed else None


class BatchOperator:
    """Query, resend and requeue notifications in bulk."""

    def __init__(
        self,
        engine: DispatchEngine,
        publisher: QueuePublisher,
        events: EventBus,
    ) -> None:
        self.engine: DispatchEngine = engine
        self.publisher: QueuePublisher = publisher
        self.events: EventBus = events

    async def unsent(self, criteria: Criteria | None = None) -> list[NotificationRecord]:
        return await self.engine.store.find(unsent_criteria(criteria))

    async def sent(self, criteria: Criteria | None = None) -> list[NotificationRecord]:
        return await self.engine.store.find(sent_criteria(criteria))

    async def resend_outcomes(self, criteria: Criteria | None = None) -> BatchOutcome:
        """Dispatch every unsent match concurrently and collect each outcome.

        Every attempt runs to completion and is persisted, whether or not
        other attempts fail.
        """
        records = await self.unsent(criteria)
        results = await asyncio.gather(
            *(self.engine.dispatch(record) for record in records),
            return_exceptions=True,
        )

        outcome = BatchOutcome()
        for record, result in zip(records, results, strict=True):
            if isinstance(result, BaseException):
                outcome.failed.append((record, result))
            else:
                outcome.succeeded.append(result)
        logger.info(
            "Resent %d notifications (%d succeeded, %d failed)",
            len(records),
            len(outcome.succeeded),
            len(outcome.failed),
        )
        return outcome

    async def resend(self, criteria: Criteria | None = None) -> list[NotificationRecord]:
        """Resend unsent notifications.

        Returns:
            The updated records when every dispatch succeeded

        Raises:
            Exception: The error of the first failing record, in record order
        """
        outcome = await self.resend_outcomes(criteria)
        if outcome.first_error is not None:
            raise outcome.first_error
        return outcome.succeeded

    async def requeue(
        self,
        criteria: Criteria | None = None,
        callback: CompletionCallback | None = None,
    ) -> list[NotificationRecord]:
        """Publish a fresh job for every unsent notification.

        A failed lookup emits ``queue-error`` once and publishes nothing.

        Returns:
            The requeued records (empty when the lookup failed)
        """
        try:
            records = await self.unsent(criteria)
        except Exception as exc:
            logger.error("Failed to load unsent notifications for requeue: %s", exc)
            _ = self.events.publish(QUEUE_ERROR, exc)
            if callback is not None:
                callback(exc, None)
            return []

        for record in records:
            _ = self.events.publish(QUEUED, record)
            _ = await self.publisher.publish(record)

        logger.info("Requeued %d notifications", len(records))
        if callback is not None:
            callback(None, records)
        return records
