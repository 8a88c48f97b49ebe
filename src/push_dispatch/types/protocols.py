"""Protocol definitions for external collaborators.

The dispatch core talks to persistence, the push gateway and the job
broker only through these structural contracts.
"""

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from push_dispatch.types.aliases import Criteria, JobHandler, SendOptions
from push_dispatch.types.models import Job, NotificationRecord


@runtime_checkable
class RecordStore(Protocol):
    """Protocol for durable notification record collections.

    Implementations raise ``PersistenceError`` for store-level failures.
    """

    async def create(self, document: Mapping[str, object]) -> NotificationRecord:
        """Persist a new record, assigning its identifier and timestamps."""
        ...

    async def find_by_id(self, record_id: str) -> NotificationRecord | None:
        """Return the record with the given identifier, if any."""
        ...

    async def find(self, criteria: Criteria | None = None) -> list[NotificationRecord]:
        """Return all records matching the criteria, in creation order."""
        ...

    async def save(self, record: NotificationRecord) -> NotificationRecord:
        """Persist the current state of an existing record."""
        ...


@runtime_checkable
class PushTransport(Protocol):
    """Protocol for push gateway clients.

    A raw numeric gateway failure is raised as ``TransportStatusError``;
    any other exception is treated as an opaque transport error.
    """

    async def send(
        self,
        message: Mapping[str, object],
        recipients: str | Sequence[str],
        options: SendOptions,
    ) -> Mapping[str, object]:
        """Deliver a message to one or many recipients.

        Args:
            message: Gateway message payload (data, notification, options)
            recipients: A single recipient or a list of recipients
            options: Send options such as retries and backoff

        Returns:
            Gateway response, optionally carrying a ``results`` list aligned
            with the recipients
        """
        ...


@runtime_checkable
class WorkQueue(Protocol):
    """Protocol for durable work queues (job brokers)."""

    async def create(
        self,
        queue_name: str,
        data: Mapping[str, object],
        *,
        attempts: int = 1,
    ) -> Job:
        """Publish a job onto the named queue."""
        ...

    def process(self, queue_name: str, concurrency: int, handler: JobHandler) -> None:
        """Start consuming the named queue with bounded concurrency."""
        ...

    async def shutdown(self, timeout: float) -> None:
        """Stop accepting jobs and wait up to ``timeout`` seconds for in-flight ones."""
        ...
