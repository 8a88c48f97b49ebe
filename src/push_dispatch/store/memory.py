"""In-memory record store."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from uuid import uuid4

from push_dispatch.core.errors import PersistenceError
from push_dispatch.store.criteria import CriteriaError, matches
from push_dispatch.types import Criteria, NotificationRecord, utcnow

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """Record store keeping plain documents in a dictionary.

    Documents are deep-copied on every read and write, so records handed to
    callers never alias stored state. Insertion order is preserved and is
    the order ``find`` returns matches in.
    """

    def __init__(self, name: str = "PushNotification") -> None:
        self.name: str = name
        self._documents: dict[str, dict[str, object]] = {}

    def __len__(self) -> int:
        return len(self._documents)

    async def create(self, document: Mapping[str, object]) -> NotificationRecord:
        record_id = uuid4().hex
        now = utcnow()
        stored = copy.deepcopy(dict(document))
        record = NotificationRecord.from_document({**stored, "id": record_id})
        record.created_at = now
        record.updated_at = now
        self._documents[record_id] = record.to_document()
        try:
            self._persist()
        except PersistenceError:
            del self._documents[record_id]
            raise
        logger.debug("Created %s record %s", self.name, record_id)
        return NotificationRecord.from_document(self._documents[record_id])

    async def find_by_id(self, record_id: str) -> NotificationRecord | None:
        document = self._documents.get(record_id)
        if document is None:
            return None
        return NotificationRecord.from_document(document)

    async def find(self, criteria: Criteria | None = None) -> list[NotificationRecord]:
        try:
            return [
                NotificationRecord.from_document(document)
                for document in self._documents.values()
                if matches(document, criteria)
            ]
        except CriteriaError as e:
            raise PersistenceError(f"Invalid criteria for {self.name}: {e}") from e

    async def save(self, record: NotificationRecord) -> NotificationRecord:
        if record.id not in self._documents:
            raise PersistenceError(f"Cannot save unknown {self.name} record {record.id}", record_id=record.id)
        previous = self._documents[record.id]
        record.updated_at = utcnow()
        self._documents[record.id] = record.to_document()
        try:
            self._persist()
        except PersistenceError:
            self._documents[record.id] = previous
            raise
        return record

    def _persist(self) -> None:
        """Hook for durable subclasses; called after every mutation."""
