"""Record store persisted to a JSON file."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import override

from push_dispatch.core.errors import PersistenceError
from push_dispatch.store.memory import InMemoryRecordStore

logger = logging.getLogger(__name__)


class JsonFileRecordStore(InMemoryRecordStore):
    """In-memory store that writes every mutation through to a JSON file.

    The file holds ``{"records": [document, ...]}``. Writes go to a sibling
    temporary file which then replaces the target, so a crash never leaves a
    half-written store behind.
    """

    def __init__(self, path: Path, name: str = "PushNotification") -> None:
        super().__init__(name)
        self.path: Path = path
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as f:
                payload: object = json.load(f)  # pyright: ignore[reportAny]  # JSON boundary
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to load record store {self.path}: {e}") from e

        records = payload.get("records") if isinstance(payload, dict) else None  # pyright: ignore[reportUnknownMemberType]
        if not isinstance(records, list):
            raise PersistenceError(f"Record store {self.path} has no 'records' list")
        for document in records:  # pyright: ignore[reportUnknownVariableType]
            if isinstance(document, dict) and "id" in document:
                self._documents[str(document["id"])] = document  # pyright: ignore[reportUnknownArgumentType]
        logger.debug("Loaded %d records from %s", len(self._documents), self.path)

    @override
    def _persist(self) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump({"records": list(self._documents.values())}, f, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write record store {self.path}: {e}") from e
