"""Data models for push-dispatch.

This module defines the notification record persisted by record stores,
the validated request used to create it, and the job envelope carried by
work queues.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, override
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUCCESS_MESSAGE = "success"


def utcnow() -> datetime:
    """Return timezone-aware current datetime."""
    return datetime.now(tz=UTC)


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_timestamp(value: object) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass(slots=True)
class NotificationRecord:
    """Persisted push notification and its delivery outcome.

    A record is unsent for as long as ``sent_at`` is ``None``. The
    ``results`` list is aligned positionally with ``recipients``.
    """

    id: str
    recipients: list[str]
    data: dict[str, object] | None = None
    notification: dict[str, object] | None = None
    options: dict[str, object] = field(default_factory=dict)
    response: dict[str, object] | None = None
    results: list[dict[str, object]] = field(default_factory=list)
    sent_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    extra: dict[str, object] = field(default_factory=dict)

    @property
    def is_sent(self) -> bool:
        return self.sent_at is not None

    def to_document(self) -> dict[str, object]:
        """Serialize the record to a plain, JSON-compatible document."""
        return {
            "id": self.id,
            "recipients": list(self.recipients),
            "data": copy.deepcopy(self.data),
            "notification": copy.deepcopy(self.notification),
            "options": copy.deepcopy(self.options),
            "response": copy.deepcopy(self.response),
            "results": copy.deepcopy(self.results),
            "sent_at": _format_timestamp(self.sent_at),
            "created_at": _format_timestamp(self.created_at),
            "updated_at": _format_timestamp(self.updated_at),
            "extra": copy.deepcopy(self.extra),
        }

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> NotificationRecord:
        """Rebuild a record from a stored document."""
        recipients = document.get("recipients") or []
        return cls(
            id=str(document["id"]),
            recipients=[str(r) for r in recipients] if isinstance(recipients, list) else [str(recipients)],
            data=copy.deepcopy(document.get("data")),  # pyright: ignore[reportArgumentType]  # document boundary
            notification=copy.deepcopy(document.get("notification")),  # pyright: ignore[reportArgumentType]
            options=copy.deepcopy(document.get("options") or {}),  # pyright: ignore[reportArgumentType]
            response=copy.deepcopy(document.get("response")),  # pyright: ignore[reportArgumentType]
            results=copy.deepcopy(document.get("results") or []),  # pyright: ignore[reportArgumentType]
            sent_at=_parse_timestamp(document.get("sent_at")),
            created_at=_parse_timestamp(document.get("created_at")),
            updated_at=_parse_timestamp(document.get("updated_at")),
            extra=copy.deepcopy(document.get("extra") or {}),  # pyright: ignore[reportArgumentType]
        )

    @override
    def __str__(self) -> str:
        state = "sent" if self.is_sent else "unsent"
        return f"NotificationRecord(id='{self.id}', recipients={len(self.recipients)}, {state})"


class NotificationRequest(BaseModel):
    """Validated input for creating a notification record.

    ``recipients`` accepts a single token or topic and normalizes it to a
    one-element list. The legacy ``to`` key is accepted as an alias.
    """

    model_config: ConfigDict = ConfigDict(  # pyright: ignore[reportIncompatibleVariableOverride]
        extra="forbid",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    recipients: Annotated[
        list[str],
        Field(
            alias="to",
            min_length=1,
            description="Registration tokens, topics or notification keys",
        ),
    ]
    data: Annotated[
        dict[str, object] | None,
        Field(description="Custom key-value pairs of the payload"),
    ] = None
    notification: Annotated[
        dict[str, object] | None,
        Field(description="Predefined, user-visible key-value pairs"),
    ] = None
    options: Annotated[
        dict[str, object],
        Field(description="Gateway send options stored on the record"),
    ] = {}
    extra: Annotated[
        dict[str, object],
        Field(description="Values for configured extension fields"),
    ] = {}

    @field_validator("recipients", mode="before")
    @classmethod
    def normalize_recipients(cls, v: object) -> object:
        """Coerce a single recipient into a one-element list."""
        if isinstance(v, str):
            return [v]
        if isinstance(v, Sequence) and not isinstance(v, (bytes, bytearray)):
            return list(v)  # pyright: ignore[reportUnknownArgumentType]
        return v

    @field_validator("recipients", mode="after")
    @classmethod
    def reject_blank_recipients(cls, v: list[str]) -> list[str]:
        """Reject empty recipient strings."""
        for recipient in v:
            if not recipient:
                msg = "Recipients must be non-empty strings"
                raise ValueError(msg)
        return v


class JobState(Enum):
    """Lifecycle states of a queued job."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(slots=True)
class Job:
    """Unit of deferred work held by a work queue."""

    queue: str
    data: dict[str, object]
    id: str = field(default_factory=lambda: uuid4().hex)
    state: JobState = JobState.INACTIVE
    attempts: int = 1
    attempts_made: int = 0
    result: object = None
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def remaining_attempts(self) -> int:
        return max(self.attempts - self.attempts_made, 0)
