"""Event bus for notification lifecycle events.

Fire-and-forget operations (queueing, requeueing, job processing) report
their outcome through events instead of return values. Callers opt in by
subscribing to a topic pattern or by awaiting the next matching event.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import override

logger = logging.getLogger(__name__)

QUEUED = "queued"
QUEUE_ERROR = "queue-error"
JOB_COMPLETE = "job.complete"
JOB_FAILED = "job.failed"

type EventHandler = Callable[[Event], None]


class EventSubscriptionError(Exception):
    """Exception raised when event subscription fails."""

    def __init__(self, message: str, topic: str | None = None) -> None:
        """Initialize subscription error.

        Args:
            message: Error message
            topic: Topic name related to the error
        """
        super().__init__(message)
        self.topic: str | None = topic


class EventTopic:
    """Represents an event topic with wildcard pattern matching support."""

    def __init__(self, name: str) -> None:
        self.name: str = name

    def is_valid(self) -> bool:
        """Check if topic name is valid.

        Returns:
            True if topic name is valid
        """
        if not self.name:
            return False
        # Allow alphanumeric characters, dots, underscores, hyphens and wildcards
        return bool(re.match(r"^[a-zA-Z0-9._*-]+$", self.name))

    def matches(self, pattern: str) -> bool:
        """Check if topic matches a pattern.

        Args:
            pattern: Pattern to match against (supports * wildcard)

        Returns:
            True if topic matches pattern
        """
        regex_pattern = pattern.replace(".", r"\.").replace("*", ".*")
        return bool(re.match(f"^{regex_pattern}$", self.name))

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EventTopic):
            return False
        return self.name == other.name

    @override
    def __hash__(self) -> int:
        return hash(self.name)

    @override
    def __repr__(self) -> str:
        return f"EventTopic('{self.name}')"


@dataclass
class Event:
    """Represents a published event."""

    topic: EventTopic
    payload: object
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)


@dataclass
class EventSubscriber:
    """Subscription of a handler to a topic pattern."""

    pattern: str
    handler: EventHandler
    once: bool = False
    subscriber_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def can_handle_event(self, event: Event) -> bool:
        return event.topic.matches(self.pattern)


class EventBus:
    """Synchronous in-process publish/subscribe bus.

    Handlers run in publish order on the publisher's thread of control.
    A failing handler is logged and never breaks the publishing operation.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, EventSubscriber] = {}
        self._published_count: int = 0

    def subscribe(self, pattern: str, handler: EventHandler, *, once: bool = False) -> str:
        """Subscribe a handler to a topic pattern.

        Args:
            pattern: Topic name or wildcard pattern (e.g. ``job.*``)
            handler: Callable receiving the ``Event``
            once: Remove the subscription after the first delivery

        Returns:
            Subscriber ID used to unsubscribe

        Raises:
            EventSubscriptionError: If the pattern is not a valid topic name
        """
        if not EventTopic(pattern).is_valid():
            raise EventSubscriptionError(f"Invalid topic pattern: {pattern!r}", topic=pattern)

        subscriber = EventSubscriber(pattern=pattern, handler=handler, once=once)
        self._subscribers[subscriber.subscriber_id] = subscriber
        logger.debug("Subscribed %s to %s", subscriber.subscriber_id, pattern)
        return subscriber.subscriber_id

    def unsubscribe(self, subscriber_id: str) -> bool:
        """Remove a subscription.

        Returns:
            True if the subscription existed
        """
        return self._subscribers.pop(subscriber_id, None) is not None

    def publish(self, topic: str, payload: object = None) -> Event:
        """Deliver an event to every matching subscriber.

        Args:
            topic: Concrete topic name
            payload: Event payload (record, error, job...)

        Returns:
            The published event
        """
        event = Event(topic=EventTopic(topic), payload=payload)
        self._published_count += 1

        for subscriber in list(self._subscribers.values()):
            if not subscriber.can_handle_event(event):
                continue
            if subscriber.once:
                _ = self._subscribers.pop(subscriber.subscriber_id, None)
            try:
                subscriber.handler(event)
            except Exception:
                logger.exception(
                    "Event handler failed",
                    extra={
                        "event_id": event.event_id,
                        "topic": topic,
                        "subscriber_id": subscriber.subscriber_id,
                    },
                )
        return event

    async def wait_for(self, pattern: str, timeout: float | None = None) -> Event:
        """Wait for the next event matching the pattern.

        Raises:
            TimeoutError: If no matching event arrives within ``timeout``
        """
        future: asyncio.Future[Event] = asyncio.get_running_loop().create_future()

        def _resolve(event: Event) -> None:
            if not future.done():
                future.set_result(event)

        subscriber_id = self.subscribe(pattern, _resolve, once=True)
        try:
            async with asyncio.timeout(timeout):
                return await future
        finally:
            _ = self.unsubscribe(subscriber_id)

    def subscriber_count(self, topic: str | None = None) -> int:
        if topic is None:
            return len(self._subscribers)
        event_topic = EventTopic(topic)
        return sum(1 for s in self._subscribers.values() if event_topic.matches(s.pattern))

    @property
    def published_count(self) -> int:
        return self._published_count
