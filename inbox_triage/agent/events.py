"""Event bus — pipeline stages publish their outcomes as named events."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    """Every event the triage agent emits."""

    RECEIVED = "email.received"
    FETCHED = "email.fetched"
    ANALYZED = "email.analyzed"
    ORGANIZED = "email.organized"
    ORGANIZATION_FAILED = "email.organization.failed"
    ARCHIVED = "email.archived"
    REPLIED = "email.replied"
    REPLY_FAILED = "email.reply.failed"
    SUMMARY_SENT = "summary.sent"


@dataclass(frozen=True)
class Event:
    topic: Topic
    data: dict[str, Any]


Subscriber = Callable[[Event], Awaitable[None]]


@runtime_checkable
class EventBus(Protocol):
    """Interface the host runtime implements to receive pipeline events."""

    async def emit(self, topic: Topic, data: dict[str, Any]) -> None:
        """Publish one event.  Implementations must not raise."""
        ...


class InMemoryEventBus:
    """Keeps every emitted event and fans it out to async subscribers.

    A failing subscriber is logged and skipped so one bad listener can't
    break the pipeline that emitted the event.

    Usage::

        bus = InMemoryEventBus()
        bus.subscribe(Topic.REPLIED, on_replied)
        await bus.emit(Topic.REPLIED, {"messageId": "m1"})
    """

    def __init__(self) -> None:
        self.events: list[Event] = []
        self._subscribers: dict[Topic, list[Subscriber]] = {}

    def subscribe(self, topic: Topic, handler: Subscriber) -> None:
        self._subscribers.setdefault(topic, []).append(handler)

    def topics(self) -> list[Topic]:
        """Topics in emission order, handy for asserting a run's trace."""
        return [e.topic for e in self.events]

    async def emit(self, topic: Topic, data: dict[str, Any]) -> None:
        event = Event(topic=topic, data=data)
        self.events.append(event)
        logger.debug("event %s %s", topic.value, data)
        for handler in self._subscribers.get(topic, []):
            try:
                await handler(event)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Subscriber for %s failed: %s", topic.value, exc, exc_info=True
                )
