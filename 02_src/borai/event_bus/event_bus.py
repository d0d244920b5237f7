"""EventBus implementation for pub/sub messaging."""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import BusMessage, Topic

logger = get_logger(__name__)


TopicHandler = Callable[[BusMessage], Awaitable[None]]


class IEventBus(Protocol):
    """In-memory pub/sub for transcript and session updates."""

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        ...

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a handler from a topic."""
        ...

    async def publish(self, message: BusMessage) -> None:
        """Publish BusMessage: calls subscriber callbacks."""
        ...

    async def emit(self, topic: Topic, payload: dict, source: str) -> BusMessage:
        """Build and publish a BusMessage."""
        ...


class EventBus:
    """In-memory pub/sub event bus."""

    def __init__(self):
        self._subscribers: dict[Topic, list[TopicHandler]] = {
            topic: [] for topic in Topic
        }

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        self._subscribers[topic].append(handler)

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a handler from a topic. Unknown handlers are ignored."""
        handlers = self._subscribers[topic]
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, message: BusMessage) -> None:
        """Publish BusMessage: calls subscriber callbacks."""
        if not message.id:
            message.id = str(uuid.uuid4())

        # Copy: handlers may unsubscribe while running
        handlers = list(self._subscribers.get(message.topic, []))

        if handlers:
            results = await asyncio.gather(
                *[handler(message) for handler in handlers],
                return_exceptions=True,
            )

            for i, result in enumerate(results):
                if isinstance(result, Exception):
                    logger.error(
                        "Error in %s handler %s: %s", message.topic.value, i, result
                    )

    async def emit(self, topic: Topic, payload: dict, source: str) -> BusMessage:
        """Build and publish a BusMessage."""
        message = BusMessage(
            id=str(uuid.uuid4()),
            topic=topic,
            payload=payload,
            source=source,
            timestamp=datetime.now(timezone.utc),
        )
        await self.publish(message)
        return message
