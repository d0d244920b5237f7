"""Tracker implementation for creating TraceEvents."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import BusMessage, Topic, TraceEvent
from ..storage import ISessionStore, StorageUnavailableError

logger = get_logger(__name__)

# Per-fragment MESSAGE_UPDATED events are too chatty to trace
TRACKED_TOPICS = [
    Topic.TURN_STARTED,
    Topic.TURN_COMPLETED,
    Topic.TURN_FAILED,
    Topic.SESSION_UPDATED,
    Topic.SESSION_DELETED,
]


class ITracker(Protocol):
    """Creating TraceEvents. Two channels: EventBus subscription + direct calls."""

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to storage."""
        ...


class Tracker:
    """Creates TraceEvents via EventBus subscription and direct track() calls."""

    def __init__(self, event_bus: IEventBus, storage: ISessionStore):
        self._event_bus = event_bus
        self._storage = storage

    async def start(self) -> None:
        """Subscribe to lifecycle topics."""
        for topic in TRACKED_TOPICS:
            self._event_bus.subscribe(topic, self._handle_bus_message)

    async def stop(self) -> None:
        """Unsubscribe from lifecycle topics."""
        for topic in TRACKED_TOPICS:
            self._event_bus.unsubscribe(topic, self._handle_bus_message)

    async def _handle_bus_message(self, bus_message: BusMessage) -> None:
        """Record a lifecycle BusMessage without its full transcript payload."""
        data = {
            key: value
            for key, value in bus_message.payload.items()
            if key != "message"
        }
        await self.track(
            event_type=bus_message.topic.value,
            actor=bus_message.source,
            data=data,
        )

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to storage."""
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            await self._storage.save_trace_event(trace_event)
        except StorageUnavailableError as e:
            # Tracing never blocks a turn
            logger.warning("Trace event %s dropped: %s", event_type, e)
