"""EventBus data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics."""

    TURN_STARTED = "turn_started"
    MESSAGE_UPDATED = "message_updated"
    TURN_COMPLETED = "turn_completed"
    TURN_FAILED = "turn_failed"
    SESSION_UPDATED = "session_updated"
    SESSION_DELETED = "session_deleted"


@dataclass
class BusMessage:
    """A message exchanged through EventBus."""

    id: str
    topic: Topic
    payload: dict  # varies by topic, always carries session_id
    source: str  # component that published
    timestamp: datetime
