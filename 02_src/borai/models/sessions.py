"""Session and user profile data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from .messages import Message

DEFAULT_TITLE = "New Conversation"
WELCOME_MESSAGE_ID = "init-1"
WELCOME_TEXT = (
    "I am **BorAI**. I search the entire web and synthesize data to give you "
    "the absolute best answer. \n\nWhat do you want to know today?"
)


class AppMode(str, Enum):
    """Conversation modes, each with its own system instruction."""

    STANDARD = "standard"
    TUTOR = "tutor"
    RESEARCH = "research"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def welcome_message() -> Message:
    """Create the model-authored message every session starts with."""
    return Message(id=WELCOME_MESSAGE_ID, role="model", text=WELCOME_TEXT)


@dataclass
class Session:
    """A persisted, ordered conversation belonging to one user."""

    id: str
    owner_id: str
    title: str = DEFAULT_TITLE
    messages: list[Message] = field(default_factory=list)
    mode: AppMode = AppMode.STANDARD
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @classmethod
    def create(cls, owner_id: str, mode: AppMode = AppMode.STANDARD) -> "Session":
        """Create a new session seeded with the welcome message."""
        now = _now()
        return cls(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            messages=[welcome_message()],
            mode=mode,
            created_at=now,
            updated_at=now,
        )

    def touch(self) -> None:
        """Advance updated_at; strictly increasing even within one clock tick."""
        now = _now()
        if now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)
        self.updated_at = now

    def find_message(self, message_id: str) -> Message | None:
        """Find a message by id."""
        for message in self.messages:
            if message.id == message_id:
                return message
        return None


@dataclass
class User:
    """A local user profile. Only `id` matters to the conversation core."""

    id: str
    display_name: str
    photo_ref: str = ""
    email: str | None = None
    credential: str | None = None
    created_at: datetime = field(default_factory=_now)
