"""Core data models for BorAI."""

from .bus import BusMessage, Topic
from .messages import Attachment, Citation, Message, Role
from .sessions import (
    DEFAULT_TITLE,
    WELCOME_MESSAGE_ID,
    WELCOME_TEXT,
    AppMode,
    Session,
    User,
    welcome_message,
)
from .streaming import (
    Content,
    Fragment,
    GenerationConfig,
    GenerationRequest,
    InlineDataPart,
    Part,
    TextPart,
)
from .tracing import TraceEvent

__all__ = [
    # Messages
    "Role",
    "Citation",
    "Attachment",
    "Message",
    # Sessions
    "AppMode",
    "Session",
    "User",
    "DEFAULT_TITLE",
    "WELCOME_MESSAGE_ID",
    "WELCOME_TEXT",
    "welcome_message",
    # Streaming
    "TextPart",
    "InlineDataPart",
    "Part",
    "Content",
    "GenerationConfig",
    "GenerationRequest",
    "Fragment",
    # EventBus
    "BusMessage",
    "Topic",
    # Tracing
    "TraceEvent",
]
