"""BorAI conversation core."""

from .app import Application, IApplication, UserNotSignedInError
from .conversation import (
    ConversationController,
    IConversationController,
    TurnInProgressError,
    TurnState,
)
from .event_bus import EventBus, IEventBus
from .grounding import GroundingAggregator, accumulate
from .llm import (
    ILLMProvider,
    IStreamingExecutor,
    LLMProvider,
    StreamingRequestExecutor,
)
from .models import (
    AppMode,
    Attachment,
    BusMessage,
    Citation,
    Fragment,
    Message,
    Session,
    Topic,
    TraceEvent,
    User,
)
from .sessions import ISessionManager, SessionManager
from .storage import ISessionStore, SessionStore, StorageUnavailableError
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    "UserNotSignedInError",
    # Models
    "AppMode",
    "Attachment",
    "BusMessage",
    "Citation",
    "Fragment",
    "Message",
    "Session",
    "Topic",
    "TraceEvent",
    "User",
    # Components
    "ISessionStore",
    "SessionStore",
    "StorageUnavailableError",
    "IEventBus",
    "EventBus",
    "ITracker",
    "Tracker",
    "GroundingAggregator",
    "accumulate",
    "ILLMProvider",
    "LLMProvider",
    "IStreamingExecutor",
    "StreamingRequestExecutor",
    "IConversationController",
    "ConversationController",
    "TurnInProgressError",
    "TurnState",
    "ISessionManager",
    "SessionManager",
]
