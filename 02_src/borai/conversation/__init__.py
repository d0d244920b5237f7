"""Conversation module."""

from .controller import (
    ConversationController,
    IConversationController,
    Turn,
    TurnState,
    TurnToken,
    derive_title,
    failure_text,
    message_payload,
)
from .errors import EmptySubmissionError, SessionNotFoundError, TurnInProgressError
from .prompts import LANGUAGES, generation_config, system_instruction

__all__ = [
    "ConversationController",
    "IConversationController",
    "Turn",
    "TurnState",
    "TurnToken",
    "derive_title",
    "failure_text",
    "message_payload",
    "TurnInProgressError",
    "EmptySubmissionError",
    "SessionNotFoundError",
    "LANGUAGES",
    "generation_config",
    "system_instruction",
]
