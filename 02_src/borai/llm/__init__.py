"""LLM module."""

from .errors import (
    ContentBlockedError,
    FailureCategory,
    GenerationError,
    ServiceConnectionError,
    classify_failure,
    is_transient,
)
from .executor import (
    IStreamingExecutor,
    StreamingRequestExecutor,
    history_view,
    message_parts,
)
from .llm_provider import ILLMProvider, LLMProvider, to_anthropic_messages

__all__ = [
    "ILLMProvider",
    "LLMProvider",
    "to_anthropic_messages",
    "IStreamingExecutor",
    "StreamingRequestExecutor",
    "history_view",
    "message_parts",
    "GenerationError",
    "ContentBlockedError",
    "ServiceConnectionError",
    "FailureCategory",
    "classify_failure",
    "is_transient",
]
