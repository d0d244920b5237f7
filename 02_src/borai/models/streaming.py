"""Outbound request and streamed response data models."""

from dataclasses import dataclass, field
from typing import Union

from .messages import Citation, Role


@dataclass(frozen=True)
class TextPart:
    """Plain text content."""

    text: str


@dataclass(frozen=True)
class InlineDataPart:
    """Binary content sent inline (images)."""

    mime_type: str
    data: bytes


Part = Union[TextPart, InlineDataPart]


@dataclass
class Content:
    """One role/parts pair of the outbound conversation."""

    role: Role
    parts: list[Part] = field(default_factory=list)


@dataclass
class GenerationConfig:
    """Per-turn configuration sent alongside the contents."""

    system_instruction: str
    tools: list[dict] = field(default_factory=list)
    thinking_budget: int | None = None


@dataclass
class GenerationRequest:
    """A complete request for one conversational turn."""

    model: str
    contents: list[Content]
    config: GenerationConfig


@dataclass
class Fragment:
    """One incremental unit of a streamed response."""

    text_delta: str = ""
    citation_deltas: list[Citation] = field(default_factory=list)
