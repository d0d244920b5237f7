"""LLM Provider implementation using the Anthropic Messages API."""

import base64
import os
from typing import AsyncIterator, Protocol

import anthropic

from ..config import resolve_max_tokens
from ..models import (
    Citation,
    Content,
    Fragment,
    GenerationRequest,
    InlineDataPart,
    TextPart,
)
from .errors import ContentBlockedError, GenerationError, ServiceConnectionError


class ILLMProvider(Protocol):
    """Abstraction for streamed LLM access."""

    def stream(self, request: GenerationRequest) -> AsyncIterator[Fragment]:
        """Issue the request once and yield response fragments in arrival order."""
        ...


def to_anthropic_messages(contents: list[Content]) -> list[dict]:
    """Convert role/parts contents to Messages API format.

    Empty parts are dropped, consecutive turns of the same role are merged and
    leading model turns (the welcome message) are skipped, since the API
    expects the conversation to open with a user turn.
    """
    messages: list[dict] = []
    for content in contents:
        blocks = []
        for part in content.parts:
            if isinstance(part, InlineDataPart):
                blocks.append(
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": part.mime_type,
                            "data": base64.b64encode(part.data).decode("ascii"),
                        },
                    }
                )
            elif isinstance(part, TextPart) and part.text:
                blocks.append({"type": "text", "text": part.text})
        if not blocks:
            continue

        role = "assistant" if content.role == "model" else "user"
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"].extend(blocks)
        else:
            messages.append({"role": role, "content": blocks})

    while messages and messages[0]["role"] == "assistant":
        messages.pop(0)
    return messages


class LLMProvider:
    """Anthropic Claude API provider."""

    def __init__(self, api_key: str | None = None, max_tokens: int | None = None):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._max_tokens = max_tokens or resolve_max_tokens()
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    def _build_params(self, request: GenerationRequest) -> dict:
        params = {
            "model": request.model,
            "max_tokens": self._max_tokens,
            "system": request.config.system_instruction,
            "messages": to_anthropic_messages(request.contents),
        }
        if request.config.tools:
            params["tools"] = request.config.tools
        if request.config.thinking_budget:
            params["thinking"] = {
                "type": "enabled",
                "budget_tokens": request.config.thinking_budget,
            }
        return params

    async def stream(self, request: GenerationRequest) -> AsyncIterator[Fragment]:
        """Stream one response, translating SDK failures into GenerationErrors."""
        params = self._build_params(request)
        try:
            async with self._client.messages.stream(**params) as stream:
                async for event in stream:
                    if event.type == "content_block_delta":
                        fragment = self._to_fragment(event.delta)
                        if fragment is not None:
                            yield fragment
                    elif (
                        event.type == "message_delta"
                        and event.delta.stop_reason == "refusal"
                    ):
                        raise ContentBlockedError(
                            "Response BLOCKED by SAFETY filters"
                        )
        except anthropic.APIConnectionError as e:
            raise ServiceConnectionError(f"LLM connection error: {e}") from e
        except anthropic.APIStatusError as e:
            raise GenerationError(
                f"LLM API error: {e}", status_code=e.status_code
            ) from e

    @staticmethod
    def _to_fragment(delta) -> Fragment | None:
        if delta.type == "text_delta":
            return Fragment(text_delta=delta.text)
        if delta.type == "citations_delta":
            citation = delta.citation
            url = getattr(citation, "url", None)
            title = getattr(citation, "title", None)
            if url and title:
                return Fragment(citation_deltas=[Citation(title=title, uri=url)])
        # thinking, signature and tool input deltas are not shown
        return None
