"""Streaming request executor with retry on transient failures."""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Iterable, Protocol

from ..config import MAX_RETRIES, RETRY_BACKOFF_FACTOR, RETRY_BASE_DELAY, resolve_model
from ..logging_config import get_logger
from ..models import (
    Attachment,
    Content,
    Fragment,
    GenerationConfig,
    GenerationRequest,
    InlineDataPart,
    Message,
    Part,
    TextPart,
)
from .errors import is_transient
from .llm_provider import ILLMProvider

logger = get_logger(__name__)


def message_parts(text: str, attachments: Iterable[Attachment] = ()) -> list[Part]:
    """Images as inline binary parts first, then the text part if any."""
    parts: list[Part] = [
        InlineDataPart(mime_type=att.mime_type, data=att.data) for att in attachments
    ]
    if text:
        parts.append(TextPart(text=text))
    return parts


def history_view(messages: Iterable[Message]) -> list[Content]:
    """Re-express a transcript as role/parts contents."""
    return [
        Content(role=message.role, parts=message_parts(message.text, message.attachments))
        for message in messages
    ]


class IStreamingExecutor(Protocol):
    """Issues one conversational turn and yields its fragments."""

    def execute(
        self,
        history: list[Content],
        new_parts: list[Part],
        config: GenerationConfig,
    ) -> AsyncIterator[Fragment]:
        """Lazy, forward-only, non-restartable fragment sequence."""
        ...


class StreamingRequestExecutor:
    """Issues turns through an LLM provider.

    Transient failures are retried with exponential backoff, re-sending the
    same request, but only until the first fragment arrives. After that any
    failure propagates to the consumer.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        model: str | None = None,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
        backoff_factor: float = RETRY_BACKOFF_FACTOR,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._llm = llm_provider
        self._model = model or resolve_model()
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._backoff_factor = backoff_factor
        self._sleep = sleep

    def build_request(
        self,
        history: list[Content],
        new_parts: list[Part],
        config: GenerationConfig,
    ) -> GenerationRequest:
        """Append the new user turn to the history."""
        return GenerationRequest(
            model=self._model,
            contents=[*history, Content(role="user", parts=list(new_parts))],
            config=config,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt + 1`."""
        return self._base_delay * (self._backoff_factor**attempt)

    async def execute(
        self,
        history: list[Content],
        new_parts: list[Part],
        config: GenerationConfig,
    ) -> AsyncIterator[Fragment]:
        """Yield fragments of one turn in arrival order."""
        request = self.build_request(history, new_parts, config)
        stream, first = await self._open(request)
        try:
            if first is None:
                return
            yield first
            async for fragment in stream:
                yield fragment
        finally:
            await _close(stream)

    async def _open(
        self, request: GenerationRequest
    ) -> tuple[AsyncIterator[Fragment], Fragment | None]:
        """Start a stream and wait for its first fragment, retrying if transient."""
        attempt = 0
        while True:
            stream = self._llm.stream(request)
            try:
                first = await stream.__anext__()
                return stream, first
            except StopAsyncIteration:
                return stream, None
            except Exception as e:
                await _close(stream)
                if not is_transient(e) or attempt >= self._max_retries:
                    raise
                delay = self.backoff_delay(attempt)
                attempt += 1
                logger.warning(
                    "Transient generation failure, retry %d/%d in %.1fs: %s",
                    attempt,
                    self._max_retries,
                    delay,
                    e,
                )
                await self._sleep(delay)


async def _close(stream: AsyncIterator[Fragment]) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()
