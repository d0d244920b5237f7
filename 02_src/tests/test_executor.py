"""Tests for StreamingRequestExecutor."""

import pytest

from borai.llm import (
    ContentBlockedError,
    GenerationError,
    StreamingRequestExecutor,
    history_view,
    message_parts,
)
from borai.models import (
    Attachment,
    Citation,
    Content,
    Fragment,
    GenerationConfig,
    InlineDataPart,
    Message,
    TextPart,
)

from conftest import RecordingSleep, ScriptedProvider

CONFIG = GenerationConfig(system_instruction="Be helpful.")


def busy(status=503):
    return GenerationError(f"HTTP {status}", status_code=status)


async def collect(executor, history=None, text="Hi"):
    return [
        fragment
        async for fragment in executor.execute(history or [], message_parts(text), CONFIG)
    ]


def make_executor(*scripts):
    provider = ScriptedProvider(*scripts)
    sleep = RecordingSleep()
    executor = StreamingRequestExecutor(provider, model="test-model", sleep=sleep)
    return executor, provider, sleep


class TestMessageParts:
    def test_images_before_text(self):
        att = Attachment(data=b"img", mime_type="image/png")
        parts = message_parts("What is this?", [att])
        assert parts == [InlineDataPart(mime_type="image/png", data=b"img"), TextPart(text="What is this?")]

    def test_empty_text_is_dropped(self):
        assert message_parts("") == []

    def test_history_view(self):
        history = history_view(
            [Message(role="model", text="Welcome"), Message(role="user", text="Hi")]
        )
        assert history == [
            Content(role="model", parts=[TextPart(text="Welcome")]),
            Content(role="user", parts=[TextPart(text="Hi")]),
        ]


class TestExecute:
    @pytest.mark.asyncio
    async def test_yields_fragments_in_order(self):
        cite = Fragment(citation_deltas=[Citation(title="A", uri="u1")])
        executor, _, sleep = make_executor(["Hello", " world", cite])

        fragments = await collect(executor)

        assert [f.text_delta for f in fragments] == ["Hello", " world", ""]
        assert fragments[2].citation_deltas == [Citation(title="A", uri="u1")]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_request_appends_user_turn(self):
        executor, provider, _ = make_executor(["ok"])
        history = [Content(role="model", parts=[TextPart(text="Welcome")])]

        await collect(executor, history=history, text="Question")

        request = provider.requests[0]
        assert request.model == "test-model"
        assert request.config is CONFIG
        assert request.contents == [
            history[0],
            Content(role="user", parts=[TextPart(text="Question")]),
        ]
        # caller's history is untouched
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        executor, _, _ = make_executor([])
        assert await collect(executor) == []

    @pytest.mark.asyncio
    async def test_retries_transient_failures_with_backoff(self):
        """Three transient failures then success: four attempts, 1s/2s/4s apart."""
        executor, provider, sleep = make_executor(
            [busy(503)], [busy(429)], [busy(529)], ["Recovered"]
        )

        fragments = await collect(executor)

        assert [f.text_delta for f in fragments] == ["Recovered"]
        assert len(provider.requests) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        # the same request is re-sent on every attempt
        assert all(r is provider.requests[0] for r in provider.requests)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        executor, provider, sleep = make_executor(*[[busy(503)] for _ in range(5)])

        with pytest.raises(GenerationError) as exc_info:
            await collect(executor)

        assert exc_info.value.status_code == 503
        assert len(provider.requests) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_transient_failure_is_not_retried(self):
        executor, provider, sleep = make_executor([GenerationError("bad", 400)], ["never"])

        with pytest.raises(GenerationError):
            await collect(executor)

        assert len(provider.requests) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_safety_block_is_not_retried(self):
        executor, provider, _ = make_executor([ContentBlockedError("refused", 429)])

        with pytest.raises(ContentBlockedError):
            await collect(executor)

        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_failure_after_first_fragment_propagates(self):
        """Once content has arrived, a transient failure is not retried."""
        executor, provider, sleep = make_executor(["Partial", busy(503)], ["never"])

        received = []
        with pytest.raises(GenerationError):
            async for fragment in executor.execute([], message_parts("Hi"), CONFIG):
                received.append(fragment.text_delta)

        assert received == ["Partial"]
        assert len(provider.requests) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_custom_backoff(self):
        provider = ScriptedProvider([busy()], [busy()], ["ok"])
        sleep = RecordingSleep()
        executor = StreamingRequestExecutor(
            provider, model="m", max_retries=2, base_delay=0.5, backoff_factor=3, sleep=sleep
        )

        await collect(executor)

        assert sleep.delays == [0.5, 1.5]
        assert executor.backoff_delay(2) == 4.5
