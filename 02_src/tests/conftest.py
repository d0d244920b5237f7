"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from borai.models import Fragment  # noqa: E402


class ScriptedProvider:
    """LLM provider that plays back one script per stream() call.

    Script items: str -> text fragment, Fragment -> as is, exception ->
    raised at that point, asyncio.Event -> waited on before continuing.
    """

    def __init__(self, *scripts):
        self.scripts = [list(script) for script in scripts]
        self.requests = []

    async def stream(self, request):
        self.requests.append(request)
        script = self.scripts.pop(0)
        for item in script:
            if isinstance(item, BaseException):
                raise item
            if isinstance(item, asyncio.Event):
                await item.wait()
            elif isinstance(item, str):
                yield Fragment(text_delta=item)
            else:
                yield item


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from borai.storage import SessionStore

    st = SessionStore(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def event_bus():
    """Create EventBus."""
    from borai.event_bus import EventBus

    return EventBus()


@pytest.fixture
def tracker(storage, event_bus):
    """Create Tracker with storage and event bus."""
    from borai.tracker import Tracker

    return Tracker(event_bus=event_bus, storage=storage)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def provider():
    """Provider answering every test turn with a short reply."""
    return ScriptedProvider(*[["Test ", "response"] for _ in range(10)])


@pytest.fixture
def executor(provider, sleep):
    from borai.llm import StreamingRequestExecutor

    return StreamingRequestExecutor(provider, model="test-model", sleep=sleep)


@pytest.fixture
def controller(executor, event_bus):
    from borai.conversation import ConversationController

    return ConversationController(executor, event_bus)


@pytest_asyncio.fixture
async def manager(storage, controller, event_bus):
    """Started SessionManager for user1."""
    from borai.sessions import SessionManager

    sm = SessionManager(
        owner_id="user1",
        store=storage,
        controller=controller,
        event_bus=event_bus,
    )
    await sm.start()
    yield sm
    await sm.close()
