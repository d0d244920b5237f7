"""Tests for Application."""

from unittest.mock import patch

import pytest
import pytest_asyncio

from borai.app import GUEST_USER_ID, Application, UserNotSignedInError

from conftest import ScriptedProvider


@pytest_asyncio.fixture
async def app():
    application = Application(
        db_path=":memory:",
        llm_provider=ScriptedProvider(*[["Test ", "response"] for _ in range(5)]),
    )
    await application.start()
    yield application
    await application.stop()


class TestApplicationStart:
    """Tests for Application.start()."""

    @pytest.mark.asyncio
    async def test_start_initializes_components(self, app):
        """Test that start initializes all components."""
        assert app._storage is not None
        assert app._event_bus is not None
        assert app._tracker is not None
        assert app._llm is not None
        assert app._controller is not None

    @pytest.mark.asyncio
    async def test_start_wires_dependencies(self, app):
        """Test that components are initialized in dependency order."""
        assert app._tracker._event_bus is app._event_bus
        assert app._tracker._storage is app._storage
        assert app._controller._event_bus is app._event_bus

    @pytest.mark.asyncio
    async def test_start_creates_database_tables(self, app):
        async with app._storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            assert "sessions" in tables

    @pytest.mark.asyncio
    async def test_default_provider_is_anthropic(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")
        with patch("borai.llm.llm_provider.anthropic.AsyncAnthropic"):
            application = Application(db_path=":memory:")
            await application.start()

        from borai.llm import LLMProvider

        assert isinstance(application._llm, LLMProvider)
        await application.stop()

    def test_components_unavailable_before_start(self):
        application = Application(db_path=":memory:")
        with pytest.raises(RuntimeError):
            application.storage


class TestApplicationWorkspaces:
    @pytest.mark.asyncio
    async def test_sign_in_creates_profile_and_workspace(self, app):
        workspace = await app.sign_in("alice", "Alice")

        user = await app.storage.get_user("alice")
        assert user.display_name == "Alice"
        assert "Alice" in user.photo_ref
        assert app.workspace("alice") is workspace
        assert len(workspace.sessions) == 1

    @pytest.mark.asyncio
    async def test_sign_in_twice_returns_same_workspace(self, app):
        first = await app.sign_in("alice")
        second = await app.sign_in("alice")
        assert first is second

    @pytest.mark.asyncio
    async def test_guest_sign_in(self, app):
        workspace = await app.sign_in_guest()

        assert workspace.owner_id == GUEST_USER_ID
        user = await app.storage.get_user(GUEST_USER_ID)
        assert user.display_name == "Guest"

    @pytest.mark.asyncio
    async def test_sign_out_closes_workspace(self, app):
        await app.sign_in("alice")
        await app.sign_out("alice")

        with pytest.raises(UserNotSignedInError):
            app.workspace("alice")

    @pytest.mark.asyncio
    async def test_sessions_survive_sign_out(self, app):
        workspace = await app.sign_in("alice")
        await workspace.submit("Hello")
        session_id = workspace.current.id
        await app.sign_out("alice")

        workspace = await app.sign_in("alice")
        assert workspace.current.id == session_id
        assert workspace.current.messages[-1].text == "Test response"

    @pytest.mark.asyncio
    async def test_workspaces_are_isolated(self, app):
        alice = await app.sign_in("alice")
        bob = await app.sign_in("bob")

        await alice.submit("Hello")

        assert len(alice.current.messages) == 3
        assert len(bob.current.messages) == 1
        assert alice.current.id != bob.current.id

    @pytest.mark.asyncio
    async def test_reset_clears_everything(self, app):
        workspace = await app.sign_in("alice")
        await workspace.submit("Hello")

        await app.reset()

        with pytest.raises(UserNotSignedInError):
            app.workspace("alice")
        assert await app.storage.get_user("alice") is None
        assert await app.storage.list_sessions("alice") == []
