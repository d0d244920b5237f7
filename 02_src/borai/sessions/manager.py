"""SessionManager implementation."""

import asyncio
from typing import Iterable, Protocol

from ..config import DEFAULT_LANGUAGE
from ..conversation import (
    IConversationController,
    SessionNotFoundError,
    failure_text,
)
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import AppMode, Attachment, BusMessage, Message, Session, Topic, welcome_message
from ..storage import ISessionStore, StorageUnavailableError
from .writer import SessionWriter

logger = get_logger(__name__)

INTERRUPTED_EXPLANATION = "The response was interrupted before it finished."

# Topics whose payload mutates a session held by the manager
_TRANSCRIPT_TOPICS = [
    Topic.TURN_STARTED,
    Topic.MESSAGE_UPDATED,
    Topic.TURN_COMPLETED,
    Topic.TURN_FAILED,
]


class ISessionManager(Protocol):
    """Creation, selection, deletion and clearing of one user's sessions."""

    async def create_session(self, mode: AppMode = AppMode.STANDARD) -> Session:
        """Create, persist and select a seeded session."""
        ...

    def select_session(self, session_id: str) -> Session:
        """Make a session current."""
        ...

    async def delete_session(self, session_id: str) -> Session:
        """Delete a session; the owner always keeps at least one."""
        ...

    async def clear_session(self, session_id: str) -> Session:
        """Reset a session to its welcome message, keeping its identity."""
        ...

    async def submit(
        self,
        text: str,
        attachments: Iterable[Attachment] = (),
        session_id: str | None = None,
    ) -> Message:
        """Run a turn on a session (the current one by default)."""
        ...


class SessionManager:
    """Owns the in-memory sessions of one signed-in user.

    Streaming updates are persisted in the background through a coalescing
    ``SessionWriter``; explicit lifecycle operations write through and
    propagate storage failures to the caller.
    """

    def __init__(
        self,
        owner_id: str,
        store: ISessionStore,
        controller: IConversationController,
        event_bus: IEventBus,
        language: str = DEFAULT_LANGUAGE,
    ):
        self.owner_id = owner_id
        self.language = language
        self._store = store
        self._controller = controller
        self._event_bus = event_bus
        self._writer = SessionWriter(store)

        self._sessions: dict[str, Session] = {}
        self._current_id: str | None = None

    async def start(self) -> None:
        """Load sessions from the store and subscribe for persistence."""
        for topic in _TRANSCRIPT_TOPICS:
            self._event_bus.subscribe(topic, self._on_transcript_change)

        stored = await self._store.list_sessions(self.owner_id)
        for session in stored:
            self._recover_interrupted(session)
            self._sessions[session.id] = session

        if stored:
            self._current_id = stored[0].id
            logger.info("Loaded %d sessions for %s", len(stored), self.owner_id)
        else:
            await self.create_session()

    async def close(self) -> None:
        """Orphan running turns, flush writes and unsubscribe."""
        for session_id in self._sessions:
            self._controller.invalidate(session_id)
        try:
            await self._writer.flush()
        finally:
            for topic in _TRANSCRIPT_TOPICS:
                self._event_bus.unsubscribe(topic, self._on_transcript_change)

    def _recover_interrupted(self, session: Session) -> None:
        """A message persisted mid-stream lost its stream with the process."""
        for message in session.messages:
            if message.streaming:
                message.text = failure_text(message.text, INTERRUPTED_EXPLANATION)
                message.streaming = False
                message.failed = True
                self._writer.schedule(session)

    async def _on_transcript_change(self, bus_message: BusMessage) -> None:
        session = self._sessions.get(bus_message.payload.get("session_id"))
        if session is not None:
            self._writer.schedule(session)

    @property
    def sessions(self) -> list[Session]:
        """Sessions, most recently updated first."""
        return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    @property
    def current(self) -> Session:
        if self._current_id is None:
            raise SessionNotFoundError("No session selected")
        return self._sessions[self._current_id]

    def get_session(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    async def create_session(self, mode: AppMode = AppMode.STANDARD) -> Session:
        """Create, persist and select a seeded session."""
        session = Session.create(self.owner_id, mode=mode)
        self._sessions[session.id] = session
        self._current_id = session.id
        await self._writer.save_now(session)
        await self._emit_session_updated(session, "created")
        return session

    def select_session(self, session_id: str) -> Session:
        """Make a session current."""
        session = self.get_session(session_id)
        self._current_id = session.id
        return session

    async def delete_session(self, session_id: str) -> Session:
        """Delete a session and return the one selected afterwards.

        Deleting the last session creates and selects a fresh one.
        """
        session = self.get_session(session_id)
        self._controller.invalidate(session.id)
        # Out of the map first so late transcript events cannot reschedule it
        del self._sessions[session.id]
        try:
            await self._writer.discard(session.id)
            await self._store.delete_session(session.id)
        except StorageUnavailableError:
            self._sessions[session.id] = session
            raise

        await self._event_bus.emit(
            Topic.SESSION_DELETED,
            {"session_id": session.id, "owner_id": self.owner_id},
            source="session_manager",
        )
        logger.info("Session deleted", extra={"context": {"session_id": session.id}})

        if not self._sessions:
            return await self.create_session()
        if self._current_id == session.id:
            self._current_id = self.sessions[0].id
        return self.current

    async def clear_session(self, session_id: str) -> Session:
        """Reset a session to its welcome message, keeping id and owner."""
        session = self.get_session(session_id)
        self._controller.invalidate(session.id)
        session.messages = [welcome_message()]
        session.touch()
        await self._writer.save_now(session)
        await self._emit_session_updated(session, "cleared")
        return session

    async def set_mode(self, session_id: str, mode: AppMode) -> Session:
        """Switch the conversation mode of a session."""
        session = self.get_session(session_id)
        session.mode = AppMode(mode)
        session.touch()
        await self._writer.save_now(session)
        await self._emit_session_updated(session, "mode_changed")
        return session

    async def submit(
        self,
        text: str,
        attachments: Iterable[Attachment] = (),
        session_id: str | None = None,
    ) -> Message:
        """Run a turn on a session (the current one by default)."""
        session = self.get_session(session_id) if session_id else self.current
        try:
            message = await self._controller.submit(
                session, text, attachments, language=self.language
            )
        except asyncio.CancelledError:
            # A cancelled turn publishes no terminal event
            if self._sessions.get(session.id) is session:
                self._writer.schedule(session)
            raise
        await self._writer.wait(session.id)
        return message

    async def flush(self) -> None:
        """Persist everything still pending. Errors propagate."""
        await self._writer.flush()

    async def _emit_session_updated(self, session: Session, change: str) -> None:
        await self._event_bus.emit(
            Topic.SESSION_UPDATED,
            {
                "session_id": session.id,
                "owner_id": session.owner_id,
                "change": change,
                "title": session.title,
                "mode": session.mode.value,
            },
            source="session_manager",
        )
