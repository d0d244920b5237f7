"""Coalesced per-session persistence."""

import asyncio

from ..logging_config import get_logger
from ..models import Session
from ..storage import ISessionStore, StorageUnavailableError

logger = get_logger(__name__)


class SessionWriter:
    """Serializes and coalesces session writes.

    Each session has at most one write in flight. Updates scheduled while a
    write is running collapse into a single follow-up write of the latest
    state. Failed background writes are kept and retried by the next
    ``schedule`` or ``flush``.
    """

    def __init__(self, store: ISessionStore):
        self._store = store
        self._pending: dict[str, Session] = {}
        self._unsaved: dict[str, Session] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def schedule(self, session: Session) -> None:
        """Mark a session dirty and make sure a writer is draining it."""
        self._unsaved.pop(session.id, None)
        self._pending[session.id] = session
        task = self._tasks.get(session.id)
        if task is None or task.done():
            self._tasks[session.id] = asyncio.create_task(self._drain(session.id))

    async def _drain(self, session_id: str) -> None:
        while session_id in self._pending:
            session = self._pending.pop(session_id)
            try:
                await self._store.save_session(session)
            except StorageUnavailableError as e:
                logger.error(
                    "Session write failed, keeping in-memory state: %s",
                    e,
                    extra={"context": {"session_id": session_id}},
                )
                # A newer pending state supersedes this one
                if session_id not in self._pending:
                    self._unsaved[session_id] = session
                    return

    async def wait(self, session_id: str) -> None:
        """Wait for the session's background writer to go idle."""
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.shield(task)

    async def save_now(self, session: Session) -> None:
        """Write immediately, after any in-flight write. Errors propagate."""
        self._pending.pop(session.id, None)
        self._unsaved.pop(session.id, None)
        await self.wait(session.id)
        try:
            await self._store.save_session(session)
        except StorageUnavailableError:
            self._unsaved[session.id] = session
            raise

    async def discard(self, session_id: str) -> None:
        """Drop pending state of a session and wait out its in-flight write."""
        self._pending.pop(session_id, None)
        self._unsaved.pop(session_id, None)
        await self.wait(session_id)
        self._tasks.pop(session_id, None)

    async def flush(self) -> None:
        """Drain all writers, then retry failed writes. Errors propagate."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks)
        for session_id, session in list(self._unsaved.items()):
            await self._store.save_session(session)
            self._unsaved.pop(session_id, None)

    def has_unsaved(self, session_id: str) -> bool:
        return session_id in self._unsaved or session_id in self._pending
