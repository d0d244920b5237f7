"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol
from urllib.parse import quote

from .config import resolve_db_path, resolve_language
from .conversation import ConversationController
from .event_bus import EventBus
from .llm import ILLMProvider, IStreamingExecutor, LLMProvider, StreamingRequestExecutor
from .logging_config import get_logger
from .models import User
from .sessions import SessionManager
from .storage import ISessionStore, SessionStore
from .tracker import Tracker

logger = get_logger(__name__)

GUEST_USER_ID = "guest_user"


class UserNotSignedInError(KeyError):
    """No workspace is open for the user."""


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Sign everyone out and clear stored data."""
        ...

    async def sign_in(self, user_id: str, display_name: str | None = None) -> SessionManager:
        """Open the user's workspace."""
        ...

    async def sign_out(self, user_id: str) -> None:
        """Flush and close the user's workspace."""
        ...

    def workspace(self, user_id: str) -> SessionManager:
        """The open workspace of a signed-in user."""
        ...

    @property
    def storage(self) -> ISessionStore: ...

    @property
    def event_bus(self) -> EventBus: ...

    @property
    def controller(self) -> ConversationController: ...


def default_photo_ref(display_name: str) -> str:
    return f"https://api.dicebear.com/7.x/initials/svg?seed={quote(display_name)}"


class Application:
    """Application context: owns shared components and per-user workspaces.

    A workspace (``SessionManager``) is created on sign-in and torn down on
    sign-out; nothing about a user's sessions lives in module globals.
    """

    def __init__(
        self,
        db_path: str | None = None,
        llm_provider: ILLMProvider | None = None,
        executor: IStreamingExecutor | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._llm_override = llm_provider
        self._executor_override = executor

        # Components (will be initialized in start())
        self._storage: ISessionStore | None = None
        self._event_bus: EventBus | None = None
        self._tracker: Tracker | None = None
        self._llm: ILLMProvider | None = None
        self._controller: ConversationController | None = None
        self._workspaces: dict[str, SessionManager] = {}

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = SessionStore(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. EventBus
        self._event_bus = EventBus()

        # 3. Tracker (depends on EventBus + Storage)
        self._tracker = Tracker(self._event_bus, self._storage)
        await self._tracker.start()

        # 4. LLM provider and executor
        if self._executor_override is not None:
            executor = self._executor_override
        else:
            self._llm = self._llm_override or LLMProvider()
            executor = StreamingRequestExecutor(self._llm)
        logger.info("LLM executor initialized")

        # 5. ConversationController (depends on executor + EventBus)
        self._controller = ConversationController(
            executor, self._event_bus, language=resolve_language()
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        for user_id in list(self._workspaces):
            try:
                await self.sign_out(user_id)
            except Exception as e:
                logger.error("Failed to close workspace of %s: %s", user_id, e)
        if self._tracker:
            await self._tracker.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Sign everyone out and clear stored data."""
        for user_id in list(self._workspaces):
            await self.sign_out(user_id)
        await self.storage.clear()
        logger.info("Reset complete")

    async def sign_in(self, user_id: str, display_name: str | None = None) -> SessionManager:
        """Open the user's workspace, creating the profile on first sign-in."""
        if user_id in self._workspaces:
            return self._workspaces[user_id]

        user = await self.storage.get_user(user_id)
        if user is None:
            name = display_name or ("Guest" if user_id == GUEST_USER_ID else user_id)
            user = User(id=user_id, display_name=name, photo_ref=default_photo_ref(name))
            await self.storage.save_user(user)
            logger.info("User profile created", extra={"context": {"user_id": user_id}})

        workspace = SessionManager(
            owner_id=user.id,
            store=self.storage,
            controller=self.controller,
            event_bus=self.event_bus,
            language=self.controller.language,
        )
        await workspace.start()
        self._workspaces[user_id] = workspace
        return workspace

    async def sign_in_guest(self) -> SessionManager:
        return await self.sign_in(GUEST_USER_ID, "Guest")

    async def sign_out(self, user_id: str) -> None:
        """Flush and close the user's workspace."""
        workspace = self._workspaces.pop(user_id, None)
        if workspace is None:
            return
        await workspace.close()

    def workspace(self, user_id: str) -> SessionManager:
        try:
            return self._workspaces[user_id]
        except KeyError:
            raise UserNotSignedInError(user_id) from None

    @property
    def storage(self) -> ISessionStore:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def event_bus(self) -> EventBus:
        """Get event bus instance."""
        if not self._event_bus:
            raise RuntimeError("Application not started")
        return self._event_bus

    @property
    def controller(self) -> ConversationController:
        """Get conversation controller instance."""
        if not self._controller:
            raise RuntimeError("Application not started")
        return self._controller
