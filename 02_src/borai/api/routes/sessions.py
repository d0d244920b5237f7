"""Session lifecycle API routes."""

from fastapi import APIRouter

from ...app import IApplication
from ...conversation import LANGUAGES
from ..errors import to_http_exception
from ..schemas import (
    CreateSessionRequest,
    ModeRequest,
    SessionResponse,
    SessionSummary,
    SignInRequest,
)


def create_sessions_router(app: IApplication) -> APIRouter:
    """Create sessions router."""
    router = APIRouter(prefix="/api/users/{user_id}", tags=["sessions"])

    def summaries(user_id: str) -> list[SessionSummary]:
        workspace = app.workspace(user_id)
        current_id = workspace.current.id
        return [
            SessionSummary.from_session(s, current=s.id == current_id)
            for s in workspace.sessions
        ]

    @router.post("/sign-in", response_model=list[SessionSummary])
    async def sign_in(user_id: str, request: SignInRequest) -> list[SessionSummary]:
        """Open the user's workspace and list their sessions."""
        try:
            if request.language is not None and request.language not in LANGUAGES:
                raise ValueError(f"Unsupported language: {request.language}")
            workspace = await app.sign_in(user_id, request.display_name)
            if request.language is not None:
                workspace.language = request.language
            return summaries(user_id)
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/sign-out", status_code=204)
    async def sign_out(user_id: str) -> None:
        """Flush and close the user's workspace."""
        try:
            await app.sign_out(user_id)
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/sessions", response_model=list[SessionSummary])
    async def list_sessions(user_id: str) -> list[SessionSummary]:
        """List sessions, most recently updated first."""
        try:
            return summaries(user_id)
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/sessions", response_model=SessionResponse, status_code=201)
    async def create_session(user_id: str, request: CreateSessionRequest) -> SessionResponse:
        """Start a new conversation and select it."""
        try:
            session = await app.workspace(user_id).create_session(request.mode)
            return SessionResponse.from_session(session, current=True)
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/sessions/{session_id}", response_model=SessionResponse)
    async def get_session(user_id: str, session_id: str) -> SessionResponse:
        """Get a session with its full transcript."""
        try:
            workspace = app.workspace(user_id)
            session = workspace.get_session(session_id)
            return SessionResponse.from_session(
                session, current=session.id == workspace.current.id
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/sessions/{session_id}/select", response_model=SessionResponse)
    async def select_session(user_id: str, session_id: str) -> SessionResponse:
        """Make a session current."""
        try:
            session = app.workspace(user_id).select_session(session_id)
            return SessionResponse.from_session(session, current=True)
        except Exception as e:
            raise to_http_exception(e)

    @router.delete("/sessions/{session_id}", response_model=SessionResponse)
    async def delete_session(user_id: str, session_id: str) -> SessionResponse:
        """Delete a session and return the session selected afterwards."""
        try:
            session = await app.workspace(user_id).delete_session(session_id)
            return SessionResponse.from_session(session, current=True)
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/sessions/{session_id}/clear", response_model=SessionResponse)
    async def clear_session(user_id: str, session_id: str) -> SessionResponse:
        """Reset a session to its welcome message."""
        try:
            workspace = app.workspace(user_id)
            session = await workspace.clear_session(session_id)
            return SessionResponse.from_session(
                session, current=session.id == workspace.current.id
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.put("/sessions/{session_id}/mode", response_model=SessionSummary)
    async def set_mode(user_id: str, session_id: str, request: ModeRequest) -> SessionSummary:
        """Switch the conversation mode of a session."""
        try:
            workspace = app.workspace(user_id)
            session = await workspace.set_mode(session_id, request.mode)
            return SessionSummary.from_session(
                session, current=session.id == workspace.current.id
            )
        except Exception as e:
            raise to_http_exception(e)

    return router
