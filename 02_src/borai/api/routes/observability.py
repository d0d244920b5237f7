"""Observability API routes."""

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query

from ...app import IApplication
from ...tracker import TRACKED_TOPICS
from ..errors import to_http_exception
from ..schemas import TraceEventResponse

TRACKED_EVENT_TYPES = [topic.value for topic in TRACKED_TOPICS]


def create_observability_router(app: IApplication) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/trace-events", response_model=list[TraceEventResponse])
    async def get_trace_events(
        after: str | None = Query(None, description="ISO timestamp filter"),
        limit: int = Query(100, ge=1, le=1000),
        event_type: list[str] | None = Query(None, description="Repeatable"),
        actor: str | None = Query(None, description="conversation_controller or session_manager"),
        session_id: str | None = Query(None),
    ) -> list[TraceEventResponse]:
        """Turn and session lifecycle events, newest first."""
        if after:
            try:
                after_dt = datetime.fromisoformat(after)
            except ValueError:
                raise HTTPException(status_code=400, detail="Invalid after timestamp format")
        else:
            after_dt = None

        unknown = sorted(set(event_type or ()) - set(TRACKED_EVENT_TYPES))
        if unknown:
            raise HTTPException(
                status_code=422,
                detail=f"Untracked event types: {', '.join(unknown)}",
            )

        try:
            events = await app.storage.get_trace_events(
                after=after_dt,
                event_types=event_type,
                actor=actor,
                session_id=session_id,
                limit=limit,
            )
        except Exception as e:
            raise to_http_exception(e)
        return [TraceEventResponse.from_event(e) for e in events]

    return router
