"""Messaging API routes."""

import asyncio
import json

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from ...app import IApplication
from ...conversation import EmptySubmissionError, TurnInProgressError
from ...logging_config import get_logger
from ...models import BusMessage, Topic
from ..errors import to_http_exception
from ..schemas import MessageResponse, SubmitRequest

logger = get_logger(__name__)

STREAM_TOPICS = [
    Topic.TURN_STARTED,
    Topic.MESSAGE_UPDATED,
    Topic.TURN_COMPLETED,
    Topic.TURN_FAILED,
]
TERMINAL_EVENTS = {Topic.TURN_COMPLETED.value, Topic.TURN_FAILED.value, "error"}


def create_messaging_router(app: IApplication) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api/users/{user_id}", tags=["messaging"])

    @router.post("/messages", response_model=MessageResponse)
    async def send_message(user_id: str, request: SubmitRequest) -> MessageResponse:
        """Run a turn and return the final model message."""
        try:
            attachments = [a.to_attachment() for a in request.attachments]
            message = await app.workspace(user_id).submit(
                request.text, attachments, session_id=request.session_id
            )
            return MessageResponse.from_message(message)
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/messages/stream")
    async def stream_message(user_id: str, request: SubmitRequest) -> StreamingResponse:
        """Run a turn, streaming transcript updates as NDJSON lines."""
        try:
            workspace = app.workspace(user_id)
            session = (
                workspace.get_session(request.session_id)
                if request.session_id
                else workspace.current
            )
            attachments = [a.to_attachment() for a in request.attachments]
            if not request.text.strip() and not attachments:
                raise EmptySubmissionError("Nothing to send")
            if app.controller.is_busy(session.id):
                raise TurnInProgressError(
                    f"Session {session.id} already has a turn in flight"
                )
        except Exception as e:
            raise to_http_exception(e)

        queue: asyncio.Queue[dict | None] = asyncio.Queue()

        async def forward(bus_message: BusMessage) -> None:
            if bus_message.payload.get("session_id") == session.id:
                queue.put_nowait({"event": bus_message.topic.value, **bus_message.payload})

        for topic in STREAM_TOPICS:
            app.event_bus.subscribe(topic, forward)

        async def run_turn() -> None:
            try:
                await workspace.submit(request.text, attachments, session_id=session.id)
            except Exception as e:
                # The status line is already sent; report the failure in-band
                error = to_http_exception(e)
                queue.put_nowait(
                    {
                        "event": "error",
                        "session_id": session.id,
                        "status_code": error.status_code,
                        "detail": error.detail,
                    }
                )
                raise
            finally:
                queue.put_nowait(None)

        def log_turn_error(task: asyncio.Task) -> None:
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "Streamed turn for %s failed: %s",
                    session.id,
                    task.exception(),
                    extra={"context": {"session_id": session.id}},
                )

        async def body():
            # The turn runs to completion even if the client goes away
            task = asyncio.create_task(run_turn())
            task.add_done_callback(log_turn_error)
            try:
                while True:
                    item = await queue.get()
                    if item is None:
                        break
                    yield json.dumps(item) + "\n"
                    if item["event"] in TERMINAL_EVENTS:
                        break
            finally:
                for topic in STREAM_TOPICS:
                    app.event_bus.unsubscribe(topic, forward)

        return StreamingResponse(body(), media_type="application/x-ndjson")

    return router
