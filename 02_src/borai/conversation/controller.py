"""ConversationController implementation."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol

from ..config import DEFAULT_LANGUAGE
from ..event_bus import IEventBus
from ..grounding import GroundingAggregator
from ..llm import IStreamingExecutor, classify_failure, history_view, message_parts
from ..logging_config import get_logger
from ..models import DEFAULT_TITLE, Attachment, Fragment, Message, Session, Topic
from .errors import EmptySubmissionError, TurnInProgressError
from .prompts import generation_config

logger = get_logger(__name__)

TITLE_MAX_CHARS = 40
ATTACHMENT_ONLY_TITLE = "Image Query"
FAILURE_SEPARATOR = "\n\n---\n\n"


class TurnState(str, Enum):
    """Lifecycle of one in-flight turn."""

    IDLE = "idle"
    DRAFTING = "drafting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TurnToken:
    """Identifies the session state a turn writes into."""

    session_id: str
    epoch: int
    message_id: str


@dataclass
class Turn:
    token: TurnToken
    user_message: Message
    model_message: Message
    state: TurnState = TurnState.DRAFTING


def derive_title(text: str, has_attachments: bool) -> str:
    """Title from the first user input, truncated to 40 characters."""
    source = text or (ATTACHMENT_ONLY_TITLE if has_attachments else "Conversation")
    if len(source) > TITLE_MAX_CHARS:
        return source[:TITLE_MAX_CHARS] + "..."
    return source


def failure_text(partial: str, explanation: str) -> str:
    """Keep partial output and append the explanation after a separator."""
    if not partial:
        return explanation
    return f"{partial}{FAILURE_SEPARATOR}⚠️ **{explanation}**"


def message_payload(message: Message) -> dict:
    """Observer-facing view of a message (attachment bytes omitted)."""
    return {
        "id": message.id,
        "role": message.role,
        "text": message.text,
        "citations": [{"title": c.title, "uri": c.uri} for c in message.citations],
        "attachments": [
            {"mime_type": a.mime_type, "digest": a.digest} for a in message.attachments
        ],
        "streaming": message.streaming,
        "failed": message.failed,
    }


class IConversationController(Protocol):
    """Runs turns against sessions."""

    async def submit(
        self,
        session: Session,
        text: str,
        attachments: Iterable[Attachment] = (),
        language: str | None = None,
    ) -> Message:
        """Run one turn and return the final model message."""
        ...

    def invalidate(self, session_id: str) -> None:
        """Orphan any in-flight turn of the session."""
        ...

    def turn_state(self, session_id: str) -> TurnState:
        """State of the session's in-flight turn."""
        ...


class ConversationController:
    """Owns the per-turn state machine.

    The controller is the single consumer of each fragment stream and the
    only writer of messages in flight. Turns are tagged with the session
    epoch they started in; ``invalidate`` bumps the epoch so fragments of an
    orphaned stream are discarded instead of landing in replaced state.
    """

    def __init__(
        self,
        executor: IStreamingExecutor,
        event_bus: IEventBus,
        language: str = DEFAULT_LANGUAGE,
    ):
        self._executor = executor
        self._event_bus = event_bus
        self.language = language

        self._turns: dict[str, Turn] = {}  # session_id -> in-flight turn
        self._epochs: dict[str, int] = {}

    def turn_state(self, session_id: str) -> TurnState:
        turn = self._turns.get(session_id)
        return turn.state if turn else TurnState.IDLE

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._turns

    def invalidate(self, session_id: str) -> None:
        """Orphan any in-flight turn of the session."""
        self._epochs[session_id] = self._epochs.get(session_id, 0) + 1
        turn = self._turns.pop(session_id, None)
        if turn:
            logger.info(
                "Turn orphaned",
                extra={"context": {"session_id": session_id, "message_id": turn.token.message_id}},
            )

    def _is_current(self, token: TurnToken) -> bool:
        return self._epochs.get(token.session_id, 0) == token.epoch

    async def submit(
        self,
        session: Session,
        text: str,
        attachments: Iterable[Attachment] = (),
        language: str | None = None,
    ) -> Message:
        """Run one turn: optimistic insert, stream, then complete or fail.

        Raises TurnInProgressError if the session already has a turn in
        flight and EmptySubmissionError if there is nothing to send. Every
        other failure ends up in the returned model message.
        """
        text = text.strip()
        attachments = list(attachments)
        if not text and not attachments:
            raise EmptySubmissionError("Nothing to send")
        if session.id in self._turns:
            raise TurnInProgressError(f"Session {session.id} already has a turn in flight")

        # Drafting: the user's input is in the transcript before any network call
        history = history_view(session.messages)
        user_message = Message(role="user", text=text, attachments=attachments)
        model_message = Message(role="model", text="", streaming=True)
        token = TurnToken(
            session_id=session.id,
            epoch=self._epochs.get(session.id, 0),
            message_id=model_message.id,
        )
        turn = Turn(token=token, user_message=user_message, model_message=model_message)
        self._turns[session.id] = turn

        if session.title == DEFAULT_TITLE and len(session.messages) == 1:
            session.title = derive_title(text, bool(attachments))
        # Both land before the first await so a clear replaces them together
        session.messages.append(user_message)
        session.messages.append(model_message)
        session.touch()

        try:
            await self._event_bus.emit(
                Topic.TURN_STARTED,
                {
                    "session_id": session.id,
                    "title": session.title,
                    "message_id": model_message.id,
                    "message": message_payload(user_message),
                },
                source="conversation_controller",
            )
            if not self._is_current(token):
                return model_message

            turn.state = TurnState.STREAMING
            await self._publish_update(session, model_message, "")
            if not self._is_current(token):
                return model_message

            await self._stream(
                session,
                turn,
                self._executor.execute(
                    history,
                    message_parts(text, attachments),
                    generation_config(session.mode, language or self.language),
                ),
            )
        finally:
            if model_message.streaming and self._is_current(token):
                # Cancelled mid-turn; nothing more will be applied
                model_message.streaming = False
                model_message.failed = True
            if self._turns.get(session.id) is turn:
                del self._turns[session.id]

        return model_message

    async def _stream(self, session: Session, turn: Turn, fragments) -> None:
        message = turn.model_message
        aggregator = GroundingAggregator()
        try:
            async for fragment in fragments:
                if not self._is_current(turn.token):
                    logger.info(
                        "Discarding fragments of orphaned turn",
                        extra={"context": {"session_id": session.id, "message_id": message.id}},
                    )
                    return
                self._apply(message, aggregator, fragment)
                session.touch()
                await self._publish_update(session, message, fragment.text_delta)
        except Exception as e:
            if not self._is_current(turn.token):
                return
            await self._fail(session, turn, e)
            return
        finally:
            await fragments.aclose()

        if self._is_current(turn.token):
            await self._complete(session, turn)

    @staticmethod
    def _apply(message: Message, aggregator: GroundingAggregator, fragment: Fragment) -> None:
        message.text += fragment.text_delta
        if fragment.citation_deltas:
            message.citations = aggregator.accumulate(fragment.citation_deltas)

    async def _complete(self, session: Session, turn: Turn) -> None:
        message = turn.model_message
        message.streaming = False
        turn.state = TurnState.COMPLETED
        session.touch()
        logger.info(
            "Turn completed",
            extra={"context": {"session_id": session.id, "chars": len(message.text)}},
        )
        await self._event_bus.emit(
            Topic.TURN_COMPLETED,
            {
                "session_id": session.id,
                "message_id": message.id,
                "citation_count": len(message.citations),
                "message": message_payload(message),
            },
            source="conversation_controller",
        )

    async def _fail(self, session: Session, turn: Turn, error: Exception) -> None:
        message = turn.model_message
        category = classify_failure(error)
        logger.error(
            "Turn failed (%s): %s",
            category.value,
            error,
            exc_info=error,
            extra={"context": {"session_id": session.id, "message_id": message.id}},
        )
        message.text = failure_text(message.text, category.explanation)
        message.failed = True
        message.streaming = False
        turn.state = TurnState.FAILED
        session.touch()
        await self._event_bus.emit(
            Topic.TURN_FAILED,
            {
                "session_id": session.id,
                "message_id": message.id,
                "category": category.value,
                "error": str(error),
                "message": message_payload(message),
            },
            source="conversation_controller",
        )

    async def _publish_update(self, session: Session, message: Message, delta: str) -> None:
        await self._event_bus.emit(
            Topic.MESSAGE_UPDATED,
            {
                "session_id": session.id,
                "message_id": message.id,
                "delta": delta,
                "message": message_payload(message),
            },
            source="conversation_controller",
        )
