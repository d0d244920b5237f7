"""Request and response models for the HTTP API."""

import base64
import binascii
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..models import AppMode, Attachment, Message, Session, TraceEvent


class CitationModel(BaseModel):
    title: str
    uri: str


class AttachmentModel(BaseModel):
    """An attachment with base64-encoded bytes."""

    mime_type: str
    data: str

    def to_attachment(self) -> Attachment:
        try:
            raw = base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("Attachment data must be base64") from e
        return Attachment(data=raw, mime_type=self.mime_type)

    @classmethod
    def from_attachment(cls, attachment: Attachment) -> "AttachmentModel":
        return cls(
            mime_type=attachment.mime_type,
            data=base64.b64encode(attachment.data).decode("ascii"),
        )


class MessageResponse(BaseModel):
    """Response model for a transcript message."""

    id: str
    role: str
    text: str
    citations: list[CitationModel] = Field(default_factory=list)
    attachments: list[AttachmentModel] = Field(default_factory=list)
    streaming: bool
    failed: bool

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            role=message.role,
            text=message.text,
            citations=[CitationModel(title=c.title, uri=c.uri) for c in message.citations],
            attachments=[AttachmentModel.from_attachment(a) for a in message.attachments],
            streaming=message.streaming,
            failed=message.failed,
        )


class SessionSummary(BaseModel):
    """Response model for a session list entry."""

    id: str
    title: str
    mode: AppMode
    message_count: int
    created_at: datetime
    updated_at: datetime
    current: bool = False

    @classmethod
    def from_session(cls, session: Session, current: bool = False) -> "SessionSummary":
        return cls(
            id=session.id,
            title=session.title,
            mode=session.mode,
            message_count=len(session.messages),
            created_at=session.created_at,
            updated_at=session.updated_at,
            current=current,
        )


class SessionResponse(SessionSummary):
    """Response model for a full session."""

    owner_id: str
    messages: list[MessageResponse]

    @classmethod
    def from_session(cls, session: Session, current: bool = False) -> "SessionResponse":
        return cls(
            id=session.id,
            owner_id=session.owner_id,
            title=session.title,
            mode=session.mode,
            message_count=len(session.messages),
            created_at=session.created_at,
            updated_at=session.updated_at,
            current=current,
            messages=[MessageResponse.from_message(m) for m in session.messages],
        )


class SignInRequest(BaseModel):
    """Request model for opening a workspace."""

    display_name: str | None = None
    language: str | None = None


class CreateSessionRequest(BaseModel):
    mode: AppMode = AppMode.STANDARD


class ModeRequest(BaseModel):
    mode: AppMode


class SubmitRequest(BaseModel):
    """Request model for submitting a turn."""

    text: str = ""
    attachments: list[AttachmentModel] = Field(default_factory=list)
    session_id: str | None = None


class TraceEventResponse(BaseModel):
    """Recorded lifecycle event."""

    id: str
    event_type: str
    actor: str
    session_id: str | None = None
    data: dict[str, Any]
    timestamp: datetime

    @classmethod
    def from_event(cls, event: TraceEvent) -> "TraceEventResponse":
        return cls(
            id=event.id,
            event_type=event.event_type,
            actor=event.actor,
            session_id=event.data.get("session_id"),
            data=event.data,
            timestamp=event.timestamp,
        )
