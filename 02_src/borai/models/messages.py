"""Message-related data models."""

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

Role = Literal["user", "model"]


@dataclass(frozen=True)
class Citation:
    """A source used to ground a model response. Unique by uri."""

    title: str
    uri: str


@dataclass(frozen=True)
class Attachment:
    """An already-decoded binary attachment (image) supplied by the client."""

    data: bytes
    mime_type: str

    @property
    def digest(self) -> str:
        """Content address of the attachment bytes."""
        return hashlib.sha256(self.data).hexdigest()


@dataclass
class Message:
    """A single message in a session transcript."""

    role: Role
    text: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    citations: list[Citation] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    streaming: bool = False
    failed: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_final(self) -> bool:
        """A message is immutable once it is no longer streaming."""
        return not self.streaming
