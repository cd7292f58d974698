"""Data models for the in-memory conversation.

These models define messages and sessions independent of the storage
backend used to persist them.
"""

import mimetypes
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from uuid_extensions import uuid7

from ..artifacts import Artifact
from ..config import DEFAULT_SESSION_TITLE
from ..llm.models import GroundingMetadata, InlineData


def new_id() -> str:
    """Time-ordered unique identifier for messages and sessions."""
    return str(uuid7())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """One turn of the conversation.

    ``content`` always holds the clean text; a widget fence from the model is
    never stored here, it lives in ``artifact``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id, description="Unique within the conversation")
    role: Role
    content: str = Field(default="", description="Clean, artifact-stripped text")
    timestamp: datetime = Field(default_factory=utc_now)
    artifact: Artifact | None = Field(default=None, description="At most one widget per message")
    grounding_metadata: GroundingMetadata | None = None
    is_error: bool = Field(default=False, description="Content is a failure notice")


# Fields the pipeline may change on an existing message
MUTABLE_MESSAGE_FIELDS = frozenset({"content", "artifact", "grounding_metadata", "is_error"})


class ConversationSession(BaseModel):
    """Immutable snapshot of one titled conversation, as persisted."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    title: str = Field(default=DEFAULT_SESSION_TITLE)
    messages: list[Message] = Field(default_factory=list)
    last_modified: datetime = Field(default_factory=utc_now)

    @property
    def first_user_message(self) -> Message | None:
        for message in self.messages:
            if message.role == Role.USER:
                return message
        return None


class PendingAttachment(BaseModel):
    """A file waiting to be sent with the next message.

    Never persisted; discarded after the send attempt.
    """

    name: str = Field(description="File name shown to the user")
    mime_type: str = Field(description="MIME type of the file")
    data: bytes = Field(description="Raw file contents")

    @classmethod
    def from_path(cls, path: str | Path) -> "PendingAttachment":
        """Read a file from disk, guessing its MIME type from the extension."""
        file_path = Path(path)
        mime_type, _ = mimetypes.guess_type(file_path.name)
        return cls(
            name=file_path.name,
            mime_type=mime_type or "application/octet-stream",
            data=file_path.read_bytes(),
        )

    def to_inline(self) -> InlineData:
        """Convert to the inline binary + MIME type pair sent to the model."""
        return InlineData.from_bytes(self.data, self.mime_type)
