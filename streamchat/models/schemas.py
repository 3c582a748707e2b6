"""Pydantic models for sessions, messages and API payloads.

Wire payloads use camelCase names (``createdAt``, ``sessionId``) while the
Python attributes stay snake_case. Models accept either form on input.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

TITLE_MAX_LENGTH = 200


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate an opaque identifier for sessions and messages."""
    return uuid4().hex


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict using wire (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True)


class MessageRole(str, Enum):
    """Speaker of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(CamelModel):
    """A single message in a conversation.

    Attributes:
        id: Identifier, unique within its session.
        role: Who produced the message.
        content: Message text. May be empty only for an assistant message
            that is still streaming.
        timestamp: When the message was created.
    """

    id: str = Field(default_factory=new_id, min_length=1)
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def require_content(self) -> "Message":
        """User and system messages must carry text."""
        if self.role != MessageRole.ASSISTANT and not self.content.strip():
            raise ValueError(f"{self.role.value} message content must not be empty")
        return self


class ChatSession(CamelModel):
    """A persisted conversation.

    Attributes:
        id: Store-generated identifier, immutable after creation.
        title: Display title (1-200 characters).
        messages: Messages in chronological turn order.
        created_at: Creation time.
        updated_at: Last modification time, never before ``created_at``.
        owner_id: Optional owner reference.
    """

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    owner_id: str | None = None

    @model_validator(mode="after")
    def check_timestamps(self) -> "ChatSession":
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt must not precede createdAt")
        return self


class CreateSessionRequest(CamelModel):
    """Body of ``POST /sessions``."""

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    first_message: Message | None = None


class UpdateSessionRequest(CamelModel):
    """Body of ``PATCH /sessions/{id}``. Omitted fields are left untouched."""

    title: str | None = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    messages: list[Message] | None = None


class VerifySessionRequest(CamelModel):
    """Body of ``POST /sessions/verify``."""

    session_id: str = Field(..., min_length=1)


class VerifySessionResult(CamelModel):
    """Payload returned by ``POST /sessions/verify``."""

    exists: bool
    session: ChatSession | None = None
    total_sessions: int = Field(..., ge=0)


class ChatRequest(CamelModel):
    """Body of ``POST /chat``.

    ``message`` and ``history`` are checked by the relay so the length bound
    and history shape are enforced the same way for every caller.
    """

    session_id: str = Field(..., min_length=1)
    message: str
    history: list[Any] = Field(default_factory=list)

    @field_validator("history", mode="before")
    @classmethod
    def default_history(cls, v: Any) -> Any:
        """Treat an explicit ``null`` history as empty."""
        return [] if v is None else v


class StreamFragment(BaseModel):
    """One frame of the chat event stream.

    Either ``content`` (a piece of generated text) or ``error`` and ``code``
    (terminal failure) is set. The ``[DONE]`` sentinel is not a fragment.
    """

    content: str | None = None
    error: str | None = None
    code: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None
