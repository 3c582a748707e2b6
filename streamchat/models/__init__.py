"""Pydantic models for API requests, responses and persisted sessions.

Models:
    - Message: Individual message in a conversation
    - ChatSession: Persisted conversation with ordered messages
    - CreateSessionRequest / UpdateSessionRequest: Session CRUD payloads
    - VerifySessionRequest / VerifySessionResult: Visibility check payloads
    - ChatRequest: Incoming chat turn
    - StreamFragment: One frame of the streamed reply
"""

from streamchat.models.schemas import (
    ChatRequest,
    ChatSession,
    CreateSessionRequest,
    Message,
    MessageRole,
    StreamFragment,
    UpdateSessionRequest,
    VerifySessionRequest,
    VerifySessionResult,
    new_id,
    utc_now,
)

__all__ = [
    "ChatRequest",
    "ChatSession",
    "CreateSessionRequest",
    "Message",
    "MessageRole",
    "StreamFragment",
    "UpdateSessionRequest",
    "VerifySessionRequest",
    "VerifySessionResult",
    "new_id",
    "utc_now",
]
