"""Session store interface.

Every operation is atomic for a single session document. There are no
cross-session transactions and no locking; concurrent writes to the same
session resolve as last-write-wins.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from streamchat.models.schemas import ChatSession, Message, utc_now


def next_timestamp(previous: datetime) -> datetime:
    """Current time, nudged forward so it is strictly after ``previous``."""
    now = utc_now()
    if now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class SessionStore(ABC):
    """Durable CRUD for chat sessions.

    ``get`` and ``update`` return ``None`` for unknown ids. An unreachable
    backend raises ``ChatError`` with kind ``STORE_UNAVAILABLE``.
    """

    @abstractmethod
    async def create(
        self,
        title: str,
        seed_message: Message | None = None,
        owner_id: str | None = None,
    ) -> ChatSession:
        """Create a session holding zero or one seed message."""

    @abstractmethod
    async def get(self, session_id: str) -> ChatSession | None:
        """Fetch a session by id."""

    @abstractmethod
    async def update(
        self,
        session_id: str,
        *,
        title: str | None = None,
        messages: list[Message] | None = None,
    ) -> ChatSession | None:
        """Replace the supplied fields and bump ``updated_at``.

        Never creates a session that does not exist.
        """

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Delete one session. Returns whether it existed."""

    @abstractmethod
    async def delete_all(self) -> None:
        """Delete every session."""

    @abstractmethod
    async def list_all(self) -> list[ChatSession]:
        """All sessions, most recently updated first."""

    async def close(self) -> None:
        """Release backend resources."""
