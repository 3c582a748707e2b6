"""In-process session store."""

import asyncio
import logging

from streamchat.models.schemas import ChatSession, Message, new_id, utc_now
from streamchat.storage.base import SessionStore, next_timestamp

logger = logging.getLogger(__name__)


class MemorySessionStore(SessionStore):
    """Session store backed by a dict. Contents vanish with the process."""

    def __init__(self) -> None:
        self._sessions: dict[str, ChatSession] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        title: str,
        seed_message: Message | None = None,
        owner_id: str | None = None,
    ) -> ChatSession:
        now = utc_now()
        session = ChatSession(
            id=new_id(),
            title=title,
            messages=[seed_message.model_copy(update={"timestamp": now})] if seed_message else [],
            created_at=now,
            updated_at=now,
            owner_id=owner_id,
        )
        async with self._lock:
            self._sessions[session.id] = session
        logger.info(f"Created session {session.id}")
        return session.model_copy(deep=True)

    async def get(self, session_id: str) -> ChatSession | None:
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug(f"Session not found: {session_id}")
            return None
        return session.model_copy(deep=True)

    async def update(
        self,
        session_id: str,
        *,
        title: str | None = None,
        messages: list[Message] | None = None,
    ) -> ChatSession | None:
        async with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                logger.info(f"Session not found for update: {session_id}")
                return None
            changes: dict = {"updated_at": next_timestamp(current.updated_at)}
            if title is not None:
                changes["title"] = title
            if messages is not None:
                changes["messages"] = [m.model_copy() for m in messages]
            updated = current.model_copy(update=changes)
            self._sessions[session_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            return self._sessions.pop(session_id, None) is not None

    async def delete_all(self) -> None:
        async with self._lock:
            self._sessions.clear()
        logger.info("Cleared all sessions")

    async def list_all(self) -> list[ChatSession]:
        sessions = sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)
        return [s.model_copy(deep=True) for s in sessions]
