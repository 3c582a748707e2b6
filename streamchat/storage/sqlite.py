"""SQLite implementation of the session store.

Each session is one row; its message list is stored as a JSON document in
the same row, so every operation touches exactly one record.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import JSON, Column, DateTime, String, delete, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from streamchat.errors import ChatError, ErrorKind
from streamchat.models.schemas import ChatSession, Message, new_id, utc_now
from streamchat.storage.base import SessionStore, next_timestamp

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


class ChatSessionORM(Base):
    """Chat session row with embedded messages."""

    __tablename__ = "chat_sessions"

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)
    messages = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False, index=True)
    owner_id = Column(String(255), nullable=True, index=True)


def _to_db(value: datetime) -> datetime:
    # SQLite has no timezone support; rows hold naive UTC
    return value.astimezone(UTC).replace(tzinfo=None)


def _from_db(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def _dump_messages(messages: list[Message]) -> list[dict]:
    return [m.model_dump(mode="json") for m in messages]


class SqliteSessionStore(SessionStore):
    """Async SQLite session store (SQLAlchemy + aiosqlite)."""

    def __init__(self, database_url: str) -> None:
        self._url = make_url(database_url)
        self._in_memory = self._url.database in (None, "", ":memory:")
        engine_kwargs: dict = {"future": True}
        if self._in_memory:
            # One shared connection, otherwise each checkout sees an empty database
            engine_kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        self._engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        self._schema_ready = False

    def _orm_to_model(self, orm: ChatSessionORM) -> ChatSession:
        """Convert ORM row to Pydantic model."""
        return ChatSession(
            id=orm.id,
            title=orm.title,
            messages=[Message.model_validate(m) for m in orm.messages or []],
            created_at=_from_db(orm.created_at),
            updated_at=_from_db(orm.updated_at),
            owner_id=orm.owner_id,
        )

    async def init_schema(self) -> None:
        """Create the database file and tables if missing."""
        if self._schema_ready:
            return
        if not self._in_memory:
            Path(self._url.database).parent.mkdir(parents=True, exist_ok=True)
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialise session store: {e}")
            raise ChatError(ErrorKind.STORE_UNAVAILABLE, "Session store unavailable") from e
        self._schema_ready = True

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        await self.init_schema()
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Session store error: {e}")
            raise ChatError(ErrorKind.STORE_UNAVAILABLE, "Session store unavailable") from e

    async def create(
        self,
        title: str,
        seed_message: Message | None = None,
        owner_id: str | None = None,
    ) -> ChatSession:
        now = utc_now()
        messages = [seed_message.model_copy(update={"timestamp": now})] if seed_message else []
        async with self._session() as session:
            orm = ChatSessionORM(
                id=new_id(),
                title=title,
                messages=_dump_messages(messages),
                created_at=_to_db(now),
                updated_at=_to_db(now),
                owner_id=owner_id,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            logger.info(f"Created session {orm.id}")
            return self._orm_to_model(orm)

    async def get(self, session_id: str) -> ChatSession | None:
        async with self._session() as session:
            orm = await session.get(ChatSessionORM, session_id)
            if orm is None:
                logger.debug(f"Session not found in database: {session_id}")
                return None
            return self._orm_to_model(orm)

    async def update(
        self,
        session_id: str,
        *,
        title: str | None = None,
        messages: list[Message] | None = None,
    ) -> ChatSession | None:
        async with self._session() as session:
            orm = await session.get(ChatSessionORM, session_id)
            if orm is None:
                logger.info(f"Session not found for update: {session_id}")
                return None
            if title is not None:
                orm.title = title
            if messages is not None:
                orm.messages = _dump_messages(messages)
            orm.updated_at = _to_db(next_timestamp(_from_db(orm.updated_at)))
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def delete(self, session_id: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                delete(ChatSessionORM).where(ChatSessionORM.id == session_id)
            )
            await session.commit()
            return result.rowcount > 0

    async def delete_all(self) -> None:
        async with self._session() as session:
            await session.execute(delete(ChatSessionORM))
            await session.commit()
        logger.info("Cleared all sessions")

    async def list_all(self) -> list[ChatSession]:
        async with self._session() as session:
            result = await session.execute(
                select(ChatSessionORM).order_by(ChatSessionORM.updated_at.desc())
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def close(self) -> None:
        await self._engine.dispose()
