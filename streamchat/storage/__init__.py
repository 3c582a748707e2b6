"""Session persistence.

Responsibilities:
    - Durable CRUD for chat sessions (one document per session)
    - Most-recently-updated ordering for the session list
    - Translating backend failures into STORE_UNAVAILABLE errors

Backends:
    - SqliteSessionStore: SQLAlchemy async engine over aiosqlite
    - MemorySessionStore: process-local, for tests and throwaway runs
"""

from streamchat.config import Settings
from streamchat.storage.base import SessionStore
from streamchat.storage.memory import MemorySessionStore
from streamchat.storage.sqlite import SqliteSessionStore


def create_session_store(settings: Settings) -> SessionStore:
    """Build the store selected by ``settings.store_backend``."""
    if settings.store_backend == "memory":
        return MemorySessionStore()
    return SqliteSessionStore(settings.database_url)


__all__ = [
    "MemorySessionStore",
    "SessionStore",
    "SqliteSessionStore",
    "create_session_store",
]
