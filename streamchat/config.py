"""Application settings with environment variable loading.

Pydantic-based configuration for storage, session verification and the
HTTP surface. Provider settings live in ``streamchat.provider.config``.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables from .env file
load_dotenv()


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings(BaseModel):
    """Runtime settings for the chat service.

    Attributes:
        store_backend: ``sqlite`` for the durable store, ``memory`` for a
            process-local one.
        database_url: SQLAlchemy async URL for the SQLite store.
        max_message_length: Upper bound on a single user message.
        resolve_attempts: Reads before a session is reported missing.
        resolve_delay: Fixed wait between resolve attempts (seconds).
        verify_attempts: Reads allowed to confirm a freshly created session.
        verify_base_delay: First backoff wait when verifying (seconds).
        verify_max_delay: Cap for each backoff wait (seconds).
        api_base_url: Where the UI reaches the API.
        cors_origins: Allowed CORS origins.
    """

    model_config = ConfigDict(validate_default=True)

    store_backend: str = Field(
        default_factory=lambda: os.getenv("STREAMCHAT_STORE", "sqlite").lower(),
        description="Session store backend: 'sqlite' or 'memory'",
    )
    database_url: str = Field(
        default_factory=lambda: os.getenv(
            "STREAMCHAT_DATABASE_URL", "sqlite+aiosqlite:///data/sessions.db"
        ),
        description="SQLAlchemy async database URL",
    )
    max_message_length: int = Field(
        default_factory=lambda: int(os.getenv("STREAMCHAT_MAX_MESSAGE_LENGTH", "10000")),
        ge=1,
        description="Maximum characters in a single chat message",
    )
    resolve_attempts: int = Field(default=3, ge=1, le=20)
    resolve_delay: float = Field(default=0.1, ge=0.0)
    verify_attempts: int = Field(default=5, ge=1, le=20)
    verify_base_delay: float = Field(default=0.2, ge=0.0)
    verify_max_delay: float = Field(default=1.0, ge=0.0)
    api_base_url: str = Field(
        default_factory=lambda: os.getenv("API_BASE_URL", "http://localhost:8000"),
        description="Base URL the UI uses to reach the API",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: _env_list("CORS_ORIGINS", "*"),
    )

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Only the known backends are accepted."""
        if v not in ("sqlite", "memory"):
            raise ValueError("STREAMCHAT_STORE must be 'sqlite' or 'memory'")
        return v


def get_settings() -> Settings:
    """Create settings from environment.

    Returns:
        Configured Settings instance.
    """
    return Settings()
