"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
exception handlers and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from streamchat.api.chat import router as chat_router
from streamchat.api.responses import register_exception_handlers
from streamchat.api.sessions import router as sessions_router
from streamchat.config import Settings, get_settings
from streamchat.provider.base import CompletionProvider
from streamchat.storage import SqliteSessionStore, create_session_store
from streamchat.storage.base import SessionStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown lifecycle.

    Creates the session tables on startup and releases the store on
    shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    logger.info("Starting chat API...")
    store: SessionStore = app.state.store
    if isinstance(store, SqliteSessionStore):
        await store.init_schema()
    yield
    logger.info("Shutting down chat API...")
    await store.close()


def create_app(
    settings: Settings | None = None,
    store: SessionStore | None = None,
    provider: CompletionProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Runtime settings (loaded from environment if omitted).
        store: Session store (built from settings if omitted).
        provider: Completion provider (the process-wide provider is
            created on the first chat turn if omitted).

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    application = FastAPI(
        title="Streaming Chat API",
        description=(
            "Chat sessions backed by a document store, with assistant replies "
            "streamed from a hosted LLM as server-sent events."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.store = store or create_session_store(settings)
    application.state.provider = provider

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    register_exception_handlers(application)
    application.include_router(sessions_router)
    application.include_router(chat_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "streamchat"}

    return application


app = create_app()
