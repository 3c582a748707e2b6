"""Request-scoped accessors for collaborators held on ``app.state``."""

from fastapi import Request

from streamchat.config import Settings
from streamchat.provider import get_completion_provider
from streamchat.relay.stream_relay import StreamRelay
from streamchat.session.lifecycle import SessionLifecycle
from streamchat.storage.base import SessionStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_lifecycle(request: Request) -> SessionLifecycle:
    return SessionLifecycle.from_settings(get_store(request), get_settings(request))


def get_relay(request: Request) -> StreamRelay:
    """Build a relay for one request.

    Uses the provider injected at app creation, or the process-wide one
    (created on first use).
    """
    settings = get_settings(request)
    provider = request.app.state.provider or get_completion_provider
    return StreamRelay(
        get_lifecycle(request),
        provider,
        max_message_length=settings.max_message_length,
    )
