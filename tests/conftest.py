"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - memory_store: Fresh in-process session store
    - scripted_provider: Completion provider replaying fixed fragments
    - app: FastAPI app wired to the memory store and scripted provider
    - async_client: HTTPX client for API testing
    - api_client: ChatApiClient talking to ``app`` in-process

Implements async fixtures with proper cleanup, scoped per test.
"""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from streamchat.api.app import create_app
from streamchat.config import Settings
from streamchat.models.schemas import ChatSession, Message
from streamchat.provider.base import CompletionProvider, FragmentStream
from streamchat.session.lifecycle import RetryPolicy, SessionLifecycle
from streamchat.storage.memory import MemorySessionStore
from streamchat.ui.client import ChatApiClient


class ScriptedProvider(CompletionProvider):
    """Provider that replays a fixed list of fragments.

    Attributes:
        calls: ``(message, history)`` for every stream opened.
        streams: Every FragmentStream handed out, for close checks.
    """

    name = "scripted"

    def __init__(
        self,
        fragments: list[str] | None = None,
        fail_after: int | None = None,
        fail_on_open: bool = False,
    ) -> None:
        self.fragments = fragments if fragments is not None else ["Hello", " there", "!"]
        self.fail_after = fail_after
        self.fail_on_open = fail_on_open
        self.calls: list[tuple[str, list[Message]]] = []
        self.streams: list[FragmentStream] = []

    async def stream(self, message: str, history: list[Message]) -> FragmentStream:
        self.calls.append((message, list(history)))
        if self.fail_on_open:
            raise ConnectionError("provider unreachable")

        async def texts() -> AsyncIterator[str]:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i >= self.fail_after:
                    raise RuntimeError("provider dropped the connection")
                await asyncio.sleep(0)
                yield fragment

        stream = FragmentStream(texts())
        self.streams.append(stream)
        return stream


class LaggyStore(MemorySessionStore):
    """Memory store whose reads miss the first ``misses`` times per session.

    Simulates a replica that has not caught up with a fresh write.
    """

    def __init__(self, misses: int = 0) -> None:
        super().__init__()
        self.misses = misses
        self.reads: dict[str, int] = {}

    async def get(self, session_id: str) -> ChatSession | None:
        count = self.reads.get(session_id, 0) + 1
        self.reads[session_id] = count
        if count <= self.misses:
            return None
        return await super().get(session_id)


async def no_sleep(delay: float, cancel: asyncio.Event | None = None) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def memory_store() -> MemorySessionStore:
    """Return an empty in-process session store."""
    return MemorySessionStore()


@pytest.fixture
def scripted_provider() -> ScriptedProvider:
    """Return a provider that streams ``Hello there!`` in three fragments."""
    return ScriptedProvider()


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests: memory store, no waits between retries."""
    return Settings(
        store_backend="memory",
        resolve_delay=0.0,
        verify_base_delay=0.0,
        verify_max_delay=0.0,
        cors_origins=["*"],
    )


@pytest.fixture
def app(
    test_settings: Settings,
    memory_store: MemorySessionStore,
    scripted_provider: ScriptedProvider,
) -> FastAPI:
    """Create the API app wired to test doubles."""
    return create_app(settings=test_settings, store=memory_store, provider=scripted_provider)


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def api_client(async_client: AsyncClient) -> AsyncGenerator[ChatApiClient]:
    """ChatApiClient that reaches the app through ASGI transport."""
    client = ChatApiClient(http_client=async_client)
    yield client
    await client.close()


@pytest.fixture
def fast_lifecycle_factory():
    """Build SessionLifecycles over any store with instant retries."""

    def build(store, resolve_attempts: int = 3, verify_attempts: int = 5) -> SessionLifecycle:
        return SessionLifecycle(
            store,
            resolve_policy=RetryPolicy(attempts=resolve_attempts, base_delay=0.1),
            verify_policy=RetryPolicy(
                attempts=verify_attempts, base_delay=0.2, multiplier=2.0, max_delay=1.0
            ),
            sleep=no_sleep,
        )

    return build
