"""Integration tests for the SSE streaming chat endpoint.

Tests streaming behavior with httpx AsyncClient and ASGITransport against
the real FastAPI app. The completion provider is scripted; a live-provider
test runs only when an API key is configured.
"""

import json
import os

import pytest
import pytest_check as check
from httpx import ASGITransport, AsyncClient

from streamchat.api.app import create_app
from streamchat.config import Settings
from streamchat.models.schemas import Message, MessageRole, StreamFragment
from streamchat.relay.sse import DONE_MARKER
from streamchat.storage.memory import MemorySessionStore
from tests.conftest import ScriptedProvider


def has_llm_key() -> bool:
    """Check if a provider API key is configured."""
    key = os.environ.get("LLM_API_KEY") or os.environ.get("GOOGLE_API_KEY") or os.environ.get("OPENAI_API_KEY")
    return bool(key and not key.isspace())


requires_api_key = pytest.mark.skipif(
    not has_llm_key(),
    reason="No LLM API key set - skipping live provider test",
)


async def read_data_lines(client: AsyncClient, payload: dict) -> list[str]:
    async with client.stream("POST", "/chat", json=payload) as response:
        assert response.status_code == 200
        return [
            line.removeprefix("data: ").strip()
            async for line in response.aiter_lines()
            if line.startswith("data: ")
        ]


@pytest.fixture
async def session_id(memory_store: MemorySessionStore) -> str:
    session = await memory_store.create("Hello", Message(role=MessageRole.USER, content="Hello"))
    return session.id


class TestStreamingEndpoint:
    """Integration tests for POST /chat."""

    async def test_stream_returns_sse_headers(self, async_client: AsyncClient, session_id: str) -> None:
        """Streaming endpoint returns text/event-stream with no-buffering headers."""
        async with async_client.stream(
            "POST", "/chat", json={"sessionId": session_id, "message": "Hello"}
        ) as response:
            assert response.status_code == 200
            check.is_in("text/event-stream", response.headers["content-type"])
            check.equal(response.headers["cache-control"], "no-cache")
            check.equal(response.headers["x-accel-buffering"], "no")

    async def test_chunks_then_single_done(self, async_client: AsyncClient, session_id: str) -> None:
        """Each content frame is valid JSON and the stream ends with one [DONE]."""
        data = await read_data_lines(async_client, {"sessionId": session_id, "message": "Hello"})

        check.equal(data[-1], DONE_MARKER)
        check.equal(data.count(DONE_MARKER), 1)
        fragments = [StreamFragment.model_validate_json(d) for d in data[:-1]]
        check.equal("".join(f.content for f in fragments), "Hello there!")
        check.is_false(any(f.is_error for f in fragments))

    async def test_history_reaches_provider(
        self, async_client: AsyncClient, session_id: str, scripted_provider: ScriptedProvider
    ) -> None:
        history = [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi! How can I help?"},
        ]

        await read_data_lines(
            async_client, {"sessionId": session_id, "message": "What is 2+2?", "history": history}
        )

        message, received = scripted_provider.calls[0]
        check.equal(message, "What is 2+2?")
        check.equal([m.content for m in received], ["Hello", "Hi! How can I help?"])

    async def test_null_history_accepted(self, async_client: AsyncClient, session_id: str) -> None:
        data = await read_data_lines(
            async_client, {"sessionId": session_id, "message": "Hello", "history": None}
        )

        assert data[-1] == DONE_MARKER

    async def test_relay_does_not_persist(
        self, async_client: AsyncClient, session_id: str, memory_store: MemorySessionStore
    ) -> None:
        """Writing the reply back is the client's job."""
        await read_data_lines(async_client, {"sessionId": session_id, "message": "Hello"})

        stored = await memory_store.get(session_id)
        assert stored is not None
        assert [m.content for m in stored.messages] == ["Hello"]


class TestStreamingErrorHandling:
    """Tests for error scenarios in the streaming endpoint."""

    @pytest.mark.parametrize("message", ["", "   "])
    async def test_empty_message_returns_400(
        self, async_client: AsyncClient, session_id: str, message: str
    ) -> None:
        response = await async_client.post("/chat", json={"sessionId": session_id, "message": message})

        assert response.status_code == 400
        error = response.json()["error"]
        check.equal(error["code"], "VALIDATION_ERROR")
        check.is_false(response.json()["success"])

    async def test_message_length_boundary(self, async_client: AsyncClient, session_id: str) -> None:
        accepted = await read_data_lines(async_client, {"sessionId": session_id, "message": "a" * 10_000})
        rejected = await async_client.post("/chat", json={"sessionId": session_id, "message": "a" * 10_001})

        check.equal(accepted[-1], DONE_MARKER)
        check.equal(rejected.status_code, 400)

    async def test_missing_session_id_returns_400(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/chat", json={"message": "Hello"})

        assert response.status_code == 400

    async def test_invalid_json_returns_400(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/chat", content="not valid json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400

    async def test_malformed_history_returns_400(self, async_client: AsyncClient, session_id: str) -> None:
        response = await async_client.post(
            "/chat",
            json={"sessionId": session_id, "message": "Hi", "history": [{"role": "wizard", "content": "x"}]},
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid history"

    async def test_unknown_session_returns_404(
        self, async_client: AsyncClient, scripted_provider: ScriptedProvider
    ) -> None:
        response = await async_client.post("/chat", json={"sessionId": "ghost", "message": "Hello"})

        check.equal(response.status_code, 404)
        check.equal(response.json()["error"]["code"], "NOT_FOUND")
        check.equal(scripted_provider.calls, [])

    async def test_provider_unreachable_returns_500(self, session_id: str, memory_store: MemorySessionStore) -> None:
        app = create_app(
            settings=Settings(store_backend="memory", resolve_delay=0.0),
            store=memory_store,
            provider=ScriptedProvider(fail_on_open=True),
        )
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/chat", json={"sessionId": session_id, "message": "Hello"})

        check.equal(response.status_code, 500)
        check.equal(response.json()["error"]["code"], "AI_ERROR")

    async def test_mid_stream_failure_is_an_error_frame(
        self, session_id: str, memory_store: MemorySessionStore
    ) -> None:
        app = create_app(
            settings=Settings(store_backend="memory", resolve_delay=0.0),
            store=memory_store,
            provider=ScriptedProvider(["Partial", " reply"], fail_after=1),
        )
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            data = await read_data_lines(client, {"sessionId": session_id, "message": "Hello"})

        check.equal(json.loads(data[0]), {"content": "Partial"})
        check.equal(json.loads(data[-1]), {"error": "Failed to generate response", "code": "AI_ERROR"})
        check.is_not_in(DONE_MARKER, data)

    async def test_wrong_http_method_returns_405(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/chat")

        assert response.status_code == 405


@requires_api_key
async def test_live_provider_streams_text(memory_store: MemorySessionStore, session_id: str) -> None:
    """Stream a real reply from the configured provider.

    Requires LLM_API_KEY (or GOOGLE_API_KEY / OPENAI_API_KEY).
    """
    app = create_app(settings=Settings(store_backend="memory"), store=memory_store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        data = await read_data_lines(
            client, {"sessionId": session_id, "message": "Say the word 'hello' and nothing else"}
        )

    assert data[-1] == DONE_MARKER
    text = "".join(StreamFragment.model_validate_json(d).content or "" for d in data[:-1])
    assert len(text) > 0
