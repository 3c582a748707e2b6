"""Unit tests for StreamRelay and RelayTurn."""

import pytest
import pytest_check as check

from streamchat.errors import ChatError, ErrorKind
from streamchat.models.schemas import Message, MessageRole
from streamchat.relay.sse import DONE_FRAME
from streamchat.relay.stream_relay import StreamRelay, TurnState
from tests.conftest import LaggyStore, ScriptedProvider


@pytest.fixture
async def session_id(memory_store) -> str:
    session = await memory_store.create("Hello", Message(role=MessageRole.USER, content="Hello"))
    return session.id


@pytest.fixture
def relay(memory_store, scripted_provider, fast_lifecycle_factory) -> StreamRelay:
    return StreamRelay(fast_lifecycle_factory(memory_store), scripted_provider)


async def collect(turn) -> list[str]:
    return [frame async for frame in turn.frames()]


class TestValidation:
    """Input checks that run before any collaborator is touched."""

    @pytest.mark.parametrize("message", ["", "   ", "\n\t", None, 42])
    async def test_empty_or_non_string_message(
        self, message, memory_store, scripted_provider, fast_lifecycle_factory
    ) -> None:
        store = LaggyStore()
        relay = StreamRelay(fast_lifecycle_factory(store), scripted_provider)

        with pytest.raises(ChatError) as exc_info:
            await relay.open_turn("s1", message, [])

        check.equal(exc_info.value.kind, ErrorKind.VALIDATION)
        check.equal(store.reads, {})
        check.equal(scripted_provider.calls, [])

    async def test_length_boundary(self, relay: StreamRelay, session_id: str) -> None:
        """10,000 characters are accepted; 10,001 are not."""
        turn = await relay.open_turn(session_id, "a" * 10_000, [])
        await turn.aclose()

        with pytest.raises(ChatError) as exc_info:
            await relay.open_turn(session_id, "a" * 10_001, [])

        assert exc_info.value.kind == ErrorKind.VALIDATION

    async def test_oversized_message_touches_nothing(
        self, scripted_provider, fast_lifecycle_factory
    ) -> None:
        store = LaggyStore()
        relay = StreamRelay(fast_lifecycle_factory(store), scripted_provider)

        with pytest.raises(ChatError):
            await relay.open_turn("s1", "a" * 10_001, [])

        check.equal(store.reads, {})
        check.equal(scripted_provider.calls, [])

    def test_malformed_history(self, relay: StreamRelay) -> None:
        with pytest.raises(ChatError) as exc_info:
            relay.validate("hi", [{"role": "wizard", "content": "x"}])

        error = exc_info.value
        check.equal(error.kind, ErrorKind.VALIDATION)
        check.equal(error.details[0]["loc"][:2], [0, "role"])

    def test_history_with_empty_content(self, relay: StreamRelay) -> None:
        with pytest.raises(ChatError) as exc_info:
            relay.validate("hi", [{"role": "user", "content": "Hello"}, {"role": "assistant", "content": ""}])

        assert exc_info.value.details[0]["loc"] == ["history", 1, "content"]

    def test_history_not_a_list(self, relay: StreamRelay) -> None:
        with pytest.raises(ChatError):
            relay.validate("hi", "not a list")

    def test_valid_history_is_parsed(self, relay: StreamRelay) -> None:
        messages = relay.validate(
            "What is 2+2?",
            [{"role": "user", "content": "Hello"}, {"role": "assistant", "content": "Hi!"}],
        )

        assert [m.role for m in messages] == [MessageRole.USER, MessageRole.ASSISTANT]

    def test_custom_length_limit(self, memory_store, scripted_provider, fast_lifecycle_factory) -> None:
        relay = StreamRelay(fast_lifecycle_factory(memory_store), scripted_provider, max_message_length=5)

        relay.validate("12345", [])
        with pytest.raises(ChatError):
            relay.validate("123456", [])


class TestOpenTurn:
    """Session resolution and provider stream opening."""

    async def test_unknown_session_is_not_found(self, scripted_provider, fast_lifecycle_factory) -> None:
        store = LaggyStore()
        relay = StreamRelay(fast_lifecycle_factory(store), scripted_provider)

        with pytest.raises(ChatError) as exc_info:
            await relay.open_turn("ghost", "Hello", [])

        check.equal(exc_info.value.kind, ErrorKind.NOT_FOUND)
        check.equal(exc_info.value.message, "Session not found")
        check.equal(store.reads["ghost"], 3)
        check.equal(scripted_provider.calls, [])

    async def test_lagging_session_is_resolved(self, scripted_provider, fast_lifecycle_factory) -> None:
        store = LaggyStore(misses=2)
        session = await store.create("Hello")
        relay = StreamRelay(fast_lifecycle_factory(store), scripted_provider)

        turn = await relay.open_turn(session.id, "Hello", [])

        check.equal(turn.state, TurnState.STREAMING)
        await turn.aclose()

    async def test_provider_receives_message_and_history(
        self, relay: StreamRelay, session_id: str, scripted_provider: ScriptedProvider
    ) -> None:
        history = [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi! How can I help?"},
        ]

        turn = await relay.open_turn(session_id, "What is 2+2?", history)
        await turn.aclose()

        message, received = scripted_provider.calls[0]
        check.equal(message, "What is 2+2?")
        check.equal([m.content for m in received], ["Hello", "Hi! How can I help?"])

    async def test_provider_open_failure(
        self, memory_store, session_id: str, fast_lifecycle_factory
    ) -> None:
        relay = StreamRelay(fast_lifecycle_factory(memory_store), ScriptedProvider(fail_on_open=True))

        with pytest.raises(ChatError) as exc_info:
            await relay.open_turn(session_id, "Hello", [])

        check.equal(exc_info.value.kind, ErrorKind.PROVIDER_STREAM)
        check.equal(exc_info.value.code, "AI_ERROR")

    async def test_provider_factory_called_lazily(
        self, memory_store, session_id: str, fast_lifecycle_factory
    ) -> None:
        built: list[ScriptedProvider] = []

        def factory() -> ScriptedProvider:
            built.append(ScriptedProvider())
            return built[-1]

        relay = StreamRelay(fast_lifecycle_factory(memory_store), factory)
        with pytest.raises(ChatError):
            await relay.open_turn(session_id, "", [])
        check.equal(built, [])

        turn = await relay.open_turn(session_id, "Hello", [])
        await turn.aclose()
        check.equal(len(built), 1)


class TestFrames:
    """SSE framing of the provider stream."""

    async def test_fragments_then_done(
        self, relay: StreamRelay, session_id: str, scripted_provider: ScriptedProvider
    ) -> None:
        turn = await relay.open_turn(session_id, "Hello", [])

        frames = await collect(turn)

        check.equal(
            frames,
            [
                'data: {"content":"Hello"}\n\n',
                'data: {"content":" there"}\n\n',
                'data: {"content":"!"}\n\n',
                DONE_FRAME,
            ],
        )
        check.equal(turn.state, TurnState.COMPLETED)
        check.equal(turn.fragment_count, 3)
        check.is_true(scripted_provider.streams[0].closed)

    async def test_empty_fragments_are_skipped(
        self, memory_store, session_id: str, fast_lifecycle_factory
    ) -> None:
        relay = StreamRelay(fast_lifecycle_factory(memory_store), ScriptedProvider(["", "4", ""]))
        turn = await relay.open_turn(session_id, "What is 2+2?", [])

        frames = await collect(turn)

        assert frames == ['data: {"content":"4"}\n\n', DONE_FRAME]

    async def test_zero_fragments_still_done(
        self, memory_store, session_id: str, fast_lifecycle_factory
    ) -> None:
        relay = StreamRelay(fast_lifecycle_factory(memory_store), ScriptedProvider([]))
        turn = await relay.open_turn(session_id, "Hello", [])

        assert await collect(turn) == [DONE_FRAME]

    async def test_mid_stream_failure_ends_with_error_frame(
        self, memory_store, session_id: str, fast_lifecycle_factory
    ) -> None:
        provider = ScriptedProvider(["Hel", "lo", "!"], fail_after=2)
        relay = StreamRelay(fast_lifecycle_factory(memory_store), provider)
        turn = await relay.open_turn(session_id, "Hello", [])

        frames = await collect(turn)

        check.equal(frames[:2], ['data: {"content":"Hel"}\n\n', 'data: {"content":"lo"}\n\n'])
        check.equal(
            frames[2], 'data: {"error":"Failed to generate response","code":"AI_ERROR"}\n\n'
        )
        check.equal(len(frames), 3)
        check.is_not_in(DONE_FRAME, frames)
        check.equal(turn.state, TurnState.PROVIDER_ERROR)
        check.is_true(provider.streams[0].closed)

    async def test_consumer_stops_early_closes_stream(
        self, relay: StreamRelay, session_id: str, scripted_provider: ScriptedProvider
    ) -> None:
        turn = await relay.open_turn(session_id, "Hello", [])
        frames = turn.frames()

        first = await anext(frames)
        await frames.aclose()

        check.equal(first, 'data: {"content":"Hello"}\n\n')
        check.equal(turn.state, TurnState.CANCELLED)
        check.is_true(scripted_provider.streams[0].closed)

    async def test_frames_without_stream_is_an_error(self) -> None:
        from streamchat.relay.stream_relay import RelayTurn

        with pytest.raises(RuntimeError):
            await anext(RelayTurn("s1").frames())
