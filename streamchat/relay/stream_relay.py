"""Server side of one chat turn.

``StreamRelay.open_turn`` runs everything that can still fail with a plain
HTTP error: input validation, session resolution and opening the provider
stream. It returns a ``RelayTurn`` whose ``frames()`` generator relays the
provider output as SSE frames. Once the first byte is sent the status code
is fixed, so any later failure becomes a terminal error frame.

The relay never persists the transcript; the client decides when to write
it back.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from enum import Enum
from typing import Any

from pydantic import TypeAdapter, ValidationError

from streamchat.errors import ChatError, ErrorKind, format_validation_errors
from streamchat.models.schemas import Message
from streamchat.provider.base import CompletionProvider, FragmentStream
from streamchat.relay.sse import DONE_FRAME, content_frame, error_frame
from streamchat.session.lifecycle import SessionLifecycle

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_LENGTH = 10_000
STREAM_ERROR_MESSAGE = "Failed to generate response"

_history_adapter = TypeAdapter(list[Message])


class TurnState(str, Enum):
    """Progress of a single relayed turn. Transitions only move forward."""

    VALIDATING = "validating"
    RESOLVING_SESSION = "resolving_session"
    STREAMING = "streaming"
    COMPLETED = "completed"
    PROVIDER_ERROR = "provider_error"
    CANCELLED = "cancelled"


class RelayTurn:
    """State and provider stream of a single relayed turn."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.state = TurnState.VALIDATING
        self.fragment_count = 0
        self._stream: FragmentStream | None = None

    def advance(self, state: TurnState) -> None:
        logger.debug(f"Turn for session {self.session_id}: {self.state.value} -> {state.value}")
        self.state = state

    def attach(self, stream: FragmentStream) -> None:
        self._stream = stream
        self.advance(TurnState.STREAMING)

    async def frames(self) -> AsyncIterator[str]:
        """Yield SSE frames until the provider finishes or fails.

        Ends with exactly one ``[DONE]`` frame on success, or one error frame
        (and no ``[DONE]``) if the provider fails mid-stream. The provider
        stream is closed however the generator exits, including when the
        client disconnects.
        """
        if self._stream is None:
            raise RuntimeError("Turn has no provider stream attached")
        try:
            async for fragment in self._stream:
                if not fragment:
                    continue
                self.fragment_count += 1
                yield content_frame(fragment)
            self.state = TurnState.COMPLETED
            logger.info(f"Turn completed for session {self.session_id} ({self.fragment_count} fragments)")
            yield DONE_FRAME
        except asyncio.CancelledError:
            self.state = TurnState.CANCELLED
            logger.info(f"Client went away during turn for session {self.session_id}")
            raise
        except Exception as e:
            self.advance(TurnState.PROVIDER_ERROR)
            logger.error(f"Streaming error for session {self.session_id}: {e}")
            yield error_frame(STREAM_ERROR_MESSAGE, ErrorKind.PROVIDER_STREAM.code)
        finally:
            if self.state == TurnState.STREAMING:
                self.state = TurnState.CANCELLED
            await self._stream.aclose()

    async def aclose(self) -> None:
        """Abandon the turn without relaying further frames."""
        if self.state == TurnState.STREAMING:
            self.state = TurnState.CANCELLED
        if self._stream is not None:
            await self._stream.aclose()


class StreamRelay:
    """Orchestrates chat turns from request to provider stream."""

    def __init__(
        self,
        lifecycle: SessionLifecycle,
        provider: CompletionProvider | Callable[[], CompletionProvider],
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
    ) -> None:
        """Initialize the relay.

        Args:
            lifecycle: Resolves sessions with bounded retries.
            provider: A provider, or a zero-argument factory called lazily on
                the first turn that reaches the provider.
            max_message_length: Longest accepted user message.
        """
        self._lifecycle = lifecycle
        self._provider = provider
        self._max_message_length = max_message_length

    def _get_provider(self) -> CompletionProvider:
        if isinstance(self._provider, CompletionProvider):
            return self._provider
        return self._provider()

    def validate(self, message: Any, history: Any) -> list[Message]:
        """Check the turn inputs without touching any collaborator.

        Returns:
            The parsed history.

        Raises:
            ChatError: VALIDATION describing the first problem found.
        """
        if not isinstance(message, str) or not message.strip():
            raise ChatError.validation(
                "Message must not be empty",
                details=[{"loc": ["message"], "msg": "Message is required", "type": "missing"}],
            )
        if len(message) > self._max_message_length:
            raise ChatError.validation(
                f"Message exceeds {self._max_message_length} characters",
                details=[
                    {
                        "loc": ["message"],
                        "msg": f"Message must be at most {self._max_message_length} characters",
                        "type": "string_too_long",
                    }
                ],
            )

        try:
            messages = _history_adapter.validate_python(history or [])
        except ValidationError as e:
            raise ChatError.validation(
                "Invalid history",
                details=format_validation_errors(e.errors()),
            ) from e

        empty = [i for i, m in enumerate(messages) if not m.content.strip()]
        if empty:
            raise ChatError.validation(
                "History messages must have content",
                details=[
                    {"loc": ["history", i, "content"], "msg": "Content is empty", "type": "value_error"}
                    for i in empty
                ],
            )
        return messages

    async def open_turn(
        self,
        session_id: str,
        message: Any,
        history: Any,
        cancel: asyncio.Event | None = None,
    ) -> RelayTurn:
        """Validate, resolve the session and open the provider stream.

        Args:
            session_id: Session the turn belongs to (must already exist).
            message: New user message.
            history: Prior messages, oldest first.
            cancel: Optional signal aborting session resolution.

        Returns:
            A RelayTurn ready to stream.

        Raises:
            ChatError: VALIDATION, NOT_FOUND, PROVIDER_STREAM (stream could
                not be opened), STORE_UNAVAILABLE or CANCELLED.
        """
        turn = RelayTurn(session_id)
        messages = self.validate(message, history)

        turn.advance(TurnState.RESOLVING_SESSION)
        session = await self._lifecycle.resolve(session_id, cancel)
        if session is None:
            raise ChatError.not_found("Session")

        try:
            provider = self._get_provider()
            stream = await provider.stream(message, messages)
        except ChatError:
            raise
        except Exception as e:
            logger.error(f"Failed to open completion stream: {e}")
            raise ChatError(ErrorKind.PROVIDER_STREAM, STREAM_ERROR_MESSAGE) from e

        logger.info(f"Streaming reply for session {session_id} ({len(messages)} prior messages)")
        turn.attach(stream)
        return turn
