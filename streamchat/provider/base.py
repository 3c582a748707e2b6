"""Completion provider interface and the fragment stream abstraction."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from types import TracebackType

from streamchat.models.schemas import Message, MessageRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderTurn:
    """One prior turn in the provider's own role vocabulary."""

    role: str
    text: str


def to_provider_turns(
    history: list[Message],
    role_map: Mapping[MessageRole, str],
) -> list[ProviderTurn]:
    """Translate stored messages into provider turns.

    Args:
        history: Prior messages in chronological order.
        role_map: Provider role name for each message role.

    Returns:
        Turns in the same order, with empty messages skipped.
    """
    return [
        ProviderTurn(role=role_map[m.role], text=m.content)
        for m in history
        if m.content
    ]


class FragmentStream:
    """Pull-based, cancellable stream of generated text fragments.

    Wraps the provider's async iterator. ``aclose()`` releases the
    underlying connection and is safe to call more than once; iteration
    after close ends immediately. Usable as an async context manager.
    """

    def __init__(self, source: AsyncIterator[str]) -> None:
        self._source = source
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "FragmentStream":
        return self

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await anext(self._source)
        except StopAsyncIteration:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> "FragmentStream":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


class CompletionProvider(ABC):
    """Remote LLM that generates a reply incrementally.

    Treated as unreliable: ``stream`` may fail while connecting, and the
    returned stream may raise at any point while iterating.
    """

    name: str = "provider"

    @abstractmethod
    async def stream(self, message: str, history: list[Message]) -> FragmentStream:
        """Open a fragment stream answering ``message`` given ``history``."""
