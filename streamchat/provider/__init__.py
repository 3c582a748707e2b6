"""LLM completion providers.

Responsibilities:
    - Translating stored history into each provider's turn format
    - Opening incremental text streams for a chat turn
    - Exposing streams as closable FragmentStream objects

Maintains clean separation from the HTTP layer.
"""

from streamchat.provider.base import (
    CompletionProvider,
    FragmentStream,
    ProviderTurn,
    to_provider_turns,
)
from streamchat.provider.config import ProviderConfig, get_provider_config


def create_provider(config: ProviderConfig | None = None) -> CompletionProvider:
    """Build the provider selected by ``config.provider``.

    SDK modules are imported lazily so only the selected backend loads.
    """
    config = config or get_provider_config()
    if config.provider == "openai":
        from streamchat.provider.agno_provider import AgnoProvider

        return AgnoProvider(config)

    from streamchat.provider.gemini import GeminiProvider

    return GeminiProvider(config)


# Module-level singleton instance
_provider: CompletionProvider | None = None


def get_completion_provider() -> CompletionProvider:
    """Get or create the global completion provider.

    Uses singleton pattern for resource efficiency.

    Returns:
        The CompletionProvider instance.
    """
    global _provider
    if _provider is None:
        _provider = create_provider()
    return _provider


__all__ = [
    "CompletionProvider",
    "FragmentStream",
    "ProviderConfig",
    "ProviderTurn",
    "create_provider",
    "get_completion_provider",
    "get_provider_config",
    "to_provider_turns",
]
