"""Google Gemini provider using the google-genai SDK."""

import logging
from collections.abc import AsyncIterator

from google import genai
from google.genai import types

from streamchat.models.schemas import Message, MessageRole
from streamchat.provider.base import CompletionProvider, FragmentStream, to_provider_turns
from streamchat.provider.config import ProviderConfig

logger = logging.getLogger(__name__)

# Gemini chat history only knows "user" and "model"
GEMINI_ROLES = {
    MessageRole.USER: "user",
    MessageRole.ASSISTANT: "model",
    MessageRole.SYSTEM: "user",
}


class GeminiProvider(CompletionProvider):
    """Streams chat replies from Gemini."""

    name = "gemini"

    def __init__(self, config: ProviderConfig) -> None:
        """Initialize the client.

        Args:
            config: Provider configuration with a Google API key.
        """
        self._config = config
        self._client = genai.Client(api_key=config.api_key)

    def build_history(self, history: list[Message]) -> list[types.Content]:
        """Translate stored messages into Gemini chat contents."""
        return [
            types.Content(role=turn.role, parts=[types.Part(text=turn.text)])
            for turn in to_provider_turns(history, GEMINI_ROLES)
        ]

    async def stream(self, message: str, history: list[Message]) -> FragmentStream:
        chat = self._client.aio.chats.create(
            model=self._config.model_name,
            history=self.build_history(history),
            config=types.GenerateContentConfig(
                temperature=self._config.temperature,
                max_output_tokens=self._config.max_tokens,
            ),
        )
        response = await chat.send_message_stream(message)
        logger.debug(f"Opened Gemini stream ({self._config.model_name}, {len(history)} prior turns)")

        async def texts() -> AsyncIterator[str]:
            try:
                async for chunk in response:
                    if chunk.text:
                        yield chunk.text
            finally:
                aclose = getattr(response, "aclose", None)
                if aclose is not None:
                    await aclose()

        return FragmentStream(texts())
