"""OpenAI-compatible provider built on an agno Agent.

The agent is stateless here: conversation history is owned by the session
store and passed in with every turn, so no agno storage is attached.
"""

import logging
from collections.abc import AsyncIterator

from agno.agent import Agent
from agno.models.message import Message as AgnoMessage
from agno.models.openai import OpenAIChat

from streamchat.models.schemas import Message, MessageRole
from streamchat.provider.base import CompletionProvider, FragmentStream, to_provider_turns
from streamchat.provider.config import ProviderConfig

logger = logging.getLogger(__name__)

OPENAI_ROLES = {
    MessageRole.USER: "user",
    MessageRole.ASSISTANT: "assistant",
    MessageRole.SYSTEM: "system",
}


class AgnoProvider(CompletionProvider):
    """Streams chat replies through agno's OpenAIChat model."""

    name = "openai"

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        self._agent = self._create_agent()

    def _create_agent(self) -> Agent:
        """Create the agno agent instance.

        Returns:
            Configured Agent with an OpenAI-compatible model.
        """
        model = OpenAIChat(
            id=self._config.model_name,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
        )
        return Agent(
            model=model,
            description="A helpful chat assistant.",
            instructions=[
                "Provide helpful and accurate responses.",
                "Be concise yet thorough.",
            ],
            # Output as markdown for rich formatting in UI
            markdown=True,
        )

    def build_messages(self, message: str, history: list[Message]) -> list[AgnoMessage]:
        """Translate stored history plus the new message into agno messages."""
        turns = [
            AgnoMessage(role=turn.role, content=turn.text)
            for turn in to_provider_turns(history, OPENAI_ROLES)
        ]
        turns.append(AgnoMessage(role="user", content=message))
        return turns

    async def stream(self, message: str, history: list[Message]) -> FragmentStream:
        response_stream = self._agent.arun(self.build_messages(message, history), stream=True)

        async def texts() -> AsyncIterator[str]:
            async for chunk in response_stream:
                content = getattr(chunk, "content", None)
                if isinstance(content, str) and content:
                    yield content

        return FragmentStream(texts())
