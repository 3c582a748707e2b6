"""Completion provider configuration with environment variable loading.

Supports Google Gemini natively and OpenAI or any OpenAI-compatible API
(via agno) with a custom base URL.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()

DEFAULT_MODELS = {
    "gemini": "gemini-2.0-flash",
    "openai": "gpt-4o-mini",
}


def _api_key_from_env() -> str:
    return (
        os.getenv("LLM_API_KEY")
        or os.getenv("GOOGLE_API_KEY")
        or os.getenv("OPENAI_API_KEY")
        or ""
    )


class ProviderConfig(BaseModel):
    """Configuration for the completion provider.

    Attributes:
        provider: ``gemini`` or ``openai`` (OpenAI-compatible via agno).
        api_key: API key for model access.
        base_url: API base URL for OpenAI-compatible servers (None for default).
        model_name: Model identifier; defaults per provider when unset.
        temperature: Sampling temperature (0.0 = deterministic, 2.0 = creative).
        max_tokens: Maximum tokens in generated response.
    """

    model_config = ConfigDict(validate_default=True)

    provider: str = Field(
        default_factory=lambda: os.getenv("LLM_PROVIDER", "gemini").lower(),
        description="Completion backend: 'gemini' or 'openai'",
    )
    api_key: str = Field(
        default_factory=_api_key_from_env,
        description="API key for LLM provider",
    )
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("LLM_BASE_URL") or None,
        description="API base URL (None for provider default)",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL", ""),
        description="Model to use",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for response generation",
    )
    max_tokens: int = Field(
        default=2048,
        ge=1,
        le=128000,
        description="Maximum tokens in generated response",
    )

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in DEFAULT_MODELS:
            raise ValueError(f"Unknown LLM_PROVIDER '{v}'. Use one of: {', '.join(DEFAULT_MODELS)}")
        return v

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError(
                "API key required. Set LLM_API_KEY (or GOOGLE_API_KEY / OPENAI_API_KEY) in .env"
            )
        return v.strip()

    @model_validator(mode="after")
    def default_model_name(self) -> "ProviderConfig":
        if not self.model_name:
            self.model_name = DEFAULT_MODELS[self.provider]
        return self


def get_provider_config() -> ProviderConfig:
    """Create provider configuration from environment.

    Returns:
        Configured ProviderConfig instance.

    Raises:
        ValueError: If no API key is set.
    """
    return ProviderConfig()
