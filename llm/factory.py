"""LLM client factory."""

from enum import Enum
from typing import Dict, Optional, Type, Union

from config.settings import Settings
from .anthropic_client import AnthropicClient
from .base_client import BaseLLMClient
from .openai_client import OpenAIClient


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


CLIENT_CLASSES: Dict[LLMProvider, Type[BaseLLMClient]] = {
    LLMProvider.OPENAI: OpenAIClient,
    LLMProvider.ANTHROPIC: AnthropicClient,
}


def create_llm_client(
    provider: Union[LLMProvider, str],
    api_key: Optional[str] = None,
    model: Optional[str] = None
) -> BaseLLMClient:
    """
    Create an LLM client for the given provider.

    Args:
        provider: Provider enum or its name
        api_key: API key for the provider
        model: Optional model override

    Returns:
        Configured LLM client

    Raises:
        ValueError: If the provider is not supported
    """
    try:
        client_class = CLIENT_CLASSES[LLMProvider(provider)]
    except ValueError:
        raise ValueError(f"Unsupported LLM provider: {provider}") from None
    return client_class(api_key=api_key, model=model)


def create_llm_client_from_settings(settings: Settings) -> BaseLLMClient:
    """Create the summarization client configured in settings."""
    return create_llm_client(settings.llm_provider, settings.get_llm_api_key(), settings.llm_model)
