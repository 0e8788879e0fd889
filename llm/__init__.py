"""LLM clients used for summarization."""

from .base_client import BaseLLMClient, ChatMessage, LLMError, LLMResponse
from .factory import LLMProvider, create_llm_client, create_llm_client_from_settings

__all__ = [
    "BaseLLMClient",
    "ChatMessage",
    "LLMError",
    "LLMResponse",
    "LLMProvider",
    "create_llm_client",
    "create_llm_client_from_settings",
]
