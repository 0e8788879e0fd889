"""Async chat client interface used by the summarizer."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    """Chat message sent to an LLM."""
    role: Literal["system", "user", "assistant"]
    content: str


class LLMResponse(BaseModel):
    """Text completion returned by a provider."""
    content: str
    model: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    finish_reason: Optional[str] = None


class LLMError(RuntimeError):
    """A provider call failed or the client is not configured."""


class BaseLLMClient(ABC):
    """
    Base class for async chat clients.

    Subclasses create the SDK client and implement ``_complete``; ``chat``
    adds the configuration check, timing and error wrapping.
    """

    provider_name = ""
    default_model = ""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key
        self.model = model or self.default_model
        self.client = self._create_client(api_key) if api_key else None

        if self.client is None:
            logger.warning(f"No {self.provider_name} API key provided, chat calls will fail")
        else:
            logger.info(f"{self.provider_name} client initialized with model: {self.model}")

    @abstractmethod
    def _create_client(self, api_key: str):
        """Build the provider SDK client."""
        pass

    @abstractmethod
    async def _complete(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        json_mode: bool
    ) -> LLMResponse:
        pass

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def chat(
        self,
        messages: List[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
        json_mode: bool = False
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation sent to the model
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens in the response
            json_mode: Ask for a single JSON object

        Returns:
            LLMResponse with the text content

        Raises:
            LLMError: If the client has no API key or the provider call fails
        """
        if not self.is_configured:
            raise LLMError(f"{self.provider_name} client not initialized. Check API key.")

        started = time.perf_counter()
        try:
            response = await self._complete(messages, temperature, max_tokens, json_mode)
        except Exception as e:
            logger.error(f"{self.provider_name} API error: {e}")
            raise LLMError(f"{self.provider_name} request failed: {e}") from e

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.debug(f"{self.provider_name} completion in {elapsed_ms} ms ({response.usage or 'no usage'})")
        return response

    def get_provider_name(self) -> str:
        return self.provider_name

    def get_model_name(self) -> str:
        return self.model
