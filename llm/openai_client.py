"""OpenAI chat completions client."""

from typing import List

from .base_client import BaseLLMClient, ChatMessage, LLMResponse


class OpenAIClient(BaseLLMClient):
    """Chat client over ``AsyncOpenAI``. JSON mode maps to ``response_format``."""

    provider_name = "openai"
    default_model = "gpt-4o-mini"

    def _create_client(self, api_key: str):
        from openai import AsyncOpenAI
        return AsyncOpenAI(api_key=api_key)

    async def _complete(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        json_mode: bool
    ) -> LLMResponse:
        kwargs = {
            "model": self.model,
            "messages": [msg.model_dump() for msg in messages],
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**kwargs)
        choice = response.choices[0]

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=choice.message.content or "",
            model=self.model,
            usage=usage,
            finish_reason=choice.finish_reason
        )
