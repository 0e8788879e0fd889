"""Anthropic messages client."""

from typing import List, Tuple

from .base_client import BaseLLMClient, ChatMessage, LLMResponse

JSON_INSTRUCTION = "Respond with a single JSON object and nothing else."


def split_system_prompt(messages: List[ChatMessage]) -> Tuple[str, List[dict]]:
    """Separate system messages (sent as ``system``) from the conversation."""
    system_parts = [msg.content for msg in messages if msg.role == "system"]
    conversation = [msg.model_dump() for msg in messages if msg.role != "system"]
    return "\n".join(system_parts), conversation


class AnthropicClient(BaseLLMClient):
    """Chat client over ``AsyncAnthropic``.

    The messages API has no JSON response mode; ``json_mode`` appends an
    explicit instruction to the system prompt instead.
    """

    provider_name = "anthropic"
    default_model = "claude-sonnet-4-20250514"

    def _create_client(self, api_key: str):
        import anthropic
        return anthropic.AsyncAnthropic(api_key=api_key)

    async def _complete(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        json_mode: bool
    ) -> LLMResponse:
        system, conversation = split_system_prompt(messages)
        if json_mode:
            system = f"{system}\n{JSON_INSTRUCTION}" if system else JSON_INSTRUCTION

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": conversation,
        }
        if system:
            kwargs["system"] = system

        response = await self.client.messages.create(**kwargs)

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            }

        return LLMResponse(
            content="".join(block.text for block in response.content if block.type == "text"),
            model=self.model,
            usage=usage,
            finish_reason=response.stop_reason
        )
