"""Tests for LLM and embedding clients with mocked SDKs."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from config.settings import Settings
from llm.anthropic_client import AnthropicClient, split_system_prompt
from llm.base_client import ChatMessage, LLMError
from llm.factory import LLMProvider, create_llm_client, create_llm_client_from_settings
from llm.openai_client import OpenAIClient
from retrieval.embeddings import OpenAIEmbeddingProvider, cosine_similarity


class TestFactory:
    """Test client creation."""

    def test_create_by_provider(self):
        """Test that each provider maps to its client."""
        assert isinstance(create_llm_client(LLMProvider.OPENAI, api_key="k"), OpenAIClient)
        assert isinstance(create_llm_client(LLMProvider.ANTHROPIC, api_key="k"), AnthropicClient)

    def test_create_from_settings(self):
        """Test that settings choose provider, key and model."""
        settings = Settings(llm_provider="anthropic", anthropic_api_key="k", llm_model="claude-x")

        client = create_llm_client_from_settings(settings)

        assert client.get_provider_name() == "anthropic"
        assert client.get_model_name() == "claude-x"

    def test_unknown_provider_rejected(self):
        """Test that an unsupported provider name fails."""
        with pytest.raises(ValueError):
            create_llm_client_from_settings(Settings(llm_provider="unknown"))


class TestOpenAIClient:
    """Test the OpenAI chat client."""

    @pytest.mark.asyncio
    async def test_json_mode_sets_response_format(self):
        """Test that json_mode requests a JSON object response."""
        client = OpenAIClient(api_key="k")
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="{}"), finish_reason="stop")],
            usage=None
        )
        client.client.chat.completions.create = AsyncMock(return_value=response)

        result = await client.chat([ChatMessage(role="user", content="hi")], json_mode=True)

        kwargs = client.client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert result.content == "{}"

    @pytest.mark.asyncio
    async def test_missing_key_raises(self, monkeypatch):
        """Test that chat without an API key fails clearly."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        client = OpenAIClient(api_key=None)

        assert not client.is_configured
        with pytest.raises(LLMError):
            await client.chat([ChatMessage(role="user", content="hi")])

    @pytest.mark.asyncio
    async def test_provider_failure_wrapped(self):
        """Test that an SDK exception surfaces as LLMError with the cause attached."""
        client = OpenAIClient(api_key="k")
        client.client.chat.completions.create = AsyncMock(side_effect=ConnectionError("reset"))

        with pytest.raises(LLMError) as exc_info:
            await client.chat([ChatMessage(role="user", content="hi")])

        assert isinstance(exc_info.value.__cause__, ConnectionError)


class TestAnthropicClient:
    """Test the Anthropic chat client."""

    @pytest.mark.asyncio
    async def test_system_prompt_and_json_instruction(self):
        """Test that system messages move to the system field with the JSON instruction."""
        client = AnthropicClient(api_key="k")
        response = SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"a": 1}')],
            usage=SimpleNamespace(input_tokens=3, output_tokens=4),
            stop_reason="end_turn"
        )
        client.client.messages.create = AsyncMock(return_value=response)

        result = await client.chat(
            [ChatMessage(role="system", content="Summarize."), ChatMessage(role="user", content="text")],
            json_mode=True
        )

        kwargs = client.client.messages.create.call_args.kwargs
        assert kwargs["system"].startswith("Summarize.")
        assert "JSON" in kwargs["system"]
        assert kwargs["messages"] == [{"role": "user", "content": "text"}]
        assert result.usage["total_tokens"] == 7

    def test_split_system_prompt_joins_system_messages(self):
        """Test that several system messages are joined and removed from the conversation."""
        system, conversation = split_system_prompt([
            ChatMessage(role="system", content="one"),
            ChatMessage(role="user", content="q"),
            ChatMessage(role="system", content="two"),
        ])

        assert system == "one\ntwo"
        assert conversation == [{"role": "user", "content": "q"}]


class TestEmbeddings:
    """Test the embedding provider and similarity."""

    def test_cosine_similarity(self):
        """Test similarity of identical, orthogonal and degenerate vectors."""
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([], [1.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
        assert cosine_similarity([1.0], [1.0, 0.0]) == 0.0

    @pytest.mark.asyncio
    async def test_openai_embed_truncates_input(self):
        """Test that long input is cut before the API call."""
        provider = OpenAIEmbeddingProvider(openai_api_key="k")
        response = SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2])])
        provider.client.embeddings.create = AsyncMock(return_value=response)

        vector = await provider.embed("x" * 50_000)

        kwargs = provider.client.embeddings.create.call_args.kwargs
        assert len(kwargs["input"]) == OpenAIEmbeddingProvider.MAX_INPUT_CHARS
        assert vector == [0.1, 0.2]
