"""Shared fakes and fixtures for memory layer tests."""

import re
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest

from config.settings import Settings
from llm.base_client import BaseLLMClient, ChatMessage, LLMResponse
from memory.conversation_store import ConversationStore
from memory.summarizer import BaseSummarizer
from retrieval.embeddings import BaseEmbeddingProvider
from schemas.conversation import Message, Role, SummaryResult, ToolInvocation
from storage.sqlite_graph_store import SQLiteGraphStore


class FakeEmbedder(BaseEmbeddingProvider):
    """Deterministic bag-of-words embedder: texts sharing words get similar vectors.

    Every new word gets its own dimension, so unrelated texts score exactly 0.
    """

    DIMENSIONS = 2048

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[str] = []
        self.vocabulary: Dict[str, int] = {}

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding service unavailable")

        vector = [0.0] * self.DIMENSIONS
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            index = self.vocabulary.setdefault(word, len(self.vocabulary))
            vector[index] += 1.0
        return vector


class ScriptedSummarizer(BaseSummarizer):
    """Summarizer returning canned results and recording every request."""

    def __init__(self, files: Optional[List[str]] = None, fail: bool = False):
        self.files = files or []
        self.fail = fail
        self.requests: List[str] = []

    async def summarize(self, range_text: str, instructions: str) -> SummaryResult:
        self.requests.append(range_text)
        if self.fail:
            raise RuntimeError("summarizer unavailable")
        return SummaryResult(
            conversation_summary=f"Condensed {len(range_text)} chars",
            actions_summary="Ran tools",
            files_mentioned=list(self.files)
        )


class FakeLLMClient(BaseLLMClient):
    """LLM client returning a fixed response."""

    provider_name = "fake"
    default_model = "fake-model"

    def __init__(self, content: str):
        self.content = content
        self.calls: List[dict] = []
        super().__init__(api_key="fake-key")

    def _create_client(self, api_key: str):
        return object()

    async def _complete(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        json_mode: bool
    ) -> LLMResponse:
        self.calls.append({"messages": messages, "json_mode": json_mode})
        return LLMResponse(content=self.content)


def make_message(
    role: Role,
    content: str = "",
    tools: Optional[List[str]] = None,
    sequence: int = 0,
    conversation_id: str = "conv-1"
) -> Message:
    """Build an in-memory message; tool names become successful invocations."""
    return Message(
        message_id=f"m{sequence}",
        conversation_id=conversation_id,
        sequence=sequence,
        role=role,
        content=content,
        tool_invocations=[ToolInvocation(tool_name=name) for name in tools or []],
        timestamp=datetime(2026, 1, 1) + timedelta(minutes=sequence)
    )


@pytest.fixture
def settings():
    return Settings(openai_api_key="test", anthropic_api_key="test")


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def graph(tmp_path):
    return SQLiteGraphStore(str(tmp_path / "memory.db"))


@pytest.fixture
def store(graph, embedder):
    return ConversationStore(graph, embedder)
