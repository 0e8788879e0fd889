"""Embedding providers and vector similarity."""

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors, 0.0 when either is empty or zero."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.size == 0 or vb.size == 0 or va.shape != vb.shape:
        return 0.0
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.dot(va, vb) / norm)


class BaseEmbeddingProvider(ABC):
    """Turns text into a vector."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        pass


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """Embeddings from the OpenAI API."""

    EMBEDDING_MODEL = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS = 1536
    MAX_INPUT_CHARS = 24_000

    def __init__(self, openai_api_key: Optional[str] = None, model: Optional[str] = None):
        """
        Initialize embedding provider.

        Args:
            openai_api_key: OpenAI API key. If not provided, uses OPENAI_API_KEY env var.
            model: Embedding model (default: text-embedding-3-small)
        """
        self.api_key = openai_api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model or self.EMBEDDING_MODEL
        self.client = None

        if self.api_key:
            from openai import AsyncOpenAI
            self.client = AsyncOpenAI(api_key=self.api_key)
            logger.info(f"OpenAI embeddings initialized with model: {self.model}")
        else:
            logger.warning("No OpenAI API key provided. Embeddings will be disabled.")

    def is_available(self) -> bool:
        return self.client is not None

    async def embed(self, text: str) -> list[float]:
        """Embed a single text. Raises on API failure."""
        if not self.is_available():
            raise RuntimeError("OpenAI client not initialized")

        response = await self.client.embeddings.create(
            model=self.model,
            input=text[:self.MAX_INPUT_CHARS]
        )
        return list(response.data[0].embedding)
