"""Retrieval layer: conversation history, code semantic and code fuzzy search."""

from .embeddings import BaseEmbeddingProvider, OpenAIEmbeddingProvider, cosine_similarity

__all__ = ["BaseEmbeddingProvider", "OpenAIEmbeddingProvider", "cosine_similarity"]
