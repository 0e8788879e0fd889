"""Semantic search over the externally ingested code index."""

import logging
from typing import List

from schemas.search import CODE_CONFIDENCE, CodeLocation, SearchResult, SourceKind
from storage import graph_store as g
from storage.graph_store import GraphStore
from .embeddings import BaseEmbeddingProvider

logger = logging.getLogger(__name__)


class CodeSemanticSearcher:
    """Vector search over ``Scope`` nodes (functions, classes, blocks) of ingested projects."""

    VECTOR_PROPERTY = "embedding"

    def __init__(
        self,
        graph: GraphStore,
        embedder: BaseEmbeddingProvider,
        min_score: float = 0.3,
        limit: int = 20,
        snippet_max_chars: int = 500
    ):
        self.graph = graph
        self.embedder = embedder
        self.min_score = min_score
        self.limit = limit
        self.snippet_max_chars = snippet_max_chars

    async def search(self, query: str) -> List[SearchResult]:
        query_vector = await self.embedder.embed(query)
        records = await self.graph.query_by_vector_similarity(
            g.SCOPE, self.VECTOR_PROPERTY, query_vector, self.min_score, self.limit
        )

        results = []
        for record in records:
            file_path = record.get("file")
            if not file_path:
                logger.debug(f"Skipping scope {record['id']} without a file path")
                continue
            start = int(record.get("startLine") or 1)
            end = int(record.get("endLine") or start)
            results.append(SearchResult(
                source=SourceKind.CODE_SEMANTIC,
                score=record["score"],
                confidence=CODE_CONFIDENCE,
                content=(record.get("source") or "")[:self.snippet_max_chars],
                location=CodeLocation(file_path=file_path, start_line=start, end_line=end),
                name=record.get("name")
            ))

        return results
