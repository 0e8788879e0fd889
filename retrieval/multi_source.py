"""Concurrent multi-source retrieval with merge and deduplication."""

import asyncio
import logging
from typing import List, Optional, Sequence

from config.settings import Settings
from memory.conversation_store import ConversationStore
from memory.errors import ConversationSearchError
from schemas.search import SearchResult, SourceKind
from .code_search import CodeSemanticSearcher
from .eligibility import SearchEligibility, can_run_semantic_search
from .embeddings import BaseEmbeddingProvider
from .fuzzy_search import FuzzyCodeSearcher

logger = logging.getLogger(__name__)

# Lower wins when two results share a locator
SOURCE_PRIORITY = {
    SourceKind.CONVERSATION_L0: 0,
    SourceKind.CONVERSATION_L1: 0,
    SourceKind.CONVERSATION_L2: 0,
    SourceKind.CODE_SEMANTIC: 0,
    SourceKind.CODE_FUZZY: 1,
}

# Output grouping order
GROUP_ORDER = {
    SourceKind.CONVERSATION_L0: 0,
    SourceKind.CONVERSATION_L1: 1,
    SourceKind.CONVERSATION_L2: 2,
    SourceKind.CODE_SEMANTIC: 3,
    SourceKind.CODE_FUZZY: 4,
}


def merge_results(
    conversation: Sequence[SearchResult],
    semantic: Sequence[SearchResult],
    fuzzy: Sequence[SearchResult],
    limit: int
) -> List[SearchResult]:
    """
    Concatenate, deduplicate by locator and truncate.

    On a shared locator the semantic result beats the fuzzy one whatever
    their scores; within one source the higher score wins and exact ties
    keep discovery order. Output is grouped by source, best score first.

    Args:
        conversation: Conversation history results
        semantic: Code semantic results
        fuzzy: Code fuzzy results
        limit: Maximum results returned

    Returns:
        Deduplicated results, at most ``limit``
    """
    candidates = list(conversation) + list(semantic) + list(fuzzy)
    ranked = sorted(candidates, key=lambda r: (SOURCE_PRIORITY[r.source], -r.score))

    kept = {}
    for result in ranked:
        key = result.dedup_key()
        if key not in kept:
            kept[key] = result

    merged = sorted(kept.values(), key=lambda r: (GROUP_ORDER[r.source], -r.score))
    return merged[:limit]


async def _skipped() -> List[SearchResult]:
    return []


class MultiSourceRetriever:
    """
    Runs conversation-history, code semantic and code fuzzy search concurrently.

    Semantic search runs only when the eligibility check passes; fuzzy
    search runs on every query. Semantic and fuzzy failures or timeouts
    degrade to zero results from that source. A conversation-history
    failure raises ConversationSearchError.
    """

    def __init__(
        self,
        store: ConversationStore,
        embedder: BaseEmbeddingProvider,
        semantic_searcher: Optional[CodeSemanticSearcher] = None,
        fuzzy_searcher: Optional[FuzzyCodeSearcher] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize retriever.

        Args:
            store: Conversation store for history search
            embedder: Embedding provider for the query vector
            semantic_searcher: Code semantic searcher (None disables the source)
            fuzzy_searcher: Code fuzzy searcher (None when no project tree is available)
            settings: Retrieval limits and timeouts
        """
        self.store = store
        self.embedder = embedder
        self.semantic_searcher = semantic_searcher
        self.fuzzy_searcher = fuzzy_searcher
        self.settings = settings or Settings()

    async def _bounded(self, coro):
        return await asyncio.wait_for(coro, timeout=self.settings.source_timeout_seconds)

    async def search_conversation_history(self, conversation_id: str, query: str) -> List[SearchResult]:
        query_vector = await self.embedder.embed(query)
        return await self.store.search_history(
            conversation_id,
            query_vector,
            min_score=self.settings.semantic_min_score,
            limit=self.settings.conversation_search_limit
        )

    def _degrade(self, source: str, outcome) -> List[SearchResult]:
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.TimeoutError):
                logger.warning(f"{source} search timed out, continuing without it")
            else:
                logger.warning(f"{source} search failed, continuing without it: {outcome}")
            return []
        return outcome

    async def retrieve(
        self,
        conversation_id: str,
        query: str,
        eligibility: Optional[SearchEligibility] = None
    ) -> List[SearchResult]:
        """
        Gather candidate context for a query from all sources.

        Args:
            conversation_id: Conversation ID
            query: Current user query
            eligibility: State deciding whether code semantic search may run

        Returns:
            Merged, deduplicated results

        Raises:
            ConversationSearchError: If conversation-history search fails or times out
        """
        run_semantic = (
            self.semantic_searcher is not None
            and eligibility is not None
            and can_run_semantic_search(eligibility)
        )
        if not run_semantic:
            logger.debug("Code semantic search not eligible for this query, skipping")

        history_outcome, semantic_outcome, fuzzy_outcome = await asyncio.gather(
            self._bounded(self.search_conversation_history(conversation_id, query)),
            self._bounded(self.semantic_searcher.search(query)) if run_semantic else _skipped(),
            self._bounded(self.fuzzy_searcher.search(query)) if self.fuzzy_searcher else _skipped(),
            return_exceptions=True
        )

        if isinstance(history_outcome, BaseException):
            logger.error(f"Conversation history search failed for {conversation_id}: {history_outcome!r}")
            raise ConversationSearchError(
                f"Conversation history search failed for {conversation_id}"
            ) from history_outcome

        semantic_results = self._degrade("Code semantic", semantic_outcome)
        fuzzy_results = self._degrade("Code fuzzy", fuzzy_outcome)

        merged = merge_results(
            history_outcome,
            semantic_results,
            fuzzy_results,
            limit=self.settings.code_search_initial_limit
        )

        logger.info(
            f"Retrieved {len(history_outcome)} conversation, {len(semantic_results)} semantic, "
            f"{len(fuzzy_results)} fuzzy results -> {len(merged)} after dedup"
        )
        return merged
