"""Conversation context manager: records messages, compacts history and builds enriched context."""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from config.settings import Settings
from llm.factory import create_llm_client_from_settings
from retrieval.code_search import CodeSemanticSearcher
from retrieval.eligibility import SearchEligibility
from retrieval.embeddings import BaseEmbeddingProvider, OpenAIEmbeddingProvider
from retrieval.fuzzy_search import FuzzyCodeSearcher
from retrieval.multi_source import MultiSourceRetriever
from schemas.conversation import Message, Role, Summary, SummaryTier, ToolInvocation
from storage.sqlite_graph_store import SQLiteGraphStore

from .context_budget import ContextBudgetAssembler
from .conversation_store import ConversationStore
from .errors import CompactionError, ConversationSearchError
from .retention_policy import RetentionPolicy
from .summarizer import BaseSummarizer, LLMSummarizer
from .summary_compactor import SummaryCompactor

logger = logging.getLogger(__name__)


class ConversationContextManager:
    """Manages persistent conversation memory for an agent."""

    def __init__(
        self,
        store: ConversationStore,
        summarizer: BaseSummarizer,
        embedder: BaseEmbeddingProvider,
        retriever: Optional[MultiSourceRetriever] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize context manager.

        Args:
            store: Conversation store
            summarizer: Summarization collaborator used for compaction
            embedder: Embedding provider for summaries and queries
            retriever: Multi-source retriever (default: conversation history only)
            settings: Memory settings
        """
        self.settings = settings or Settings()
        self.store = store
        self.policy = RetentionPolicy(self.settings)
        self.compactor = SummaryCompactor(store, summarizer, embedder)
        self.retriever = retriever or MultiSourceRetriever(store, embedder, settings=self.settings)
        self.assembler = ContextBudgetAssembler(store, self.retriever, self.settings)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        project_root: Optional[str] = None
    ) -> "ConversationContextManager":
        """
        Wire the default SQLite, OpenAI embedding and LLM summarization stack.

        Args:
            settings: Memory settings (default: Settings())
            project_root: Project tree for fuzzy code search, if any

        Returns:
            Configured ConversationContextManager
        """
        settings = settings or Settings()
        graph = SQLiteGraphStore(settings.db_path)
        embedder = OpenAIEmbeddingProvider(settings.openai_api_key, settings.embedding_model)
        store = ConversationStore(graph, embedder)
        summarizer = LLMSummarizer(create_llm_client_from_settings(settings))

        semantic = CodeSemanticSearcher(
            graph,
            embedder,
            min_score=settings.semantic_min_score,
            limit=settings.code_search_limit,
            snippet_max_chars=settings.snippet_max_chars
        )
        fuzzy = FuzzyCodeSearcher(
            project_root,
            max_results=settings.fuzzy_max_results,
            snippet_max_chars=settings.snippet_max_chars
        ) if project_root else None

        retriever = MultiSourceRetriever(store, embedder, semantic, fuzzy, settings)
        return cls(store, summarizer, embedder, retriever, settings)

    async def record_message(
        self,
        conversation_id: str,
        role: Role,
        content: Optional[str],
        tool_invocations: Optional[Sequence[ToolInvocation]] = None,
        timestamp: Optional[datetime] = None,
        compact: bool = True
    ) -> Message:
        """
        Append a message and compact history when a turn completes.

        Args:
            conversation_id: Conversation ID
            role: Message role
            content: Message text
            tool_invocations: Tool calls made by this message
            timestamp: Message time (default: now)
            compact: Run a compaction pass after a final assistant reply

        Returns:
            Stored Message
        """
        message = await self.store.add_message(
            conversation_id, role, content, tool_invocations, timestamp
        )

        if compact and message.role == Role.ASSISTANT and message.content.strip():
            await self.maybe_compact(conversation_id)

        return message

    async def maybe_compact(self, conversation_id: str) -> List[Summary]:
        """
        Run L1 then L2 compaction passes while their thresholds are exceeded.

        A failed pass, whether the summarizer or a storage read fails,
        abandons the rest of the cycle; the pending range is
        picked up again by the next call.

        Args:
            conversation_id: Conversation ID

        Returns:
            Summaries written during this cycle
        """
        created: List[Summary] = []
        try:
            await self._compact_turns(conversation_id, created)
            await self._consolidate_summaries(conversation_id, created)
        except CompactionError as e:
            logger.error(f"Compaction cycle abandoned for {conversation_id}: {e}")
        except Exception as e:
            logger.error(f"Compaction cycle abandoned for {conversation_id} on storage error: {e}")
        return created

    async def _compact_turns(self, conversation_id: str, created: List[Summary]):
        turns = await self.store.get_turns(conversation_id)

        for _ in range(self.settings.max_compactions_per_cycle):
            covered = await self.store.covered_until(conversation_id, SummaryTier.L1)
            pending = [t for t in turns if t.turn_index >= covered]
            if not self.policy.should_compact_units(1, pending):
                return

            start, end = self.policy.select_range(1, pending)
            created.append(await self.compactor.compact_l1(conversation_id, pending[start:end]))

        logger.warning(f"L1 compaction for {conversation_id} hit the per-cycle limit")

    async def _consolidate_summaries(self, conversation_id: str, created: List[Summary]):
        for _ in range(self.settings.max_compactions_per_cycle):
            pending = await self.store.get_unconsolidated_l1_summaries(conversation_id)
            if not self.policy.should_compact_units(2, pending):
                return

            start, end = self.policy.select_range(2, pending)
            created.append(await self.compactor.compact_l2(conversation_id, pending[start:end]))

        logger.warning(f"L2 compaction for {conversation_id} hit the per-cycle limit")

    async def get_recent_l1_summaries(self, conversation_id: str, limit: Optional[int] = None) -> List[Summary]:
        """Most recent L1 summaries first."""
        return await self.store.get_recent_l1_summaries(
            conversation_id,
            limit if limit is not None else self.settings.recent_l1_limit
        )

    async def get_enriched_context(
        self,
        conversation_id: str,
        query: str,
        eligibility: Optional[SearchEligibility] = None,
        allotted_total_chars: Optional[int] = None
    ) -> str:
        """
        Get the formatted context block for the prompt builder.

        If conversation-history search fails, the context is rebuilt from
        recent queries, raw turns and L1 summaries only. Any other failure,
        or a failed rebuild, gives an empty result.

        Args:
            conversation_id: Conversation ID
            query: Current user query
            eligibility: Code semantic search eligibility state
            allotted_total_chars: Total character budget

        Returns:
            Formatted context string
        """
        try:
            context = await self.assembler.build(
                conversation_id, query, allotted_total_chars, eligibility
            )
        except ConversationSearchError as e:
            logger.warning(f"Search unavailable for {conversation_id}, using recent context only: {e}")
            try:
                context = await self.assembler.build(
                    conversation_id, query, allotted_total_chars, include_search=False
                )
            except Exception as fallback_error:
                logger.error(f"Failed to build fallback context for {conversation_id}: {fallback_error}")
                return ""
        except Exception as e:
            logger.error(f"Failed to build context for {conversation_id}: {e}")
            return ""

        return self.assembler.format(context)
