"""Compaction of raw turns into L1 summaries and of L1 summaries into L2 summaries."""

import logging
from typing import List, Optional, Sequence

from retrieval.embeddings import BaseEmbeddingProvider
from schemas.conversation import ConversationTurn, Summary, SummaryTier, TIER_CONFIDENCE

from . import ids
from .conversation_store import ConversationStore
from .errors import CompactionError
from .summarizer import BaseSummarizer, TIER_INSTRUCTIONS

logger = logging.getLogger(__name__)


def _dedupe_preserve_order(items: Sequence[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        item = item.strip()
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


class SummaryCompactor:
    """
    Writes tier summaries for a selected range.

    Each summary's ID is a function of (conversation, tier, turn range), so
    a retried or concurrent compaction of the same range overwrites the
    same record. Nothing is written unless summarization and embedding
    both succeed.
    """

    def __init__(
        self,
        store: ConversationStore,
        summarizer: BaseSummarizer,
        embedder: Optional[BaseEmbeddingProvider] = None
    ):
        """
        Initialize compactor.

        Args:
            store: Conversation store that persists summaries
            summarizer: Summarization collaborator
            embedder: Optional embedding provider for summary search
        """
        self.store = store
        self.summarizer = summarizer
        self.embedder = embedder

    @staticmethod
    def build_l1_request(turns: Sequence[ConversationTurn]) -> str:
        return "\n\n".join(
            f"### Turn {turn.turn_index}\n{turn.to_dialogue()}" for turn in turns
        )

    @staticmethod
    def build_l2_request(summaries: Sequence[Summary]) -> str:
        return "\n\n".join(summary.to_text() for summary in summaries)

    async def compact_l1(self, conversation_id: str, turns: Sequence[ConversationTurn]) -> Summary:
        """
        Summarize a contiguous range of turns into an L1 summary and store it.

        Args:
            conversation_id: Conversation ID
            turns: Contiguous turns, oldest first

        Returns:
            The stored L1 Summary

        Raises:
            CompactionError: If summarization, embedding or storage fails
        """
        if not turns:
            raise ValueError("compact_l1 needs at least one turn")

        start = turns[0].turn_index
        end = turns[-1].turn_index + 1

        return await self._compact(
            conversation_id,
            SummaryTier.L1,
            start,
            end,
            self.build_l1_request(turns),
            inherited_files=[],
            consolidated_ids=[]
        )

    async def compact_l2(self, conversation_id: str, l1_summaries: Sequence[Summary]) -> Summary:
        """
        Consolidate contiguous L1 summaries into an L2 summary and store it.

        The L2 range spans from the first input's start to the last input's
        end, and a CONSOLIDATES edge links it to every input.

        Raises:
            CompactionError: If summarization, embedding or storage fails
        """
        if not l1_summaries:
            raise ValueError("compact_l2 needs at least one L1 summary")

        ordered = sorted(l1_summaries, key=lambda s: s.start_turn_index)
        inherited_files = [f for s in ordered for f in s.files_mentioned]

        return await self._compact(
            conversation_id,
            SummaryTier.L2,
            ordered[0].start_turn_index,
            ordered[-1].end_turn_index,
            self.build_l2_request(ordered),
            inherited_files=inherited_files,
            consolidated_ids=[s.summary_id for s in ordered]
        )

    async def _compact(
        self,
        conversation_id: str,
        tier: SummaryTier,
        start: int,
        end: int,
        range_text: str,
        inherited_files: List[str],
        consolidated_ids: List[str]
    ) -> Summary:
        logger.info(f"Compacting turns [{start}, {end}) of {conversation_id} into L{int(tier)}")

        try:
            result = await self.summarizer.summarize(range_text, TIER_INSTRUCTIONS[tier])
        except Exception as e:
            logger.error(f"L{int(tier)} summarization failed for [{start}, {end}): {e}")
            raise CompactionError(f"Summarization failed for L{int(tier)} range [{start}, {end})") from e

        summary = Summary(
            summary_id=ids.summary_id(conversation_id, tier, start, end),
            conversation_id=conversation_id,
            tier=tier,
            confidence=TIER_CONFIDENCE[tier],
            conversation_summary=result.conversation_summary,
            actions_summary=result.actions_summary,
            files_mentioned=_dedupe_preserve_order(inherited_files + result.files_mentioned),
            start_turn_index=start,
            end_turn_index=end,
            consolidated_summary_ids=consolidated_ids
        )

        embedding = None
        if self.embedder:
            try:
                embedding = await self.embedder.embed(summary.to_text())
            except Exception as e:
                raise CompactionError(f"Embedding failed for L{int(tier)} summary {summary.summary_id}") from e

        try:
            await self.store.save_summary(summary, embedding)
        except Exception as e:
            raise CompactionError(f"Failed to store L{int(tier)} summary {summary.summary_id}") from e

        return summary
