"""Conversation persistence on top of the property-graph store."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from retrieval.embeddings import BaseEmbeddingProvider
from schemas.context import UserQuery
from schemas.conversation import (
    Conversation,
    ConversationTurn,
    Message,
    Role,
    Summary,
    SummaryTier,
    TIER_CONFIDENCE,
    ToolInvocation,
)
from schemas.search import SearchResult, SourceKind
from storage import graph_store as g
from storage.graph_store import GraphStore

from . import ids
from .turn_assembler import assemble_turns

logger = logging.getLogger(__name__)

EMBEDDING_PROPERTY = "embedding"

_TIER_SOURCE = {
    SummaryTier.L1: SourceKind.CONVERSATION_L1,
    SummaryTier.L2: SourceKind.CONVERSATION_L2,
}


class ConversationStore:
    """Reads and writes conversations, messages and summaries as graph records."""

    def __init__(self, graph: GraphStore, embedder: Optional[BaseEmbeddingProvider] = None):
        """
        Initialize conversation store.

        Args:
            graph: Property-graph store
            embedder: Optional embedding provider; without it messages are stored unembedded
        """
        self.graph = graph
        self.embedder = embedder

    # Conversations

    async def create_conversation(
        self,
        conversation_id: Optional[str] = None,
        title: Optional[str] = None
    ) -> Conversation:
        conversation = Conversation(
            conversation_id=conversation_id or str(uuid.uuid4()),
            title=title
        )
        await self.graph.upsert_node(
            [g.CONVERSATION],
            conversation.conversation_id,
            {
                "conversation_id": conversation.conversation_id,
                "title": title,
                "created_at": conversation.created_at.isoformat(),
            }
        )
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        record = await self.graph.get_node(conversation_id)
        if not record or g.CONVERSATION not in record["labels"]:
            return None
        return Conversation(
            conversation_id=record["conversation_id"],
            title=record.get("title"),
            created_at=record.get("created_at") or datetime.now()
        )

    async def list_conversations(self, limit: int = 50) -> List[Conversation]:
        records = await self.graph.query_by_range(g.CONVERSATION)
        conversations = [
            Conversation(
                conversation_id=r["conversation_id"],
                title=r.get("title"),
                created_at=r.get("created_at") or datetime.now()
            )
            for r in records
        ]
        conversations.sort(key=lambda c: c.created_at, reverse=True)
        return conversations[:limit]

    async def delete_conversation(self, conversation_id: str) -> int:
        """
        Delete a conversation and everything it owns.

        Args:
            conversation_id: Conversation ID

        Returns:
            Number of nodes removed
        """
        filters = {"conversation_id": conversation_id}
        removed = 0
        for label in (g.TOOL_RESULT, g.TOOL_CALL, g.MESSAGE, g.SUMMARY, g.CONVERSATION):
            removed += await self.graph.delete_nodes(label, filters)
        logger.info(f"Deleted conversation {conversation_id} ({removed} nodes)")
        return removed

    # Messages

    async def add_message(
        self,
        conversation_id: str,
        role: Role,
        content: Optional[str],
        tool_invocations: Optional[Sequence[ToolInvocation]] = None,
        timestamp: Optional[datetime] = None
    ) -> Message:
        """
        Append a message to a conversation's log.

        Args:
            conversation_id: Conversation ID (created on first use)
            role: Message role
            content: Message text, empty for tool-only messages
            tool_invocations: Tool calls made by this message, in call order
            timestamp: Message time (default: now)

        Returns:
            Stored Message
        """
        if await self.get_conversation(conversation_id) is None:
            await self.create_conversation(conversation_id)

        existing = await self.graph.query_by_range(g.MESSAGE, {"conversation_id": conversation_id})
        sequence = len(existing)
        role = Role(role)

        message = Message(
            message_id=ids.message_id(conversation_id, sequence, role.value),
            conversation_id=conversation_id,
            sequence=sequence,
            role=role,
            content=content,
            tool_invocations=list(tool_invocations or []),
            timestamp=timestamp or datetime.now()
        )

        vectors = None
        if self.embedder and message.content.strip():
            try:
                vectors = {EMBEDDING_PROPERTY: await self.embedder.embed(message.content)}
            except Exception as e:
                logger.warning(f"Failed to embed message {message.message_id}, storing without vector: {e}")

        await self.graph.upsert_node(
            [g.MESSAGE],
            message.message_id,
            {
                "conversation_id": conversation_id,
                "sequence": sequence,
                "role": role.value,
                "content": message.content,
                "timestamp": message.timestamp.isoformat(),
                "char_count": message.char_count,
            },
            vectors=vectors
        )
        await self.graph.upsert_edge(g.HAS_MESSAGE, conversation_id, message.message_id)

        for position, invocation in enumerate(message.tool_invocations):
            await self._write_tool_invocation(conversation_id, message.message_id, position, invocation)

        return message

    async def _write_tool_invocation(
        self,
        conversation_id: str,
        message_id: str,
        position: int,
        invocation: ToolInvocation
    ):
        call_id = ids.tool_call_id(message_id, position)
        result_id = ids.deterministic_id(call_id, "result")

        await self.graph.upsert_node(
            [g.TOOL_CALL],
            call_id,
            {
                "conversation_id": conversation_id,
                "message_id": message_id,
                "position": position,
                "tool_name": invocation.tool_name,
                "arguments": invocation.arguments,
                "duration_ms": invocation.duration_ms,
            }
        )
        await self.graph.upsert_node(
            [g.TOOL_RESULT],
            result_id,
            {
                "conversation_id": conversation_id,
                "tool_call_id": call_id,
                "success": invocation.success,
                "result": invocation.result,
                "error": invocation.error,
                "result_size": invocation.result_size or len(invocation.result or ""),
            }
        )
        await self.graph.upsert_edge(g.HAS_TOOL_CALL, message_id, call_id)
        await self.graph.upsert_edge(g.HAS_RESULT, call_id, result_id)

    async def get_messages(self, conversation_id: str) -> List[Message]:
        """All messages of a conversation in log order, with their tool invocations."""
        filters = {"conversation_id": conversation_id}
        message_records = await self.graph.query_by_range(g.MESSAGE, filters)
        call_records = await self.graph.query_by_range(g.TOOL_CALL, filters)
        result_records = await self.graph.query_by_range(g.TOOL_RESULT, filters)

        results_by_call = {r["tool_call_id"]: r for r in result_records}
        calls_by_message: Dict[str, List[Dict[str, Any]]] = {}
        for call in call_records:
            calls_by_message.setdefault(call["message_id"], []).append(call)

        messages = []
        for record in sorted(message_records, key=lambda r: r["sequence"]):
            calls = sorted(calls_by_message.get(record["id"], []), key=lambda c: c["position"])
            invocations = []
            for call in calls:
                result = results_by_call.get(call["id"], {})
                invocations.append(ToolInvocation(
                    tool_name=call.get("tool_name"),
                    arguments=call.get("arguments") or "",
                    duration_ms=call.get("duration_ms"),
                    success=result.get("success", True),
                    result=result.get("result"),
                    error=result.get("error"),
                    result_size=result.get("result_size") or 0
                ))

            messages.append(Message(
                message_id=record["id"],
                conversation_id=conversation_id,
                sequence=record["sequence"],
                role=record["role"],
                content=record.get("content"),
                tool_invocations=invocations,
                timestamp=record["timestamp"]
            ))

        return messages

    async def get_turns(self, conversation_id: str) -> List[ConversationTurn]:
        return assemble_turns(await self.get_messages(conversation_id))

    async def get_last_user_queries(self, conversation_id: str, limit: int = 5) -> List[UserQuery]:
        """Most recent user questions of complete turns, oldest first."""
        turns = await self.get_turns(conversation_id)
        return [
            UserQuery(turn_index=t.turn_index, text=t.user_message)
            for t in turns[-limit:]
        ] if limit > 0 else []

    # Summaries

    async def save_summary(self, summary: Summary, embedding: Optional[Sequence[float]] = None):
        """
        Upsert a summary record and its edges.

        The summary ID is deterministic, so saving the same range twice
        overwrites the first record.
        """
        vectors = {EMBEDDING_PROPERTY: list(embedding)} if embedding else None
        await self.graph.upsert_node(
            [g.SUMMARY, f"L{int(summary.tier)}Summary"],
            summary.summary_id,
            {
                "conversation_id": summary.conversation_id,
                "tier": int(summary.tier),
                "confidence": summary.confidence,
                "conversation_summary": summary.conversation_summary,
                "actions_summary": summary.actions_summary,
                "files_mentioned": summary.files_mentioned,
                "start_turn_index": summary.start_turn_index,
                "end_turn_index": summary.end_turn_index,
                "created_at": summary.created_at.isoformat(),
                "consolidated_summary_ids": summary.consolidated_summary_ids,
            },
            vectors=vectors
        )
        await self.graph.upsert_edge(g.HAS_SUMMARY, summary.conversation_id, summary.summary_id)

        for l1_id in summary.consolidated_summary_ids:
            await self.graph.upsert_edge(g.CONSOLIDATES, summary.summary_id, l1_id)

        logger.info(
            f"Stored L{int(summary.tier)} summary {summary.summary_id} "
            f"for turns [{summary.start_turn_index}, {summary.end_turn_index})"
        )

    @staticmethod
    def _summary_from_record(record: Dict[str, Any]) -> Summary:
        return Summary(
            summary_id=record["id"],
            conversation_id=record["conversation_id"],
            tier=SummaryTier(record["tier"]),
            confidence=record["confidence"],
            conversation_summary=record["conversation_summary"],
            actions_summary=record.get("actions_summary") or "",
            files_mentioned=record.get("files_mentioned") or [],
            start_turn_index=record["start_turn_index"],
            end_turn_index=record["end_turn_index"],
            created_at=record["created_at"],
            consolidated_summary_ids=record.get("consolidated_summary_ids") or []
        )

    async def get_summaries(self, conversation_id: str, tier: SummaryTier) -> List[Summary]:
        """Summaries of one tier, ordered by the turn range they cover."""
        records = await self.graph.query_by_range(
            g.SUMMARY,
            {"conversation_id": conversation_id, "tier": int(tier)}
        )
        summaries = [self._summary_from_record(r) for r in records]
        summaries.sort(key=lambda s: s.start_turn_index)
        return summaries

    async def covered_until(self, conversation_id: str, tier: SummaryTier) -> int:
        """End (exclusive) of the turn range covered by the tier, 0 when nothing is covered."""
        summaries = await self.get_summaries(conversation_id, tier)
        return max((s.end_turn_index for s in summaries), default=0)

    async def get_recent_l1_summaries(self, conversation_id: str, limit: int = 5) -> List[Summary]:
        """Most recent L1 summaries first."""
        summaries = await self.get_summaries(conversation_id, SummaryTier.L1)
        summaries.sort(key=lambda s: s.end_turn_index, reverse=True)
        return summaries[:limit]

    async def get_unconsolidated_l1_summaries(self, conversation_id: str) -> List[Summary]:
        """L1 summaries beyond the latest L2 coverage, oldest first."""
        l2_end = await self.covered_until(conversation_id, SummaryTier.L2)
        return [
            s for s in await self.get_summaries(conversation_id, SummaryTier.L1)
            if s.start_turn_index >= l2_end
        ]

    # Search

    async def search_history(
        self,
        conversation_id: str,
        query_vector: Sequence[float],
        min_score: float = 0.3,
        limit: int = 10
    ) -> List[SearchResult]:
        """
        Vector search over a conversation's messages and summaries.

        Message hits resolve to the complete turn that contains them; two
        hits in the same turn collapse into one result with the higher score.

        Args:
            conversation_id: Conversation ID
            query_vector: Embedded query
            min_score: Minimum cosine similarity
            limit: Maximum number of results

        Returns:
            Results sorted by descending score
        """
        filters = {"conversation_id": conversation_id}
        message_hits = await self.graph.query_by_vector_similarity(
            g.MESSAGE, EMBEDDING_PROPERTY, query_vector, min_score, limit, filters
        )
        summary_hits = await self.graph.query_by_vector_similarity(
            g.SUMMARY, EMBEDDING_PROPERTY, query_vector, min_score, limit, filters
        )

        turn_by_message: Dict[str, ConversationTurn] = {}
        if message_hits:
            for turn in await self.get_turns(conversation_id):
                for mid in turn.message_ids:
                    turn_by_message[mid] = turn

        results: List[SearchResult] = []
        for hit in message_hits:
            turn = turn_by_message.get(hit["id"])
            if turn is not None:
                results.append(SearchResult(
                    source=SourceKind.CONVERSATION_L0,
                    score=hit["score"],
                    confidence=TIER_CONFIDENCE[0],
                    content=turn.to_dialogue(),
                    record_id=ids.turn_id(conversation_id, turn.turn_index),
                    turn_index=turn.turn_index
                ))
            else:
                results.append(SearchResult(
                    source=SourceKind.CONVERSATION_L0,
                    score=hit["score"],
                    confidence=TIER_CONFIDENCE[0],
                    content=f"{hit['role'].capitalize()}: {hit.get('content', '')}",
                    record_id=hit["id"]
                ))

        for hit in summary_hits:
            summary = self._summary_from_record(hit)
            results.append(SearchResult(
                source=_TIER_SOURCE[summary.tier],
                score=hit["score"],
                confidence=TIER_CONFIDENCE[summary.tier],
                content=summary.to_text(),
                record_id=summary.summary_id,
                turn_index=summary.start_turn_index
            ))

        best: Dict[str, SearchResult] = {}
        for result in results:
            current = best.get(result.record_id)
            if current is None or result.score > current.score:
                best[result.record_id] = result

        ranked = sorted(best.values(), key=lambda r: r.score, reverse=True)
        return ranked[:limit]
