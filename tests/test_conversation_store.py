"""Tests for conversation persistence on the graph store."""

import pytest

from conftest import FakeEmbedder
from memory import ids
from memory.conversation_store import ConversationStore
from schemas.conversation import Role, Summary, SummaryTier, ToolInvocation
from schemas.search import SourceKind
from storage import graph_store as g


async def _add_turn(store, conv, user, assistant, tools=None):
    await store.add_message(conv, Role.USER, user)
    if tools:
        await store.add_message(conv, Role.ASSISTANT, "", tool_invocations=tools)
    await store.add_message(conv, Role.ASSISTANT, assistant)


def _summary(conv, tier, start, end, text="Summary text"):
    return Summary(
        summary_id=ids.summary_id(conv, tier, start, end),
        conversation_id=conv,
        tier=tier,
        confidence=0.7 if tier == SummaryTier.L1 else 0.5,
        conversation_summary=text,
        start_turn_index=start,
        end_turn_index=end
    )


class TestMessages:
    """Test message log storage."""

    @pytest.mark.asyncio
    async def test_add_message_creates_conversation(self, store):
        """Test that the first message creates the conversation."""
        await store.add_message("conv-1", Role.USER, "Hello")

        conversation = await store.get_conversation("conv-1")

        assert conversation is not None
        assert conversation.conversation_id == "conv-1"

    @pytest.mark.asyncio
    async def test_messages_round_trip_with_tools(self, store, graph):
        """Test that tool invocations are stored as call and result nodes."""
        tools = [
            ToolInvocation(tool_name="grep", arguments='{"pattern": "foo"}', result="3 matches"),
            ToolInvocation(tool_name="read_file", success=False, error="not found"),
        ]
        await store.add_message("conv-1", Role.USER, "Find foo")
        await store.add_message("conv-1", Role.ASSISTANT, None, tool_invocations=tools)

        messages = await store.get_messages("conv-1")

        assert [m.sequence for m in messages] == [0, 1]
        assert messages[1].content == ""
        assert [t.tool_name for t in messages[1].tool_invocations] == ["grep", "read_file"]
        assert messages[1].tool_invocations[1].success is False
        assert messages[1].tool_invocations[1].error == "not found"

        calls = await graph.query_edges(g.HAS_TOOL_CALL, from_id=messages[1].message_id)
        assert len(calls) == 2
        assert len(await graph.query_edges(g.HAS_RESULT, from_id=calls[0]["to_id"])) == 1

    @pytest.mark.asyncio
    async def test_embedding_failure_still_stores_message(self, graph):
        """Test that a failing embedder does not lose the message."""
        store = ConversationStore(graph, FakeEmbedder(fail=True))

        await store.add_message("conv-1", Role.USER, "Hello")

        assert len(await store.get_messages("conv-1")) == 1

    @pytest.mark.asyncio
    async def test_get_turns_and_last_queries(self, store):
        """Test turn derivation and last user queries."""
        for i in range(4):
            await _add_turn(store, "conv-1", f"question {i}", f"answer {i}")
        await store.add_message("conv-1", Role.USER, "pending question")

        turns = await store.get_turns("conv-1")
        queries = await store.get_last_user_queries("conv-1", limit=2)

        assert len(turns) == 4
        assert [q.text for q in queries] == ["question 2", "question 3"]
        assert [q.turn_index for q in queries] == [2, 3]

    @pytest.mark.asyncio
    async def test_delete_conversation_cascades(self, store, graph):
        """Test that deleting a conversation removes everything it owns."""
        await _add_turn(store, "conv-1", "q", "a", tools=[ToolInvocation(tool_name="ls")])
        await store.save_summary(_summary("conv-1", SummaryTier.L1, 0, 1))
        await _add_turn(store, "conv-2", "other", "kept")

        await store.delete_conversation("conv-1")

        assert await store.get_conversation("conv-1") is None
        assert await store.get_messages("conv-1") == []
        assert await store.get_summaries("conv-1", SummaryTier.L1) == []
        assert await graph.query_by_range(g.TOOL_CALL, {"conversation_id": "conv-1"}) == []
        assert await graph.query_edges(g.HAS_MESSAGE, from_id="conv-1") == []
        assert len(await store.get_messages("conv-2")) == 2


class TestSummaries:
    """Test summary storage and coverage queries."""

    @pytest.mark.asyncio
    async def test_save_same_range_twice_keeps_one_record(self, store):
        """Test that saving a summary twice overwrites the record."""
        await store.save_summary(_summary("conv-1", SummaryTier.L1, 0, 3, "first"))
        await store.save_summary(_summary("conv-1", SummaryTier.L1, 0, 3, "second"))

        summaries = await store.get_summaries("conv-1", SummaryTier.L1)

        assert len(summaries) == 1
        assert summaries[0].conversation_summary == "second"

    @pytest.mark.asyncio
    async def test_coverage_and_unconsolidated(self, store):
        """Test coverage ends and the L1 summaries not yet under an L2."""
        for start, end in [(0, 2), (2, 5), (5, 7)]:
            await store.save_summary(_summary("conv-1", SummaryTier.L1, start, end))
        await store.save_summary(_summary("conv-1", SummaryTier.L2, 0, 5))

        assert await store.covered_until("conv-1", SummaryTier.L1) == 7
        assert await store.covered_until("conv-1", SummaryTier.L2) == 5
        pending = await store.get_unconsolidated_l1_summaries("conv-1")
        assert [(s.start_turn_index, s.end_turn_index) for s in pending] == [(5, 7)]

    @pytest.mark.asyncio
    async def test_recent_l1_most_recent_first(self, store):
        """Test that recent L1 summaries are newest first."""
        for start, end in [(0, 2), (2, 5), (5, 7)]:
            await store.save_summary(_summary("conv-1", SummaryTier.L1, start, end))

        recent = await store.get_recent_l1_summaries("conv-1", limit=2)

        assert [s.start_turn_index for s in recent] == [5, 2]
        assert all(s.confidence == 0.7 for s in recent)

    @pytest.mark.asyncio
    async def test_l2_consolidates_edges(self, store, graph):
        """Test that an L2 summary links to the L1 summaries it consolidates."""
        l1_a = _summary("conv-1", SummaryTier.L1, 0, 2)
        l1_b = _summary("conv-1", SummaryTier.L1, 2, 4)
        l2 = _summary("conv-1", SummaryTier.L2, 0, 4)
        l2.consolidated_summary_ids = [l1_a.summary_id, l1_b.summary_id]

        await store.save_summary(l2)

        edges = await graph.query_edges(g.CONSOLIDATES, from_id=l2.summary_id)
        assert [e["to_id"] for e in edges] == [l1_a.summary_id, l1_b.summary_id]


class TestSearchHistory:
    """Test vector search over messages and summaries."""

    @pytest.mark.asyncio
    async def test_message_hits_resolve_to_turns(self, store, embedder):
        """Test that hits on two messages of one turn collapse into one result."""
        await _add_turn(store, "conv-1", "tokenizer bug in lexer", "fixed tokenizer bug in lexer")
        await _add_turn(store, "conv-1", "weather today", "sunny")

        query_vector = await embedder.embed("tokenizer bug lexer")
        results = await store.search_history("conv-1", query_vector, min_score=0.3)

        assert len(results) == 1
        assert results[0].source == SourceKind.CONVERSATION_L0
        assert results[0].confidence == 1.0
        assert results[0].turn_index == 0
        assert results[0].record_id == ids.turn_id("conv-1", 0)
        assert "tokenizer" in results[0].content

    @pytest.mark.asyncio
    async def test_summary_hits_carry_tier_confidence(self, store, embedder):
        """Test that summary hits are reported with their tier's confidence."""
        summary = _summary("conv-1", SummaryTier.L2, 0, 4, "migrated database schema")
        await store.save_summary(summary, await embedder.embed(summary.to_text()))

        query_vector = await embedder.embed("database schema migration")
        results = await store.search_history("conv-1", query_vector, min_score=0.1)

        assert len(results) == 1
        assert results[0].source == SourceKind.CONVERSATION_L2
        assert results[0].confidence == 0.5

    @pytest.mark.asyncio
    async def test_search_scoped_to_conversation(self, store, embedder):
        """Test that other conversations are not searched."""
        await _add_turn(store, "conv-2", "tokenizer bug", "fixed tokenizer bug")

        query_vector = await embedder.embed("tokenizer bug")

        assert await store.search_history("conv-1", query_vector) == []
