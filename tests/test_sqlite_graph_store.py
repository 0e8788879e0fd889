"""Tests for the SQLite property-graph store."""

import pytest


class TestSQLiteGraphStore:
    """Test node, edge and vector operations."""

    @pytest.mark.asyncio
    async def test_upsert_overwrites(self, graph):
        """Test that a second write with the same ID replaces the first."""
        await graph.upsert_node(["Summary"], "s1", {"text": "first"})
        await graph.upsert_node(["Summary"], "s1", {"text": "second"})

        records = await graph.query_by_range("Summary")

        assert len(records) == 1
        assert records[0]["text"] == "second"

    @pytest.mark.asyncio
    async def test_query_by_range_filters(self, graph):
        """Test that property filters restrict results."""
        await graph.upsert_node(["Message"], "a", {"conversation_id": "c1", "sequence": 0})
        await graph.upsert_node(["Message"], "b", {"conversation_id": "c2", "sequence": 0})
        await graph.upsert_node(["Message"], "c", {"conversation_id": "c1", "sequence": 1})

        records = await graph.query_by_range("Message", {"conversation_id": "c1"})

        assert [r["id"] for r in records] == ["a", "c"]

    @pytest.mark.asyncio
    async def test_invalid_property_name_rejected(self, graph):
        """Test that filter keys are validated."""
        with pytest.raises(ValueError):
            await graph.query_by_range("Message", {"x') OR 1=1 --": 1})

    @pytest.mark.asyncio
    async def test_vector_similarity_ranks_and_thresholds(self, graph):
        """Test that vector hits are scored, thresholded and sorted."""
        await graph.upsert_node(["Scope"], "exact", {"name": "a"}, vectors={"embedding": [1.0, 0.0]})
        await graph.upsert_node(["Scope"], "close", {"name": "b"}, vectors={"embedding": [1.0, 1.0]})
        await graph.upsert_node(["Scope"], "orthogonal", {"name": "c"}, vectors={"embedding": [0.0, 1.0]})
        await graph.upsert_node(["Scope"], "no-vector", {"name": "d"})

        records = await graph.query_by_vector_similarity("Scope", "embedding", [1.0, 0.0], 0.3, 10)

        assert [r["id"] for r in records] == ["exact", "close"]
        assert records[0]["score"] == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_delete_nodes_removes_edges(self, graph):
        """Test that deleting nodes also removes their edges."""
        await graph.upsert_node(["Conversation"], "c1", {"conversation_id": "c1"})
        await graph.upsert_node(["Message"], "m1", {"conversation_id": "c1"})
        await graph.upsert_edge("HAS_MESSAGE", "c1", "m1")

        removed = await graph.delete_nodes("Message", {"conversation_id": "c1"})

        assert removed == 1
        assert await graph.get_node("m1") is None
        assert await graph.query_edges("HAS_MESSAGE", from_id="c1") == []

    @pytest.mark.asyncio
    async def test_edges_are_unique(self, graph):
        """Test that re-writing an edge does not duplicate it."""
        await graph.upsert_edge("CONSOLIDATES", "l2", "l1")
        await graph.upsert_edge("CONSOLIDATES", "l2", "l1")

        assert len(await graph.query_edges("CONSOLIDATES", from_id="l2")) == 1

    @pytest.mark.asyncio
    async def test_labels_returned(self, graph):
        """Test that records carry their labels."""
        await graph.upsert_node(["Summary", "L1Summary"], "s1", {"tier": 1})

        node = await graph.get_node("s1")

        assert node["labels"] == ["Summary", "L1Summary"]
        assert node["tier"] == 1
