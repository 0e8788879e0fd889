"""Property-graph store interface consumed by the memory layer."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

# Node labels
CONVERSATION = "Conversation"
MESSAGE = "Message"
TOOL_CALL = "ToolCall"
TOOL_RESULT = "ToolResult"
SUMMARY = "Summary"
SCOPE = "Scope"  # Externally ingested code index

# Edge types
HAS_MESSAGE = "HAS_MESSAGE"
HAS_TOOL_CALL = "HAS_TOOL_CALL"
HAS_RESULT = "HAS_RESULT"
HAS_SUMMARY = "HAS_SUMMARY"
CONSOLIDATES = "CONSOLIDATES"


class GraphStore(ABC):
    """Generic async property-graph store.

    Writes are single-statement upserts keyed by node ID (or by
    type/from/to for edges); writing the same key twice overwrites.
    Records are plain dicts of the node properties plus ``id`` and
    ``labels``.
    """

    @abstractmethod
    async def upsert_node(
        self,
        labels: Sequence[str],
        node_id: str,
        properties: Dict[str, Any],
        vectors: Optional[Dict[str, Sequence[float]]] = None
    ) -> None:
        """Create or overwrite a node. ``vectors`` maps a vector property name to its embedding."""
        pass

    @abstractmethod
    async def upsert_edge(
        self,
        edge_type: str,
        from_id: str,
        to_id: str,
        properties: Optional[Dict[str, Any]] = None
    ) -> None:
        pass

    @abstractmethod
    async def query_by_vector_similarity(
        self,
        label: str,
        vector_property: str,
        query_vector: Sequence[float],
        min_score: float,
        limit: int,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Records with a ``score`` key, best first, all scoring at least ``min_score``."""
        pass

    @abstractmethod
    async def query_by_range(self, label: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Records of ``label`` whose properties equal every filter value."""
        pass

    @abstractmethod
    async def get_node(self, node_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def query_edges(
        self,
        edge_type: str,
        from_id: Optional[str] = None,
        to_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def delete_nodes(self, label: str, filters: Dict[str, Any]) -> int:
        """Delete matching nodes and every edge touching them. Returns the node count."""
        pass
