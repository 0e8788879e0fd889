"""Graph storage for conversation memory."""

from .graph_store import GraphStore
from .sqlite_graph_store import SQLiteGraphStore

__all__ = ["GraphStore", "SQLiteGraphStore"]
