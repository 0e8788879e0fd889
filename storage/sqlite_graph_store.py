"""SQLite-backed property-graph store."""

import asyncio
import json
import logging
import re
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from retrieval.embeddings import cosine_similarity
from .graph_store import GraphStore

logger = logging.getLogger(__name__)

_PROPERTY_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SQLiteGraphStore(GraphStore):
    """Property graph persisted in SQLite.

    Nodes keep their properties as a JSON document; vectors live in a
    side table so that plain range queries never load them. Every
    public method runs the blocking sqlite3 work in a worker thread.
    """

    def __init__(self, db_path: str = "data/memory.db"):
        """
        Initialize SQLite graph store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize database schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS nodes (
                id TEXT PRIMARY KEY,
                labels TEXT NOT NULL,
                properties TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS node_labels (
                node_id TEXT NOT NULL,
                label TEXT NOT NULL,
                PRIMARY KEY (node_id, label)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS node_vectors (
                node_id TEXT NOT NULL,
                property TEXT NOT NULL,
                vector TEXT NOT NULL,
                PRIMARY KEY (node_id, property)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS edges (
                type TEXT NOT NULL,
                from_id TEXT NOT NULL,
                to_id TEXT NOT NULL,
                properties TEXT,
                PRIMARY KEY (type, from_id, to_id)
            )
        """)

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_node_labels_label ON node_labels(label)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_edges_to ON edges(type, to_id)"
        )

        conn.commit()
        conn.close()
        logger.info(f"Graph store initialized at {self.db_path}")

    @staticmethod
    def _where_clause(label: str, filters: Optional[Dict[str, Any]]) -> Tuple[str, list]:
        clauses = ["l.label = ?"]
        params: list = [label]
        for key, value in (filters or {}).items():
            if not _PROPERTY_NAME.match(key):
                raise ValueError(f"Invalid property name: {key!r}")
            clauses.append(f"json_extract(n.properties, '$.{key}') = ?")
            params.append(value)
        return " AND ".join(clauses), params

    @staticmethod
    def _to_record(row: sqlite3.Row) -> Dict[str, Any]:
        record = json.loads(row["properties"])
        record["id"] = row["id"]
        record["labels"] = json.loads(row["labels"])
        return record

    # Synchronous implementations, run via asyncio.to_thread

    def _upsert_node_sync(
        self,
        labels: Sequence[str],
        node_id: str,
        properties: Dict[str, Any],
        vectors: Optional[Dict[str, Sequence[float]]]
    ):
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute(
            """
            INSERT INTO nodes (id, labels, properties, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                labels = excluded.labels,
                properties = excluded.properties,
                updated_at = excluded.updated_at
            """,
            (node_id, json.dumps(list(labels)), json.dumps(properties, default=str), datetime.now().isoformat())
        )

        cursor.execute("DELETE FROM node_labels WHERE node_id = ?", (node_id,))
        cursor.executemany(
            "INSERT INTO node_labels (node_id, label) VALUES (?, ?)",
            [(node_id, label) for label in labels]
        )

        for prop, vector in (vectors or {}).items():
            cursor.execute(
                """
                INSERT OR REPLACE INTO node_vectors (node_id, property, vector)
                VALUES (?, ?, ?)
                """,
                (node_id, prop, json.dumps([float(x) for x in vector]))
            )

        conn.commit()
        conn.close()

    def _upsert_edge_sync(self, edge_type: str, from_id: str, to_id: str, properties: Optional[Dict[str, Any]]):
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO edges (type, from_id, to_id, properties)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(type, from_id, to_id) DO UPDATE SET properties = excluded.properties
            """,
            (edge_type, from_id, to_id, json.dumps(properties or {}, default=str))
        )
        conn.commit()
        conn.close()

    def _query_by_range_sync(self, label: str, filters: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        where, params = self._where_clause(label, filters)
        conn = self._get_connection()
        rows = conn.execute(
            f"""
            SELECT n.id, n.labels, n.properties
            FROM nodes n JOIN node_labels l ON l.node_id = n.id
            WHERE {where}
            ORDER BY n.rowid
            """,
            params
        ).fetchall()
        conn.close()
        return [self._to_record(row) for row in rows]

    def _query_by_vector_sync(
        self,
        label: str,
        vector_property: str,
        query_vector: Sequence[float],
        min_score: float,
        limit: int,
        filters: Optional[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        where, params = self._where_clause(label, filters)
        conn = self._get_connection()
        rows = conn.execute(
            f"""
            SELECT n.id, n.labels, n.properties, v.vector
            FROM nodes n
            JOIN node_labels l ON l.node_id = n.id
            JOIN node_vectors v ON v.node_id = n.id AND v.property = ?
            WHERE {where}
            ORDER BY n.rowid
            """,
            [vector_property] + params
        ).fetchall()
        conn.close()

        scored = []
        for row in rows:
            score = cosine_similarity(query_vector, json.loads(row["vector"]))
            if score >= min_score:
                record = self._to_record(row)
                record["score"] = max(0.0, min(1.0, score))
                scored.append(record)

        # Stable sort keeps insertion order for equal scores
        scored.sort(key=lambda r: r["score"], reverse=True)
        return scored[:limit]

    def _get_node_sync(self, node_id: str) -> Optional[Dict[str, Any]]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT id, labels, properties FROM nodes WHERE id = ?",
            (node_id,)
        ).fetchone()
        conn.close()
        return self._to_record(row) if row else None

    def _query_edges_sync(self, edge_type: str, from_id: Optional[str], to_id: Optional[str]) -> List[Dict[str, Any]]:
        clauses = ["type = ?"]
        params: list = [edge_type]
        if from_id is not None:
            clauses.append("from_id = ?")
            params.append(from_id)
        if to_id is not None:
            clauses.append("to_id = ?")
            params.append(to_id)

        conn = self._get_connection()
        rows = conn.execute(
            f"SELECT type, from_id, to_id, properties FROM edges WHERE {' AND '.join(clauses)} ORDER BY rowid",
            params
        ).fetchall()
        conn.close()

        return [
            {
                "type": row["type"],
                "from_id": row["from_id"],
                "to_id": row["to_id"],
                "properties": json.loads(row["properties"]) if row["properties"] else {},
            }
            for row in rows
        ]

    def _delete_nodes_sync(self, label: str, filters: Dict[str, Any]) -> int:
        where, params = self._where_clause(label, filters)
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute(
            f"SELECT n.id FROM nodes n JOIN node_labels l ON l.node_id = n.id WHERE {where}",
            params
        )
        ids = [row["id"] for row in cursor.fetchall()]

        for node_id in ids:
            cursor.execute("DELETE FROM edges WHERE from_id = ? OR to_id = ?", (node_id, node_id))
            cursor.execute("DELETE FROM node_vectors WHERE node_id = ?", (node_id,))
            cursor.execute("DELETE FROM node_labels WHERE node_id = ?", (node_id,))
            cursor.execute("DELETE FROM nodes WHERE id = ?", (node_id,))

        conn.commit()
        conn.close()
        return len(ids)

    # GraphStore interface

    async def upsert_node(
        self,
        labels: Sequence[str],
        node_id: str,
        properties: Dict[str, Any],
        vectors: Optional[Dict[str, Sequence[float]]] = None
    ) -> None:
        await asyncio.to_thread(self._upsert_node_sync, labels, node_id, properties, vectors)

    async def upsert_edge(
        self,
        edge_type: str,
        from_id: str,
        to_id: str,
        properties: Optional[Dict[str, Any]] = None
    ) -> None:
        await asyncio.to_thread(self._upsert_edge_sync, edge_type, from_id, to_id, properties)

    async def query_by_vector_similarity(
        self,
        label: str,
        vector_property: str,
        query_vector: Sequence[float],
        min_score: float,
        limit: int,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(
            self._query_by_vector_sync, label, vector_property, query_vector, min_score, limit, filters
        )

    async def query_by_range(self, label: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._query_by_range_sync, label, filters)

    async def get_node(self, node_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get_node_sync, node_id)

    async def query_edges(
        self,
        edge_type: str,
        from_id: Optional[str] = None,
        to_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._query_edges_sync, edge_type, from_id, to_id)

    async def delete_nodes(self, label: str, filters: Dict[str, Any]) -> int:
        count = await asyncio.to_thread(self._delete_nodes_sync, label, filters)
        logger.info(f"Deleted {count} {label} nodes matching {filters}")
        return count
