"""
SQLite graph store implementation.

Current-state nodes and edges live beside the append-only event log in one
database file, so a mutation and its event commit in the same transaction.
"""

import asyncio
import json
import sqlite3
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from chronograph.core.graph_store.base import GraphStore
from chronograph.models.edge import Edge, EdgeType
from chronograph.models.event import EventOrigin, EventType, GraphEvent
from chronograph.models.node import Node, NodeStatus, NodeType
from chronograph.utils.exceptions import GraphStoreError, TransientStoreError
from chronograph.utils.logger import get_logger
from chronograph.utils.timestamps import from_db, to_db

logger = get_logger(__name__)

# sqlite3.OperationalError messages that indicate a retryable condition
_TRANSIENT_MARKERS = ("locked", "busy", "disk i/o", "unable to open")


class SQLiteGraphStore(GraphStore):
    """
    SQLite-based graph store for nodes, edges and events.

    Features:
    - Single-transaction writes across state and event tables
    - Reads wait for any in-flight write, so uncommitted rows are never visible
    - Append-only event table enforced by triggers
    - Nodes are never hard-deleted (trigger enforced)
    - JSON columns for properties, embeddings and event payloads
    """

    def __init__(self, db_path: str = "data/chronograph.db"):
        """
        Initialize SQLite graph store.

        Args:
            db_path: Path to SQLite database file (":memory:" for an in-memory store)
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            async with self._guard("connect"):
                # Autocommit mode; transactions are opened explicitly in write()
                self.connection = await aiosqlite.connect(self.db_path, isolation_level=None)
                self.connection.row_factory = aiosqlite.Row
                await self.connection.execute("PRAGMA foreign_keys = ON")
                if self.db_path != ":memory:":
                    await self.connection.execute("PRAGMA journal_mode = WAL")

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()

        async with self._guard("initialize"):
            await self.connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS nodes (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    node_type TEXT NOT NULL,
                    label TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL,
                    properties TEXT NOT NULL DEFAULT '{}',
                    embedding TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    first_mentioned_at TEXT NOT NULL,
                    last_discussed_at TEXT NOT NULL,
                    deleted_at TEXT
                );

                CREATE TABLE IF NOT EXISTS edges (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    edge_type TEXT NOT NULL,
                    source_node_id TEXT NOT NULL REFERENCES nodes(id),
                    target_node_id TEXT NOT NULL REFERENCES nodes(id),
                    label TEXT,
                    weight REAL NOT NULL DEFAULT 1.0,
                    properties TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    discovered_at TEXT NOT NULL,
                    last_reinforced_at TEXT NOT NULL,
                    valid_to TEXT
                );

                CREATE TABLE IF NOT EXISTS graph_events (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    user_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    origin TEXT NOT NULL DEFAULT 'mutation',
                    node_id TEXT REFERENCES nodes(id),
                    edge_id TEXT REFERENCES edges(id),
                    session_id TEXT,
                    previous_state TEXT,
                    new_state TEXT NOT NULL,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL
                );

                CREATE TRIGGER IF NOT EXISTS graph_events_no_update
                BEFORE UPDATE ON graph_events
                BEGIN
                    SELECT RAISE(ABORT, 'graph_events is append-only');
                END;

                CREATE TRIGGER IF NOT EXISTS graph_events_no_delete
                BEFORE DELETE ON graph_events
                BEGIN
                    SELECT RAISE(ABORT, 'graph_events is append-only');
                END;

                CREATE TRIGGER IF NOT EXISTS nodes_no_delete
                BEFORE DELETE ON nodes
                BEGIN
                    SELECT RAISE(ABORT, 'nodes are soft-deleted only');
                END;

                CREATE INDEX IF NOT EXISTS idx_nodes_user ON nodes(user_id, created_at);
                CREATE INDEX IF NOT EXISTS idx_nodes_type ON nodes(user_id, node_type);
                CREATE INDEX IF NOT EXISTS idx_edges_user ON edges(user_id, created_at);
                CREATE INDEX IF NOT EXISTS idx_edges_source ON edges(source_node_id);
                CREATE INDEX IF NOT EXISTS idx_edges_target ON edges(target_node_id);
                CREATE INDEX IF NOT EXISTS idx_events_user ON graph_events(user_id, created_at, seq);
                CREATE INDEX IF NOT EXISTS idx_events_node ON graph_events(node_id);
                CREATE INDEX IF NOT EXISTS idx_events_edge ON graph_events(edge_id);
                CREATE INDEX IF NOT EXISTS idx_events_session ON graph_events(session_id);
                """
            )

        logger.info(f"SQLite graph store initialized at {self.db_path}")

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        """Translate sqlite3 errors into store errors."""
        try:
            yield
        except sqlite3.OperationalError as e:
            message = str(e).lower()
            if any(marker in message for marker in _TRANSIENT_MARKERS):
                logger.warning(
                    f"{operation} hit a transient SQLite error: {e}",
                    extra={"operation": operation, "error_type": type(e).__name__},
                )
                raise TransientStoreError(
                    f"{operation} failed: {e}", context={"operation": operation}
                ) from e
            logger.error(f"{operation} failed: {e}", extra={"operation": operation})
            raise GraphStoreError(f"{operation} failed: {e}", context={"operation": operation}) from e
        except sqlite3.Error as e:
            logger.error(f"{operation} failed: {e}", extra={"operation": operation})
            raise GraphStoreError(f"{operation} failed: {e}", context={"operation": operation}) from e

    # ═══════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════

    async def write(
        self,
        nodes: Sequence[Node] = (),
        edges: Sequence[Edge] = (),
        events: Sequence[GraphEvent] = (),
    ) -> None:
        """Atomically upsert nodes and edges and append events."""
        await self.connect()

        async with self._lock:
            async with self._guard("write"):
                await self.connection.execute("BEGIN IMMEDIATE")
                try:
                    for node in nodes:
                        await self._upsert_node(node)
                    for edge in edges:
                        await self._upsert_edge(edge)
                    for event in events:
                        await self._insert_event(event)
                except BaseException:
                    await self.connection.execute("ROLLBACK")
                    raise
                await self.connection.execute("COMMIT")

        logger.debug(
            f"Committed {len(nodes)} node(s), {len(edges)} edge(s), {len(events)} event(s)"
        )

    async def _upsert_node(self, node: Node) -> None:
        await self.connection.execute(
            """
            INSERT INTO nodes (
                id, user_id, node_type, label, description, status, properties, embedding,
                created_at, updated_at, first_mentioned_at, last_discussed_at, deleted_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                node_type = excluded.node_type,
                label = excluded.label,
                description = excluded.description,
                status = excluded.status,
                properties = excluded.properties,
                embedding = excluded.embedding,
                updated_at = excluded.updated_at,
                last_discussed_at = excluded.last_discussed_at,
                deleted_at = excluded.deleted_at
            """,
            (
                node.id,
                node.user_id,
                node.node_type.value,
                node.label,
                node.description,
                node.status.value,
                json.dumps(node.properties),
                json.dumps(node.embedding) if node.embedding is not None else None,
                to_db(node.created_at),
                to_db(node.updated_at),
                to_db(node.first_mentioned_at),
                to_db(node.last_discussed_at),
                to_db(node.deleted_at),
            ),
        )

    async def _upsert_edge(self, edge: Edge) -> None:
        await self.connection.execute(
            """
            INSERT INTO edges (
                id, user_id, edge_type, source_node_id, target_node_id, label, weight,
                properties, created_at, updated_at, discovered_at, last_reinforced_at, valid_to
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                edge_type = excluded.edge_type,
                label = excluded.label,
                weight = excluded.weight,
                properties = excluded.properties,
                updated_at = excluded.updated_at,
                last_reinforced_at = excluded.last_reinforced_at,
                valid_to = excluded.valid_to
            """,
            (
                edge.id,
                edge.user_id,
                edge.edge_type.value,
                edge.source_node_id,
                edge.target_node_id,
                edge.label,
                edge.weight,
                json.dumps(edge.properties),
                to_db(edge.created_at),
                to_db(edge.updated_at),
                to_db(edge.discovered_at),
                to_db(edge.last_reinforced_at),
                to_db(edge.valid_to),
            ),
        )

    async def _insert_event(self, event: GraphEvent) -> None:
        await self.connection.execute(
            """
            INSERT INTO graph_events (
                id, user_id, event_type, origin, node_id, edge_id, session_id,
                previous_state, new_state, metadata, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.user_id,
                event.event_type.value,
                event.origin.value,
                event.node_id,
                event.edge_id,
                event.session_id,
                json.dumps(event.previous_state) if event.previous_state is not None else None,
                json.dumps(event.new_state),
                json.dumps(event.metadata),
                to_db(event.created_at),
            ),
        )

    # ═══════════════════════════════════════════════════════════
    # NODE READS
    # ═══════════════════════════════════════════════════════════

    async def get_node(self, node_id: str) -> Node | None:
        """Retrieve a node by ID."""
        rows = await self._fetch("get_node", "SELECT * FROM nodes WHERE id = ?", (node_id,))
        return self._row_to_node(rows[0]) if rows else None

    async def get_nodes(self, node_ids: Sequence[str]) -> list[Node]:
        """Retrieve several nodes by ID."""
        if not node_ids:
            return []
        placeholders = ",".join("?" * len(node_ids))
        rows = await self._fetch(
            "get_nodes", f"SELECT * FROM nodes WHERE id IN ({placeholders})", tuple(node_ids)
        )
        return [self._row_to_node(row) for row in rows]

    async def list_nodes(
        self,
        user_id: str,
        node_type: NodeType | None = None,
        include_deleted: bool = True,
    ) -> list[Node]:
        """List a user's nodes, oldest first."""
        query = "SELECT * FROM nodes WHERE user_id = ?"
        params: list[Any] = [user_id]

        if node_type is not None:
            query += " AND node_type = ?"
            params.append(NodeType(node_type).value)

        if not include_deleted:
            query += " AND deleted_at IS NULL"

        query += " ORDER BY created_at ASC, rowid ASC"

        rows = await self._fetch("list_nodes", query, params)
        return [self._row_to_node(row) for row in rows]

    # ═══════════════════════════════════════════════════════════
    # EDGE READS
    # ═══════════════════════════════════════════════════════════

    async def get_edge(self, edge_id: str) -> Edge | None:
        """Retrieve an edge by ID."""
        rows = await self._fetch("get_edge", "SELECT * FROM edges WHERE id = ?", (edge_id,))
        return self._row_to_edge(rows[0]) if rows else None

    async def list_edges(
        self,
        user_id: str,
        include_invalid: bool = True,
        node_id: str | None = None,
    ) -> list[Edge]:
        """List a user's edges, oldest first."""
        query = "SELECT * FROM edges WHERE user_id = ?"
        params: list[Any] = [user_id]

        if not include_invalid:
            query += " AND valid_to IS NULL"

        if node_id is not None:
            query += " AND (source_node_id = ? OR target_node_id = ?)"
            params.extend([node_id, node_id])

        query += " ORDER BY created_at ASC, rowid ASC"

        rows = await self._fetch("list_edges", query, params)
        return [self._row_to_edge(row) for row in rows]

    # ═══════════════════════════════════════════════════════════
    # EVENT READS
    # ═══════════════════════════════════════════════════════════

    async def get_event(self, event_id: str) -> GraphEvent | None:
        """Retrieve an event by ID."""
        rows = await self._fetch(
            "get_event", "SELECT * FROM graph_events WHERE id = ?", (event_id,)
        )
        return self._row_to_event(rows[0]) if rows else None

    async def list_events(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[GraphEvent]:
        """List a user's events within optional inclusive bounds."""
        query = "SELECT * FROM graph_events WHERE user_id = ?"
        params: list[Any] = [user_id]

        if start is not None:
            query += " AND created_at >= ?"
            params.append(to_db(start))

        if end is not None:
            query += " AND created_at <= ?"
            params.append(to_db(end))

        direction = "DESC" if newest_first else "ASC"
        query += f" ORDER BY created_at {direction}, seq {direction}"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = await self._fetch("list_events", query, params)
        return [self._row_to_event(row) for row in rows]

    async def list_events_for(
        self,
        user_id: str,
        node_id: str | None = None,
        edge_id: str | None = None,
        session_id: str | None = None,
    ) -> list[GraphEvent]:
        """List a user's events referencing a node, edge or session, oldest first."""
        query = "SELECT * FROM graph_events WHERE user_id = ?"
        params: list[Any] = [user_id]

        if node_id is not None:
            query += " AND node_id = ?"
            params.append(node_id)
        if edge_id is not None:
            query += " AND edge_id = ?"
            params.append(edge_id)
        if session_id is not None:
            query += " AND session_id = ?"
            params.append(session_id)

        query += " ORDER BY created_at ASC, seq ASC"

        rows = await self._fetch("list_events_for", query, params)
        return [self._row_to_event(row) for row in rows]

    # ═══════════════════════════════════════════════════════════
    # UTILITY METHODS
    # ═══════════════════════════════════════════════════════════

    async def count_nodes(self, user_id: str | None = None, include_deleted: bool = False) -> int:
        """Count nodes."""
        query = "SELECT COUNT(*) FROM nodes WHERE 1=1"
        params: list[Any] = []
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        return await self._count("count_nodes", query, params)

    async def count_edges(self, user_id: str | None = None, include_invalid: bool = False) -> int:
        """Count edges."""
        query = "SELECT COUNT(*) FROM edges WHERE 1=1"
        params: list[Any] = []
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        if not include_invalid:
            query += " AND valid_to IS NULL"
        return await self._count("count_edges", query, params)

    async def count_events(self, user_id: str | None = None) -> int:
        """Count events."""
        query = "SELECT COUNT(*) FROM graph_events"
        params: list[Any] = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        return await self._count("count_events", query, params)

    async def close(self) -> None:
        """Close the connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    async def _fetch(self, operation: str, query: str, params: Sequence[Any]) -> list[aiosqlite.Row]:
        await self.connect()
        # One connection serves reads and writes; a read must not see an open transaction
        async with self._lock, self._guard(operation):
            cursor = await self.connection.execute(query, params)
            rows = await cursor.fetchall()
            await cursor.close()
        return list(rows)

    async def _count(self, operation: str, query: str, params: Sequence[Any]) -> int:
        rows = await self._fetch(operation, query, params)
        return rows[0][0] if rows else 0

    def _row_to_node(self, row: aiosqlite.Row) -> Node:
        """Convert database row to Node object."""
        return Node(
            id=row["id"],
            user_id=row["user_id"],
            node_type=NodeType(row["node_type"]),
            label=row["label"],
            description=row["description"],
            status=NodeStatus(row["status"]),
            properties=json.loads(row["properties"]) if row["properties"] else {},
            embedding=json.loads(row["embedding"]) if row["embedding"] else None,
            created_at=from_db(row["created_at"]),
            updated_at=from_db(row["updated_at"]),
            first_mentioned_at=from_db(row["first_mentioned_at"]),
            last_discussed_at=from_db(row["last_discussed_at"]),
            deleted_at=from_db(row["deleted_at"]),
        )

    def _row_to_edge(self, row: aiosqlite.Row) -> Edge:
        """Convert database row to Edge object."""
        return Edge(
            id=row["id"],
            user_id=row["user_id"],
            edge_type=EdgeType(row["edge_type"]),
            source_node_id=row["source_node_id"],
            target_node_id=row["target_node_id"],
            label=row["label"],
            weight=row["weight"],
            properties=json.loads(row["properties"]) if row["properties"] else {},
            created_at=from_db(row["created_at"]),
            updated_at=from_db(row["updated_at"]),
            discovered_at=from_db(row["discovered_at"]),
            last_reinforced_at=from_db(row["last_reinforced_at"]),
            valid_to=from_db(row["valid_to"]),
        )

    def _row_to_event(self, row: aiosqlite.Row) -> GraphEvent:
        """Convert database row to GraphEvent object."""
        return GraphEvent(
            id=row["id"],
            user_id=row["user_id"],
            event_type=EventType(row["event_type"]),
            origin=EventOrigin(row["origin"]),
            node_id=row["node_id"],
            edge_id=row["edge_id"],
            session_id=row["session_id"],
            previous_state=json.loads(row["previous_state"]) if row["previous_state"] else None,
            new_state=json.loads(row["new_state"]) if row["new_state"] else {},
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            created_at=from_db(row["created_at"]),
        )
