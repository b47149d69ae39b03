"""
Base interface for graph storage.

Holds current-state nodes and edges plus the append-only event log. All
writes go through `write`, which applies state rows and event rows as one
atomic unit.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from chronograph.models.edge import Edge
from chronograph.models.event import GraphEvent
from chronograph.models.node import Node, NodeType


class GraphStore(ABC):
    """Abstract base class for graph storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the graph store (create tables/schema)."""
        pass

    # ═══════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def write(
        self,
        nodes: Sequence[Node] = (),
        edges: Sequence[Edge] = (),
        events: Sequence[GraphEvent] = (),
    ) -> None:
        """
        Atomically upsert nodes and edges and append events.

        Either every row is written or none is.

        Args:
            nodes: Nodes to insert or replace by id
            edges: Edges to insert or replace by id
            events: Events to append (never replaced)

        Raises:
            TransientStoreError: Recoverable I/O failure, nothing written
            GraphStoreError: Any other storage failure, nothing written
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # NODE READS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_node(self, node_id: str) -> Node | None:
        """
        Retrieve a node by ID, including soft-deleted nodes.

        Args:
            node_id: Node identifier

        Returns:
            Node or None if not found
        """
        pass

    @abstractmethod
    async def get_nodes(self, node_ids: Sequence[str]) -> list[Node]:
        """Retrieve several nodes by ID (missing IDs are skipped)."""
        pass

    @abstractmethod
    async def list_nodes(
        self,
        user_id: str,
        node_type: NodeType | None = None,
        include_deleted: bool = True,
    ) -> list[Node]:
        """
        List a user's nodes, oldest first.

        Args:
            user_id: Owner user ID
            node_type: Optional type filter
            include_deleted: Whether soft-deleted nodes are returned

        Returns:
            List of nodes ordered by created_at
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # EDGE READS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_edge(self, edge_id: str) -> Edge | None:
        """Retrieve an edge by ID, including invalidated edges."""
        pass

    @abstractmethod
    async def list_edges(
        self,
        user_id: str,
        include_invalid: bool = True,
        node_id: str | None = None,
    ) -> list[Edge]:
        """
        List a user's edges, oldest first.

        Args:
            user_id: Owner user ID
            include_invalid: Whether edges with valid_to set are returned
            node_id: Only edges touching this node

        Returns:
            List of edges ordered by created_at
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # EVENT READS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_event(self, event_id: str) -> GraphEvent | None:
        """Retrieve an event by ID."""
        pass

    @abstractmethod
    async def list_events(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[GraphEvent]:
        """
        List a user's events within optional inclusive bounds.

        Args:
            user_id: Owner user ID
            start: Earliest created_at (inclusive)
            end: Latest created_at (inclusive)
            limit: Maximum results
            newest_first: Ordering direction

        Returns:
            List of events in log order (or reverse log order)
        """
        pass

    @abstractmethod
    async def list_events_for(
        self,
        user_id: str,
        node_id: str | None = None,
        edge_id: str | None = None,
        session_id: str | None = None,
    ) -> list[GraphEvent]:
        """
        List a user's events referencing a node, edge or session, oldest first.

        Exactly one of node_id, edge_id or session_id should be given.
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # UTILITY METHODS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def count_nodes(self, user_id: str | None = None, include_deleted: bool = False) -> int:
        """Count nodes, optionally for one user."""
        pass

    @abstractmethod
    async def count_edges(self, user_id: str | None = None, include_invalid: bool = False) -> int:
        """Count edges, optionally for one user."""
        pass

    @abstractmethod
    async def count_events(self, user_id: str | None = None) -> int:
        """Count events, optionally for one user."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection to the graph store."""
        pass
