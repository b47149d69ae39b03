"""
Snapshot reconstruction - the graph as it was at a point in time.

Two strategies share one interface:
- CurrentStateReconstructor: filters current-state rows by their own
  timestamps (cheap; shows whether entities existed, not past field values)
- EventReplayReconstructor: folds the event log up to the timestamp
  (shows historical labels, statuses and properties)

Both apply the same inclusion rules and display annotations, and both are
pure functions of store contents and the requested timestamp.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from chronograph.config import SnapshotConfig
from chronograph.core.graph_store.base import GraphStore
from chronograph.models.edge import Edge
from chronograph.models.event import (
    EDGE_EVENT_TYPES,
    NODE_EVENT_TYPES,
    EventOrigin,
    GraphEvent,
)
from chronograph.models.node import Node
from chronograph.models.snapshot import GraphSnapshot, TemporalEdge, TemporalNode
from chronograph.utils.exceptions import ConfigurationError
from chronograph.utils.logger import get_logger
from chronograph.utils.timestamps import ensure_utc, hours_between
from chronograph.utils.validation import require_user_id

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════
# INCLUSION RULES
# ═══════════════════════════════════════════════════════════


def is_node_live(node: Node, timestamp: datetime) -> bool:
    """A node is live at T iff created_at <= T and it was not deleted at or before T."""
    if node.created_at > timestamp:
        return False
    return node.deleted_at is None or node.deleted_at > timestamp


def is_edge_live(edge: Edge, timestamp: datetime, live_node_ids: set[str]) -> bool:
    """
    An edge is live at T iff it existed at T, was still valid at T, and both
    endpoints are live at T. Node deletion leaves edges untouched, so the
    endpoint check is what drops edges around a deleted node.
    """
    if edge.created_at > timestamp:
        return False
    if edge.valid_to is not None and edge.valid_to <= timestamp:
        return False
    return edge.source_node_id in live_node_ids and edge.target_node_id in live_node_ids


# ═══════════════════════════════════════════════════════════
# ANNOTATIONS
# ═══════════════════════════════════════════════════════════


def compute_visibility(age_hours: float, fade_window_hours: float, min_visibility: float) -> float:
    """Linear fade from 1.0 to `min_visibility` over the fade window, flat after."""
    if fade_window_hours <= 0:
        return min_visibility
    return max(min_visibility, min(1.0, 1.0 - age_hours / fade_window_hours))


def _age_ms(created_at: datetime, timestamp: datetime) -> int:
    return int((timestamp - created_at).total_seconds() * 1000)


def annotate_node(node: Node, timestamp: datetime, config: SnapshotConfig) -> TemporalNode:
    age_hours = hours_between(node.created_at, timestamp)
    return TemporalNode(
        **node.model_dump(),
        age_ms=_age_ms(node.created_at, timestamp),
        is_new=age_hours < config.new_threshold_hours,
        is_recent=age_hours < config.recent_threshold_hours,
        visibility=compute_visibility(
            age_hours, config.fade_window_hours, config.min_visibility
        ),
    )


def annotate_edge(edge: Edge, timestamp: datetime, config: SnapshotConfig) -> TemporalEdge:
    age_hours = hours_between(edge.created_at, timestamp)
    strength = edge.weight if edge.weight is not None else config.default_edge_strength
    return TemporalEdge(
        **edge.model_dump(),
        age_ms=_age_ms(edge.created_at, timestamp),
        is_new=age_hours < config.new_threshold_hours,
        current_strength=strength,
    )


def build_snapshot(
    user_id: str,
    timestamp: datetime,
    nodes: Iterable[Node],
    edges: Iterable[Edge],
    config: SnapshotConfig,
) -> GraphSnapshot:
    """
    Apply inclusion rules and annotations to candidate nodes and edges.

    Args:
        user_id: Owner user ID
        timestamp: Snapshot time (aware UTC)
        nodes: Candidate nodes, in display order
        edges: Candidate edges, in display order
        config: Annotation thresholds

    Returns:
        GraphSnapshot with the entities live at `timestamp`
    """
    live_nodes = [node for node in nodes if is_node_live(node, timestamp)]
    live_ids = {node.id for node in live_nodes}
    live_edges = [edge for edge in edges if is_edge_live(edge, timestamp, live_ids)]

    return GraphSnapshot(
        user_id=user_id,
        timestamp=timestamp,
        nodes=[annotate_node(node, timestamp, config) for node in live_nodes],
        edges=[annotate_edge(edge, timestamp, config) for edge in live_edges],
    )


# ═══════════════════════════════════════════════════════════
# RECONSTRUCTORS
# ═══════════════════════════════════════════════════════════


class SnapshotReconstructor(ABC):
    """
    Computes the graph as of an arbitrary timestamp.

    Implementations must hold no mutable state between calls: repeated calls
    with the same store contents and timestamp return equal snapshots.
    """

    def __init__(self, store: GraphStore, config: SnapshotConfig | None = None):
        self.store = store
        self.config = config or SnapshotConfig()

    async def get_snapshot(self, user_id: str, timestamp: datetime) -> GraphSnapshot:
        """
        Reconstruct a user's graph at `timestamp`.

        Args:
            user_id: Owner user ID
            timestamp: Point in time (naive values are read as UTC)

        Returns:
            GraphSnapshot of nodes and edges live at `timestamp`

        Raises:
            ValidationError: If user_id is empty
            StoreError: If the store read fails
        """
        require_user_id(user_id)
        timestamp = ensure_utc(timestamp)
        snapshot = await self._reconstruct(user_id, timestamp)

        logger.debug(
            f"Snapshot at {timestamp.isoformat()}: "
            f"{len(snapshot.nodes)} nodes, {len(snapshot.edges)} edges",
            extra={"user_id": user_id},
        )
        return snapshot

    @abstractmethod
    async def _reconstruct(self, user_id: str, timestamp: datetime) -> GraphSnapshot:
        pass


class CurrentStateReconstructor(SnapshotReconstructor):
    """Filters current-state rows by their own timestamps."""

    async def _reconstruct(self, user_id: str, timestamp: datetime) -> GraphSnapshot:
        nodes = await self.store.list_nodes(user_id, include_deleted=True)
        edges = await self.store.list_edges(user_id, include_invalid=True)
        return build_snapshot(user_id, timestamp, nodes, edges, self.config)


class EventReplayReconstructor(SnapshotReconstructor):
    """
    Folds the event log up to the timestamp.

    Only events written by graph mutations are folded; recorded custom
    events never change replayed state. Each node/edge event's `new_state`
    is merged over the entity's accumulated state, so later partial states
    only override the fields they carry. A merged state that no longer
    validates, or that names another entity or owner than its event, is
    ignored and the previous state kept.
    """

    async def _reconstruct(self, user_id: str, timestamp: datetime) -> GraphSnapshot:
        events = await self.store.list_events(user_id, end=timestamp)

        node_states: dict[str, dict[str, Any]] = {}
        edge_states: dict[str, dict[str, Any]] = {}
        nodes: dict[str, Node] = {}
        edges: dict[str, Edge] = {}

        for event in events:
            if event.origin != EventOrigin.MUTATION:
                continue
            if event.event_type in NODE_EVENT_TYPES and event.node_id:
                merged = {**node_states.get(event.node_id, {}), **event.new_state}
                node = self._fold(Node, merged, event, event.node_id)
                if node is not None:
                    node_states[event.node_id] = merged
                    nodes[event.node_id] = node
            elif event.event_type in EDGE_EVENT_TYPES and event.edge_id:
                merged = {**edge_states.get(event.edge_id, {}), **event.new_state}
                edge = self._fold(Edge, merged, event, event.edge_id)
                if edge is not None:
                    edge_states[event.edge_id] = merged
                    edges[event.edge_id] = edge

        ordered_nodes = sorted(nodes.values(), key=lambda n: n.created_at)
        ordered_edges = sorted(edges.values(), key=lambda e: e.created_at)
        return build_snapshot(user_id, timestamp, ordered_nodes, ordered_edges, self.config)

    @staticmethod
    def _fold(
        model: type[Node] | type[Edge],
        state: dict[str, Any],
        event: GraphEvent,
        entity_id: str,
    ):
        try:
            entity = model.model_validate(state)
        except PydanticValidationError as e:
            logger.warning(
                f"Skipping event {event.id} during replay: state does not validate "
                f"({e.error_count()} error(s))",
                extra={"user_id": event.user_id},
            )
            return None

        if entity.id != entity_id or entity.user_id != event.user_id:
            logger.warning(
                f"Skipping event {event.id} during replay: state names {entity.id} "
                f"owned by {entity.user_id}",
                extra={"user_id": event.user_id},
            )
            return None
        return entity


RECONSTRUCTORS: dict[str, type[SnapshotReconstructor]] = {
    "current_state": CurrentStateReconstructor,
    "event_replay": EventReplayReconstructor,
}


def create_reconstructor(
    store: GraphStore, config: SnapshotConfig | None = None, mode: str | None = None
) -> SnapshotReconstructor:
    """
    Build the reconstructor for a snapshot mode.

    Raises:
        ConfigurationError: If the mode is unknown
    """
    config = config or SnapshotConfig()
    mode = mode or config.mode
    reconstructor_cls = RECONSTRUCTORS.get(mode)
    if reconstructor_cls is None:
        raise ConfigurationError(
            f"Unsupported snapshot mode: {mode}",
            context={"mode": mode, "supported": sorted(RECONSTRUCTORS)},
        )
    return reconstructor_cls(store, config)
