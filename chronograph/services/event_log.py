"""
Event Log Service - Append-only history of graph mutations.

Handles:
- Event construction and validation
- Standalone event recording (custom/metadata events)
- Timeline and per-node evolution queries
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from chronograph.core.graph_store.base import GraphStore
from chronograph.models.event import (
    ENTITY_SCOPED_EVENT_TYPES,
    EventOrigin,
    EventType,
    GraphEvent,
    NodeEvolutionEntry,
    diff_states,
)
from chronograph.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from chronograph.utils.id_generator import generate_event_id
from chronograph.utils.logger import get_logger
from chronograph.utils.timestamps import ensure_utc, utc_now
from chronograph.utils.validation import require_user_id

logger = get_logger(__name__)


class EventLog:
    """
    Append-only log of graph events.

    Events are never updated or deleted. Mutation services build their event
    with `build_event` and hand it to `GraphStore.write` together with the
    state change, so both land in one transaction. `record_event` is for
    events that carry no state change of their own.
    """

    def __init__(self, store: GraphStore, clock: Callable[[], datetime] = utc_now):
        """
        Initialize event log.

        Args:
            store: Graph store holding the events table
            clock: Source of event timestamps
        """
        self.store = store
        self.clock = clock

    def build_event(
        self,
        user_id: str,
        event_type: EventType | str,
        new_state: dict[str, Any] | None,
        node_id: str | None = None,
        edge_id: str | None = None,
        session_id: str | None = None,
        previous_state: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        created_at: datetime | None = None,
        origin: EventOrigin = EventOrigin.MUTATION,
    ) -> GraphEvent:
        """
        Validate and construct an event without writing it.

        Events default to `mutation` origin; only those are folded by
        event replay.

        Raises:
            ValidationError: Unknown event type, missing user, or an
                entity-scoped event with neither node_id nor edge_id
        """
        require_user_id(user_id)

        try:
            kind = EventType(event_type)
        except ValueError as e:
            raise ValidationError(
                f"Unrecognized event type: {event_type}",
                context={"event_type": str(event_type)},
            ) from e

        if kind in ENTITY_SCOPED_EVENT_TYPES and not (node_id or edge_id):
            raise ValidationError(
                f"Event type {kind.value} requires a node_id or edge_id",
                context={"event_type": kind.value},
            )

        return GraphEvent(
            id=generate_event_id(),
            user_id=user_id,
            event_type=kind,
            origin=origin,
            node_id=node_id,
            edge_id=edge_id,
            session_id=session_id,
            previous_state=previous_state,
            new_state=new_state or {},
            metadata=metadata or {},
            created_at=ensure_utc(created_at) if created_at else self.clock(),
        )

    async def record_event(
        self,
        user_id: str,
        event_type: EventType | str,
        new_state: dict[str, Any] | None,
        node_id: str | None = None,
        edge_id: str | None = None,
        session_id: str | None = None,
        previous_state: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """
        Append one event to the log.

        The event is marked `recorded`: it has no state change of its own,
        so snapshot replay never folds it.

        Args:
            user_id: Owner user ID
            event_type: Kind of event
            new_state: Entity state after the event
            node_id: Referenced node, if any
            edge_id: Referenced edge, if any
            session_id: Coaching session for correlation
            previous_state: Entity state before the event
            metadata: Free-form metadata

        Returns:
            The new event ID

        Raises:
            ValidationError: Invalid event input
            NotFoundError: Referenced node/edge does not exist
            AuthorizationError: Referenced node/edge belongs to another user
        """
        event = self.build_event(
            user_id,
            event_type,
            new_state,
            node_id=node_id,
            edge_id=edge_id,
            session_id=session_id,
            previous_state=previous_state,
            metadata=metadata,
            origin=EventOrigin.RECORDED,
        )

        if node_id is not None:
            node = await self.store.get_node(node_id)
            if node is None:
                raise NotFoundError(f"Node not found: {node_id}", context={"node_id": node_id})
            if node.user_id != user_id:
                raise AuthorizationError(
                    f"Node {node_id} is not owned by user", context={"node_id": node_id}
                )

        if edge_id is not None:
            edge = await self.store.get_edge(edge_id)
            if edge is None:
                raise NotFoundError(f"Edge not found: {edge_id}", context={"edge_id": edge_id})
            if edge.user_id != user_id:
                raise AuthorizationError(
                    f"Edge {edge_id} is not owned by user", context={"edge_id": edge_id}
                )

        await self.store.write(events=[event])

        logger.debug(
            f"Recorded {event.event_type.value} event {event.id}",
            extra={"user_id": user_id, "node_id": node_id, "edge_id": edge_id},
        )
        return event.id

    async def get_timeline(
        self,
        user_id: str,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int = 100,
    ) -> list[GraphEvent]:
        """
        Get a user's events, newest first.

        Args:
            user_id: Owner user ID
            start_date: Earliest event time (inclusive)
            end_date: Latest event time (inclusive)
            limit: Maximum number of events

        Returns:
            Events ordered newest first
        """
        require_user_id(user_id)
        if limit < 1:
            raise ValidationError("limit must be at least 1", context={"limit": limit})
        if start_date and end_date and ensure_utc(start_date) > ensure_utc(end_date):
            raise ValidationError("start_date must not be after end_date")

        return await self.store.list_events(
            user_id,
            start=ensure_utc(start_date) if start_date else None,
            end=ensure_utc(end_date) if end_date else None,
            limit=limit,
            newest_first=True,
        )

    async def get_events_between(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[GraphEvent]:
        """Get a user's events in log order (oldest first) within inclusive bounds."""
        require_user_id(user_id)
        return await self.store.list_events(
            user_id,
            start=ensure_utc(start) if start else None,
            end=ensure_utc(end) if end else None,
            limit=limit,
        )

    async def get_node_events(self, user_id: str, node_id: str) -> list[GraphEvent]:
        """
        Get every event referencing a node, oldest first.

        Raises:
            NotFoundError: If the node doesn't exist or isn't owned by the user
        """
        require_user_id(user_id)
        node = await self.store.get_node(node_id)
        if node is None or node.user_id != user_id:
            # Foreign nodes are reported as missing to avoid leaking existence
            raise NotFoundError(f"Node not found: {node_id}", context={"node_id": node_id})
        return await self.store.list_events_for(user_id, node_id=node_id)

    async def get_node_evolution(self, user_id: str, node_id: str) -> list[NodeEvolutionEntry]:
        """
        Get how a node changed over time.

        Args:
            user_id: Owner user ID
            node_id: Node to trace

        Returns:
            Evolution entries oldest first, each with field-level changes

        Raises:
            NotFoundError: If the node doesn't exist or isn't owned by the user
        """
        events = await self.get_node_events(user_id, node_id)
        return [
            NodeEvolutionEntry(
                event_id=event.id,
                event_type=event.event_type,
                event_timestamp=event.created_at,
                changes=diff_states(event.previous_state, event.new_state),
                session_id=event.session_id,
                metadata=event.metadata,
            )
            for event in events
        ]

    async def get_session_events(self, user_id: str, session_id: str) -> list[GraphEvent]:
        """Get everything recorded during one coaching session, oldest first."""
        require_user_id(user_id)
        if not session_id:
            raise ValidationError("session_id is required")
        return await self.store.list_events_for(user_id, session_id=session_id)
