"""
Graph Service - Mutation operations over nodes and edges.

Every mutation:
1. Validates input and ownership
2. Builds the new entity state
3. Writes the state row and its event in one store transaction
"""

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from chronograph.core.graph_store.base import GraphStore
from chronograph.models.edge import Edge, EdgeCreate, EdgeType, EdgeUpdate
from chronograph.models.event import EventType
from chronograph.models.node import (
    Node,
    NodeCreate,
    NodeStatus,
    NodeType,
    NodeUpdate,
    Session,
    SkillLevel,
    validate_properties,
)
from chronograph.services.event_log import EventLog
from chronograph.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from chronograph.utils.id_generator import generate_edge_id, generate_node_id
from chronograph.utils.logger import get_logger
from chronograph.utils.timestamps import utc_now
from chronograph.utils.validation import format_errors, parse_input, require_user_id

logger = get_logger(__name__)


class GraphService:
    """
    Current-state graph mutations paired 1:1 with event log writes.

    Nodes are soft-deleted (`deleted_at`) and edges invalidated (`valid_to`);
    nothing is ever removed.
    """

    def __init__(
        self,
        store: GraphStore,
        event_log: EventLog,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize graph service.

        Args:
            store: Graph store for state and events
            event_log: Event log used to build events
            clock: Source of mutation timestamps
        """
        self.store = store
        self.event_log = event_log
        self.clock = clock

    # ═══════════════════════════════════════════════════════════
    # OWNERSHIP
    # ═══════════════════════════════════════════════════════════

    async def require_node(self, user_id: str, node_id: str, allow_deleted: bool = False) -> Node:
        """
        Fetch a node the user owns.

        Raises:
            NotFoundError: Node missing (or soft-deleted unless allow_deleted)
            AuthorizationError: Node owned by another user
        """
        require_user_id(user_id)
        if not node_id:
            raise ValidationError("node_id is required")

        node = await self.store.get_node(node_id)
        if node is None:
            raise NotFoundError(f"Node not found: {node_id}", context={"node_id": node_id})
        if node.user_id != user_id:
            raise AuthorizationError(
                f"Node {node_id} is not owned by user", context={"node_id": node_id}
            )
        if node.is_deleted and not allow_deleted:
            raise NotFoundError(f"Node was deleted: {node_id}", context={"node_id": node_id})
        return node

    async def require_edge(self, user_id: str, edge_id: str, allow_invalid: bool = False) -> Edge:
        """
        Fetch an edge the user owns.

        Raises:
            NotFoundError: Edge missing (or invalidated unless allow_invalid)
            AuthorizationError: Edge owned by another user
        """
        require_user_id(user_id)
        if not edge_id:
            raise ValidationError("edge_id is required")

        edge = await self.store.get_edge(edge_id)
        if edge is None:
            raise NotFoundError(f"Edge not found: {edge_id}", context={"edge_id": edge_id})
        if edge.user_id != user_id:
            raise AuthorizationError(
                f"Edge {edge_id} is not owned by user", context={"edge_id": edge_id}
            )
        if not edge.is_valid and not allow_invalid:
            raise NotFoundError(f"Edge was invalidated: {edge_id}", context={"edge_id": edge_id})
        return edge

    # ═══════════════════════════════════════════════════════════
    # NODE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_node(
        self,
        user_id: str,
        data: NodeCreate | dict[str, Any],
        session_id: str | None = None,
    ) -> Node:
        """
        Create a node and record `node_created`.

        Args:
            user_id: Owner user ID
            data: Node type, label and optional description/properties/status
            session_id: Coaching session for correlation

        Returns:
            The created node

        Raises:
            ValidationError: Missing node_type/label or invalid properties
        """
        require_user_id(user_id)
        payload = parse_input(NodeCreate, data)
        properties = self._validate_properties(payload.node_type, payload.properties)

        now = self.clock()
        node = Node(
            id=generate_node_id(),
            user_id=user_id,
            node_type=payload.node_type,
            label=payload.label,
            description=payload.description,
            status=payload.status,
            properties=properties,
            created_at=now,
            updated_at=now,
            first_mentioned_at=now,
            last_discussed_at=now,
        )
        event = self.event_log.build_event(
            user_id,
            EventType.NODE_CREATED,
            node.to_state(),
            node_id=node.id,
            session_id=session_id,
            metadata={"node_type": node.node_type.value},
            created_at=now,
        )

        await self.store.write(nodes=[node], events=[event])

        logger.info(
            f"Created {node.node_type.value} node {node.id}",
            extra={"user_id": user_id, "session_id": session_id},
        )
        return node

    async def update_node(
        self,
        user_id: str,
        node_id: str,
        updates: NodeUpdate | dict[str, Any],
        session_id: str | None = None,
    ) -> Node:
        """
        Apply a partial update and record `node_updated`.

        Touches `updated_at` and `last_discussed_at`. The event carries the
        previous state and the list of changed fields.

        Raises:
            ValidationError: Unknown fields, a status change, or invalid values
            NotFoundError: Node missing or soft-deleted
            AuthorizationError: Node owned by another user
        """
        if isinstance(updates, dict) and "status" in updates:
            raise ValidationError(
                "Node status cannot be changed by update_node; use update_node_status",
                context={"node_id": node_id},
            )
        payload = parse_input(NodeUpdate, updates)
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No updates supplied", context={"node_id": node_id})
        if "label" in changes and (changes["label"] is None or not changes["label"].strip()):
            raise ValidationError("label cannot be blank", context={"node_id": node_id})
        if changes.get("node_type") is None:
            changes.pop("node_type", None)
        if "properties" in changes and changes["properties"] is None:
            changes["properties"] = {}

        existing = await self.require_node(user_id, node_id)

        node_type = changes.get("node_type", existing.node_type)
        if "properties" in changes or node_type != existing.node_type:
            changes["properties"] = self._validate_properties(
                node_type, changes.get("properties", existing.properties)
            )
        if "label" in changes:
            changes["label"] = changes["label"].strip()

        now = self.clock()
        updated = existing.model_copy(
            update={**changes, "updated_at": now, "last_discussed_at": now}
        )
        changed_fields = [
            field for field in changes if getattr(existing, field) != getattr(updated, field)
        ]

        event = self.event_log.build_event(
            user_id,
            EventType.NODE_UPDATED,
            updated.to_state(),
            node_id=node_id,
            session_id=session_id,
            previous_state=existing.to_state(),
            metadata={"changes": changed_fields},
            created_at=now,
        )

        await self.store.write(nodes=[updated], events=[event])

        logger.debug(
            f"Updated node {node_id}: {changed_fields}",
            extra={"user_id": user_id, "session_id": session_id},
        )
        return updated

    async def delete_node(
        self,
        user_id: str,
        node_id: str,
        session_id: str | None = None,
    ) -> Node:
        """
        Soft-delete a node and record `node_deleted`.

        Edges touching the node are left as they are; snapshots drop them
        while either endpoint is excluded.

        Raises:
            NotFoundError: Node missing or already deleted
            AuthorizationError: Node owned by another user
        """
        existing = await self.require_node(user_id, node_id)
        attached = await self.store.list_edges(user_id, include_invalid=False, node_id=node_id)

        now = self.clock()
        deleted = existing.model_copy(update={"deleted_at": now, "updated_at": now})
        event = self.event_log.build_event(
            user_id,
            EventType.NODE_DELETED,
            deleted.to_state(),
            node_id=node_id,
            session_id=session_id,
            previous_state=existing.to_state(),
            metadata={"attached_edge_ids": [edge.id for edge in attached]},
            created_at=now,
        )

        await self.store.write(nodes=[deleted], events=[event])

        logger.info(
            f"Soft-deleted node {node_id} ({len(attached)} attached edge(s) left in place)",
            extra={"user_id": user_id, "session_id": session_id},
        )
        return deleted

    async def update_progress(
        self,
        user_id: str,
        node_id: str,
        progress: float,
        session_id: str | None = None,
    ) -> Node:
        """
        Set a goal's progress (0-1) and record `progress_changed`.

        Raises:
            ValidationError: Node is not a goal or progress is out of range
        """
        if progress is None or not 0.0 <= float(progress) <= 1.0:
            raise ValidationError(
                "progress must be between 0 and 1", context={"progress": progress}
            )

        existing = await self.require_node(user_id, node_id)
        if existing.node_type != NodeType.GOAL:
            raise ValidationError(
                f"Progress applies to goal nodes, not {existing.node_type.value}",
                context={"node_id": node_id},
            )

        old_progress = existing.properties.get("progress")
        now = self.clock()
        updated = existing.model_copy(
            update={
                "properties": {**existing.properties, "progress": float(progress)},
                "updated_at": now,
                "last_discussed_at": now,
            }
        )
        event = self.event_log.build_event(
            user_id,
            EventType.PROGRESS_CHANGED,
            updated.to_state(),
            node_id=node_id,
            session_id=session_id,
            previous_state=existing.to_state(),
            metadata={"old_progress": old_progress, "new_progress": float(progress)},
            created_at=now,
        )

        await self.store.write(nodes=[updated], events=[event])
        return updated

    async def set_embedding(
        self,
        user_id: str,
        node_id: str,
        embedding: Sequence[float],
        model: str | None = None,
    ) -> Node:
        """
        Store an embedding produced elsewhere and record `embedding_generated`.

        The vector is stored as given; its contents are not interpreted.
        """
        existing = await self.require_node(user_id, node_id)
        vector = [float(value) for value in embedding]

        now = self.clock()
        updated = existing.model_copy(update={"embedding": vector, "updated_at": now})
        metadata: dict[str, Any] = {"dimensions": len(vector)}
        if model:
            metadata["model"] = model
        event = self.event_log.build_event(
            user_id,
            EventType.EMBEDDING_GENERATED,
            updated.to_state(),
            node_id=node_id,
            metadata=metadata,
            created_at=now,
        )

        await self.store.write(nodes=[updated], events=[event])
        return updated

    # ═══════════════════════════════════════════════════════════
    # EDGE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_edge(
        self,
        user_id: str,
        data: EdgeCreate | dict[str, Any],
        session_id: str | None = None,
    ) -> Edge:
        """
        Create an edge between two live nodes of the user and record `edge_created`.

        Raises:
            ValidationError: Missing fields, self-loop, or an endpoint that is
                missing, deleted or owned by another user
        """
        require_user_id(user_id)
        payload = parse_input(EdgeCreate, data)
        await self._check_endpoints(user_id, payload.source_node_id, payload.target_node_id)

        now = self.clock()
        edge = self._new_edge(user_id, payload, now)
        event = self.event_log.build_event(
            user_id,
            EventType.EDGE_CREATED,
            edge.to_state(),
            edge_id=edge.id,
            session_id=session_id,
            metadata={"edge_type": edge.edge_type.value},
            created_at=now,
        )

        await self.store.write(edges=[edge], events=[event])

        logger.info(
            f"Created {edge.edge_type.value} edge {edge.id}: "
            f"{edge.source_node_id} -> {edge.target_node_id}",
            extra={"user_id": user_id, "session_id": session_id},
        )
        return edge

    async def update_edge(
        self,
        user_id: str,
        edge_id: str,
        updates: EdgeUpdate | dict[str, Any],
        session_id: str | None = None,
    ) -> Edge:
        """
        Apply a partial update, touch `last_reinforced_at` and record `edge_updated`.

        Raises:
            ValidationError: Unknown fields or invalid values
            NotFoundError: Edge missing or invalidated
            AuthorizationError: Edge owned by another user
        """
        payload = parse_input(EdgeUpdate, updates)
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No updates supplied", context={"edge_id": edge_id})
        for field in ("edge_type", "weight"):
            if field in changes and changes[field] is None:
                changes.pop(field)
        if "properties" in changes and changes["properties"] is None:
            changes["properties"] = {}

        existing = await self.require_edge(user_id, edge_id)

        now = self.clock()
        updated = existing.model_copy(
            update={**changes, "updated_at": now, "last_reinforced_at": now}
        )
        changed_fields = [
            field for field in changes if getattr(existing, field) != getattr(updated, field)
        ]
        event = self.event_log.build_event(
            user_id,
            EventType.EDGE_UPDATED,
            updated.to_state(),
            edge_id=edge_id,
            session_id=session_id,
            previous_state=existing.to_state(),
            metadata={"changes": changed_fields},
            created_at=now,
        )

        await self.store.write(edges=[updated], events=[event])
        return updated

    async def delete_edge(
        self,
        user_id: str,
        edge_id: str,
        session_id: str | None = None,
    ) -> Edge:
        """
        Invalidate an edge (sets `valid_to`) and record `edge_deleted`.

        Raises:
            NotFoundError: Edge missing or already invalidated
            AuthorizationError: Edge owned by another user
        """
        existing = await self.require_edge(user_id, edge_id)

        now = self.clock()
        invalidated = existing.model_copy(update={"valid_to": now, "updated_at": now})
        event = self.event_log.build_event(
            user_id,
            EventType.EDGE_DELETED,
            invalidated.to_state(),
            edge_id=edge_id,
            session_id=session_id,
            previous_state=existing.to_state(),
            created_at=now,
        )

        await self.store.write(edges=[invalidated], events=[event])

        logger.info(f"Invalidated edge {edge_id}", extra={"user_id": user_id})
        return invalidated

    # ═══════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════

    async def get_node(self, user_id: str, node_id: str) -> Node:
        """Get a live node the user owns."""
        return await self.require_node(user_id, node_id)

    async def get_edge(self, user_id: str, edge_id: str) -> Edge:
        """Get a valid edge the user owns."""
        return await self.require_edge(user_id, edge_id)

    async def list_nodes(
        self,
        user_id: str,
        node_type: NodeType | str | None = None,
        include_deleted: bool = False,
    ) -> list[Node]:
        """List the user's nodes, oldest first."""
        require_user_id(user_id)
        if node_type is not None:
            try:
                node_type = NodeType(node_type)
            except ValueError as e:
                raise ValidationError(f"Unknown node type: {node_type}") from e
        return await self.store.list_nodes(
            user_id, node_type=node_type, include_deleted=include_deleted
        )

    async def list_edges(self, user_id: str, include_invalid: bool = False) -> list[Edge]:
        """List the user's edges, oldest first."""
        require_user_id(user_id)
        return await self.store.list_edges(user_id, include_invalid=include_invalid)

    async def list_sessions(self, user_id: str) -> list[Session]:
        """List the user's coaching sessions, oldest first."""
        nodes = await self.list_nodes(user_id, node_type=NodeType.SESSION)
        return [Session.from_node(node) for node in nodes]

    # ═══════════════════════════════════════════════════════════
    # TYPED HELPERS
    # ═══════════════════════════════════════════════════════════

    async def create_goal_node(
        self,
        user_id: str,
        title: str,
        category: str | None = None,
        properties: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> Node:
        """Create a goal node."""
        props = {**(properties or {})}
        if category:
            props["category"] = category
        return await self.create_node(
            user_id,
            {"node_type": NodeType.GOAL, "label": title, "properties": props},
            session_id=session_id,
        )

    async def create_skill_node(
        self,
        user_id: str,
        skill_name: str,
        level: SkillLevel | str = SkillLevel.BEGINNER,
        transferable_from: list[str] | None = None,
        session_id: str | None = None,
    ) -> Node:
        """Create a skill node."""
        return await self.create_node(
            user_id,
            {
                "node_type": NodeType.SKILL,
                "label": skill_name,
                "properties": {"level": level, "transferable_from": transferable_from or []},
            },
            session_id=session_id,
        )

    async def track_emotion(
        self,
        user_id: str,
        emotion: str,
        intensity: float = 0.5,
        context: str | None = None,
        session_id: str | None = None,
    ) -> Node:
        """Record an emotion the user expressed as an emotion node."""
        props: dict[str, Any] = {"intensity": intensity}
        if context:
            props["context"] = context
        return await self.create_node(
            user_id,
            {"node_type": NodeType.EMOTION, "label": emotion, "properties": props},
            session_id=session_id,
        )

    async def create_session_node(
        self,
        user_id: str,
        label: str,
        goal_id: str | None = None,
        duration_minutes: float | None = None,
        summary: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> Node:
        """
        Create a session node, optionally linked to the goal it worked on.

        The session node, its `discussed_in` edge and the `session_started`
        event are written in one transaction. All events are tagged with the
        new session's id.
        """
        require_user_id(user_id)
        props = {**(properties or {})}
        if goal_id:
            props["goal_id"] = goal_id
        if duration_minutes is not None:
            props["duration_minutes"] = duration_minutes
        if summary:
            props["summary"] = summary

        payload = parse_input(
            NodeCreate,
            {"node_type": NodeType.SESSION, "label": label, "properties": props},
        )
        properties = self._validate_properties(NodeType.SESSION, payload.properties)

        goal = None
        if goal_id:
            goal = await self.require_node(user_id, goal_id)
            if goal.node_type != NodeType.GOAL:
                raise ValidationError(
                    f"Session goal must be a goal node, not {goal.node_type.value}",
                    context={"goal_id": goal_id},
                )

        now = self.clock()
        session = Node(
            id=generate_node_id(),
            user_id=user_id,
            node_type=NodeType.SESSION,
            label=payload.label,
            status=NodeStatus.DRAFT_VERBAL,
            properties=properties,
            created_at=now,
            updated_at=now,
            first_mentioned_at=now,
            last_discussed_at=now,
        )
        events = [
            self.event_log.build_event(
                user_id,
                EventType.NODE_CREATED,
                session.to_state(),
                node_id=session.id,
                session_id=session.id,
                metadata={"node_type": NodeType.SESSION.value},
                created_at=now,
            )
        ]
        edges: list[Edge] = []

        if goal is not None:
            edge = self._new_edge(
                user_id,
                EdgeCreate(
                    edge_type=EdgeType.DISCUSSED_IN,
                    source_node_id=goal.id,
                    target_node_id=session.id,
                ),
                now,
            )
            edges.append(edge)
            events.append(
                self.event_log.build_event(
                    user_id,
                    EventType.EDGE_CREATED,
                    edge.to_state(),
                    edge_id=edge.id,
                    session_id=session.id,
                    metadata={"edge_type": edge.edge_type.value},
                    created_at=now,
                )
            )

        events.append(
            self.event_log.build_event(
                user_id,
                EventType.SESSION_STARTED,
                {"session_id": session.id, "goal_id": goal_id},
                node_id=session.id,
                session_id=session.id,
                created_at=now,
            )
        )

        await self.store.write(nodes=[session], edges=edges, events=events)

        logger.info(f"Created session node {session.id}", extra={"user_id": user_id})
        return session

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    def _validate_properties(
        self, node_type: NodeType, properties: dict[str, Any] | None
    ) -> dict[str, Any]:
        try:
            return validate_properties(node_type, properties)
        except PydanticValidationError as e:
            errors = format_errors(e)
            raise ValidationError(
                f"Invalid {node_type.value} properties: {'; '.join(errors)}",
                context={"errors": errors},
            ) from e

    async def _check_endpoints(self, user_id: str, source_id: str, target_id: str) -> None:
        if source_id == target_id:
            raise ValidationError(
                "An edge cannot connect a node to itself", context={"node_id": source_id}
            )

        found = {node.id: node for node in await self.store.get_nodes([source_id, target_id])}
        for role, node_id in (("source", source_id), ("target", target_id)):
            node = found.get(node_id)
            if node is None:
                raise ValidationError(
                    f"Edge {role} node not found: {node_id}", context={f"{role}_node_id": node_id}
                )
            if node.user_id != user_id:
                raise ValidationError(
                    f"Edge {role} node {node_id} is not owned by user",
                    context={f"{role}_node_id": node_id},
                )
            if node.is_deleted:
                raise ValidationError(
                    f"Edge {role} node was deleted: {node_id}",
                    context={f"{role}_node_id": node_id},
                )

    def _new_edge(self, user_id: str, payload: EdgeCreate, now: datetime) -> Edge:
        return Edge(
            id=generate_edge_id(),
            user_id=user_id,
            edge_type=payload.edge_type,
            source_node_id=payload.source_node_id,
            target_node_id=payload.target_node_id,
            label=payload.label,
            weight=payload.weight,
            properties=payload.properties,
            created_at=now,
            updated_at=now,
            discovered_at=now,
            last_reinforced_at=now,
        )
