"""
Status lifecycle for nodes: draft_verbal <-> curated.

Nodes mentioned in conversation start as `draft_verbal`; a user review
promotes them to `curated`. Every status call is recorded, including
no-op calls, so review activity stays visible in the log.
"""

from typing import Any

from chronograph.models.event import EventType
from chronograph.models.node import Node, NodeStatus
from chronograph.services.graph_service import GraphService
from chronograph.utils.exceptions import ValidationError
from chronograph.utils.logger import get_logger

logger = get_logger(__name__)

# Allowed transitions; staying in the same status is always allowed
TRANSITIONS: dict[NodeStatus, frozenset[NodeStatus]] = {
    NodeStatus.DRAFT_VERBAL: frozenset({NodeStatus.CURATED}),
    NodeStatus.CURATED: frozenset({NodeStatus.DRAFT_VERBAL}),
}


def can_transition(current: NodeStatus, target: NodeStatus) -> bool:
    return current == target or target in TRANSITIONS.get(current, frozenset())


class StatusLifecycle:
    """Moves nodes between review statuses and records `status_changed`."""

    def __init__(self, graph_service: GraphService):
        self.graph = graph_service

    async def update_node_status(
        self,
        user_id: str,
        node_id: str,
        new_status: NodeStatus | str,
        session_id: str | None = None,
        reason: str | None = None,
    ) -> Node:
        """
        Set a node's status.

        Args:
            user_id: Owner user ID
            node_id: Node to update
            new_status: Target status
            session_id: Coaching session for correlation
            reason: Optional note stored in event metadata

        Returns:
            The node after the call

        Raises:
            ValidationError: Unknown status or disallowed transition
            NotFoundError: Node missing or soft-deleted
            AuthorizationError: Node owned by another user
        """
        try:
            target = NodeStatus(new_status)
        except ValueError as e:
            raise ValidationError(
                f"Unknown node status: {new_status}",
                context={"status": str(new_status)},
            ) from e

        existing = await self.graph.require_node(user_id, node_id)
        if not can_transition(existing.status, target):
            raise ValidationError(
                f"Cannot move node from {existing.status.value} to {target.value}",
                context={"node_id": node_id},
            )

        changed = existing.status != target
        now = self.graph.clock()
        updated = existing
        if changed:
            updated = existing.model_copy(update={"status": target, "updated_at": now})

        metadata: dict[str, Any] = {
            "old_status": existing.status.value,
            "new_status": target.value,
            "changed": changed,
        }
        if reason:
            metadata["reason"] = reason

        event = self.graph.event_log.build_event(
            user_id,
            EventType.STATUS_CHANGED,
            updated.to_state(),
            node_id=node_id,
            session_id=session_id,
            previous_state=existing.to_state(),
            metadata=metadata,
            created_at=now,
        )

        if changed:
            await self.graph.store.write(nodes=[updated], events=[event])
            logger.info(
                f"Node {node_id} status {existing.status.value} -> {target.value}",
                extra={"user_id": user_id},
            )
        else:
            await self.graph.store.write(events=[event])

        return updated

    async def promote(self, user_id: str, node_id: str, session_id: str | None = None) -> Node:
        """Mark a node as reviewed (`curated`)."""
        return await self.update_node_status(
            user_id, node_id, NodeStatus.CURATED, session_id=session_id
        )

    async def revert_to_draft(
        self, user_id: str, node_id: str, session_id: str | None = None
    ) -> Node:
        return await self.update_node_status(
            user_id, node_id, NodeStatus.DRAFT_VERBAL, session_id=session_id
        )
