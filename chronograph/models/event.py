"""
Graph event models.

Events are the append-only history of every mutation against the graph.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from chronograph.utils.timestamps import utc_now


class EventType(str, Enum):
    """Kinds of graph events."""

    NODE_CREATED = "node_created"
    NODE_UPDATED = "node_updated"
    STATUS_CHANGED = "status_changed"
    NODE_DELETED = "node_deleted"
    EDGE_CREATED = "edge_created"
    EDGE_UPDATED = "edge_updated"
    EDGE_DELETED = "edge_deleted"
    PROGRESS_CHANGED = "progress_changed"
    EMBEDDING_GENERATED = "embedding_generated"
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"


class EventOrigin(str, Enum):
    """Who wrote an event."""

    MUTATION = "mutation"  # written with its state change by a graph service
    RECORDED = "recorded"  # appended on its own via record_event


# Event types that describe a single node or edge
ENTITY_SCOPED_EVENT_TYPES = frozenset(
    {
        EventType.NODE_CREATED,
        EventType.NODE_UPDATED,
        EventType.STATUS_CHANGED,
        EventType.NODE_DELETED,
        EventType.EDGE_CREATED,
        EventType.EDGE_UPDATED,
        EventType.EDGE_DELETED,
        EventType.PROGRESS_CHANGED,
        EventType.EMBEDDING_GENERATED,
    }
)

NODE_EVENT_TYPES = frozenset(
    {
        EventType.NODE_CREATED,
        EventType.NODE_UPDATED,
        EventType.STATUS_CHANGED,
        EventType.NODE_DELETED,
        EventType.PROGRESS_CHANGED,
        EventType.EMBEDDING_GENERATED,
    }
)

EDGE_EVENT_TYPES = frozenset(
    {EventType.EDGE_CREATED, EventType.EDGE_UPDATED, EventType.EDGE_DELETED}
)

# Event types callers may record directly, outside a graph mutation.
# Status changes only go through the status lifecycle.
CUSTOM_EVENT_TYPES = frozenset({EventType.PROGRESS_CHANGED, EventType.EMBEDDING_GENERATED})


class GraphEvent(BaseModel):
    """Immutable record of one mutation against the graph."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique event ID (evt_xxx)")
    user_id: str
    event_type: EventType
    origin: EventOrigin = EventOrigin.MUTATION
    node_id: str | None = None
    edge_id: str | None = None
    session_id: str | None = None
    previous_state: dict[str, Any] | None = None
    new_state: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)


class FieldChange(BaseModel):
    """Old and new value of one field."""

    old: Any = None
    new: Any = None


class NodeEvolutionEntry(BaseModel):
    """One step in a node's history, with the fields it changed."""

    event_id: str
    event_type: EventType
    event_timestamp: datetime
    changes: dict[str, FieldChange] = Field(default_factory=dict)
    session_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# Bookkeeping fields left out of evolution diffs
_DIFF_IGNORED_FIELDS = frozenset({"updated_at", "last_discussed_at", "last_reinforced_at"})


def diff_states(
    previous: dict[str, Any] | None, new: dict[str, Any] | None
) -> dict[str, FieldChange]:
    """
    Compute field-level changes between two entity states.

    Args:
        previous: State before the mutation (None for creations)
        new: State after the mutation

    Returns:
        Mapping of changed field name to its old/new values
    """
    previous = previous or {}
    new = new or {}
    changes: dict[str, FieldChange] = {}
    for key in sorted(set(previous) | set(new)):
        if key in _DIFF_IGNORED_FIELDS:
            continue
        old_value = previous.get(key)
        new_value = new.get(key)
        if old_value != new_value:
            changes[key] = FieldChange(old=old_value, new=new_value)
    return changes
