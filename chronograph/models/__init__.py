"""
Data models for ChronoGraph.

Core models:
- Node, NodeType, NodeStatus: typed vertices with per-type property schemas
- Edge, EdgeType: directed weighted relationships
- GraphEvent, EventType: append-only mutation history
- GraphSnapshot, TemporalNode, TemporalEdge: point-in-time views
- TimelineState, TimeRange: playback state
"""

from chronograph.models.edge import Edge, EdgeCreate, EdgeType, EdgeUpdate
from chronograph.models.event import (
    CUSTOM_EVENT_TYPES,
    EDGE_EVENT_TYPES,
    ENTITY_SCOPED_EVENT_TYPES,
    NODE_EVENT_TYPES,
    EventOrigin,
    EventType,
    FieldChange,
    GraphEvent,
    NodeEvolutionEntry,
    diff_states,
)
from chronograph.models.node import (
    PROPERTY_MODELS,
    AccomplishmentProperties,
    EmotionProperties,
    GoalProperties,
    InsightProperties,
    Node,
    NodeCreate,
    NodeProperties,
    NodeStatus,
    NodeType,
    NodeUpdate,
    Session,
    SessionProperties,
    SkillLevel,
    SkillProperties,
    validate_properties,
)
from chronograph.models.snapshot import GraphSnapshot, TemporalEdge, TemporalNode
from chronograph.models.timeline import TimelineState, TimeRange

__all__ = [
    # Node models
    "Node",
    "NodeCreate",
    "NodeUpdate",
    "NodeType",
    "NodeStatus",
    "Session",
    "SkillLevel",
    "NodeProperties",
    "GoalProperties",
    "SkillProperties",
    "EmotionProperties",
    "SessionProperties",
    "AccomplishmentProperties",
    "InsightProperties",
    "PROPERTY_MODELS",
    "validate_properties",
    # Edge models
    "Edge",
    "EdgeCreate",
    "EdgeUpdate",
    "EdgeType",
    # Event models
    "GraphEvent",
    "EventType",
    "EventOrigin",
    "FieldChange",
    "NodeEvolutionEntry",
    "diff_states",
    "ENTITY_SCOPED_EVENT_TYPES",
    "NODE_EVENT_TYPES",
    "EDGE_EVENT_TYPES",
    "CUSTOM_EVENT_TYPES",
    # Snapshot models
    "GraphSnapshot",
    "TemporalNode",
    "TemporalEdge",
    # Timeline models
    "TimelineState",
    "TimeRange",
]
