"""
Graph node models with typed, per-type property schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chronograph.utils.timestamps import utc_now


class NodeType(str, Enum):
    """Types of nodes in a user's personal graph."""

    GOAL = "goal"
    SKILL = "skill"
    EMOTION = "emotion"
    SESSION = "session"
    ACCOMPLISHMENT = "accomplishment"
    INSIGHT = "insight"


class NodeStatus(str, Enum):
    """Review status of a node."""

    DRAFT_VERBAL = "draft_verbal"  # mentioned in conversation, unconfirmed
    CURATED = "curated"  # reviewed and confirmed


class SkillLevel(str, Enum):
    """Self-reported skill level."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


# ═══════════════════════════════════════════════════════════
# TYPED PROPERTIES
# ═══════════════════════════════════════════════════════════


class NodeProperties(BaseModel):
    """Base for per-type property schemas. Unknown keys are kept as open metadata."""

    model_config = ConfigDict(extra="allow")


class GoalProperties(NodeProperties):
    category: str | None = None
    target_date: str | None = None
    priority: str | None = None
    progress: float | None = Field(default=None, ge=0.0, le=1.0)


class SkillProperties(NodeProperties):
    level: SkillLevel | None = None
    transferable_from: list[str] = Field(default_factory=list)


class EmotionProperties(NodeProperties):
    intensity: float | None = Field(default=None, ge=0.0, le=1.0)
    context: str | None = None


class SessionProperties(NodeProperties):
    goal_id: str | None = None
    duration_minutes: float | None = Field(default=None, ge=0.0)
    agent_id: str | None = None
    summary: str | None = None
    emotion: str | None = None
    topics: list[str] = Field(default_factory=list)


class AccomplishmentProperties(NodeProperties):
    goal_id: str | None = None
    achieved_at: datetime | None = None


class InsightProperties(NodeProperties):
    source: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


PROPERTY_MODELS: dict[NodeType, type[NodeProperties]] = {
    NodeType.GOAL: GoalProperties,
    NodeType.SKILL: SkillProperties,
    NodeType.EMOTION: EmotionProperties,
    NodeType.SESSION: SessionProperties,
    NodeType.ACCOMPLISHMENT: AccomplishmentProperties,
    NodeType.INSIGHT: InsightProperties,
}


def validate_properties(node_type: NodeType, properties: dict[str, Any] | None) -> dict[str, Any]:
    """
    Validate a property map against the schema for its node type.

    Args:
        node_type: Node type selecting the schema
        properties: Raw property map

    Returns:
        Normalized property map (unset optional fields dropped, extra keys kept)

    Raises:
        pydantic.ValidationError: If a known key has an invalid value
    """
    model = PROPERTY_MODELS.get(node_type, NodeProperties)
    parsed = model.model_validate(properties or {})
    return parsed.model_dump(mode="json", exclude_none=True, exclude_defaults=True)


# ═══════════════════════════════════════════════════════════
# NODE
# ═══════════════════════════════════════════════════════════


class Node(BaseModel):
    """
    A typed vertex in a user's personal graph.

    Nodes are soft-deleted via `deleted_at` and never removed, so every
    event referencing them stays resolvable.
    """

    id: str = Field(..., description="Unique node ID (node_xxx)")
    user_id: str = Field(..., description="Owner user ID")
    node_type: NodeType
    label: str
    description: str | None = None
    status: NodeStatus = NodeStatus.DRAFT_VERBAL
    properties: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    first_mentioned_at: datetime = Field(default_factory=utc_now)
    last_discussed_at: datetime = Field(default_factory=utc_now)
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def typed_properties(self) -> NodeProperties:
        """Typed view of `properties` for this node's type."""
        model = PROPERTY_MODELS.get(self.node_type, NodeProperties)
        return model.model_validate(self.properties)

    def to_state(self) -> dict[str, Any]:
        """JSON-safe dump used as event state. Embeddings are owned elsewhere and left out."""
        return self.model_dump(mode="json", exclude={"embedding"})


class NodeCreate(BaseModel):
    """Input for creating a node."""

    node_type: NodeType
    label: str = Field(..., min_length=1)
    description: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)
    status: NodeStatus = NodeStatus.DRAFT_VERBAL

    @field_validator("label")
    @classmethod
    def _strip_label(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("label cannot be blank")
        return value


class NodeUpdate(BaseModel):
    """Partial update for a node. Status changes go through the status lifecycle."""

    model_config = ConfigDict(extra="forbid")

    node_type: NodeType | None = None
    label: str | None = Field(default=None, min_length=1)
    description: str | None = None
    properties: dict[str, Any] | None = None


class Session(BaseModel):
    """A coaching session, backed by a node of type `session`."""

    id: str
    user_id: str
    label: str
    created_at: datetime
    updated_at: datetime
    properties: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_node(cls, node: Node) -> "Session":
        if node.node_type != NodeType.SESSION:
            raise ValueError(f"Node {node.id} is not a session node")
        return cls(
            id=node.id,
            user_id=node.user_id,
            label=node.label,
            created_at=node.created_at,
            updated_at=node.updated_at,
            properties=node.properties,
        )
