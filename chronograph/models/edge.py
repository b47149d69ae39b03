"""Graph edge models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from chronograph.utils.timestamps import utc_now


class EdgeType(str, Enum):
    """Types of relationships between nodes."""

    WORKS_ON = "works_on"
    HAS_SKILL = "has_skill"
    DERIVED_FROM = "derived_from"
    FEELS = "feels"
    ACHIEVES = "achieves"
    RELATES_TO = "relates_to"
    DISCUSSED_IN = "discussed_in"


class Edge(BaseModel):
    """
    Directed, weighted relationship between two nodes of the same user.

    Edges are invalidated via `valid_to` rather than removed.
    """

    id: str = Field(..., description="Unique edge ID (edge_xxx)")
    user_id: str
    edge_type: EdgeType
    source_node_id: str
    target_node_id: str
    label: str | None = None
    weight: float = Field(default=1.0, ge=0.0)
    properties: dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    discovered_at: datetime = Field(default_factory=utc_now)
    last_reinforced_at: datetime = Field(default_factory=utc_now)
    valid_to: datetime | None = None

    @property
    def is_valid(self) -> bool:
        return self.valid_to is None

    def to_state(self) -> dict[str, Any]:
        """JSON-safe dump used as event state."""
        return self.model_dump(mode="json")


class EdgeCreate(BaseModel):
    """Input for creating an edge."""

    edge_type: EdgeType
    source_node_id: str = Field(..., min_length=1)
    target_node_id: str = Field(..., min_length=1)
    label: str | None = None
    weight: float = Field(default=1.0, ge=0.0)
    properties: dict[str, Any] = Field(default_factory=dict)


class EdgeUpdate(BaseModel):
    """Partial update for an edge. Endpoints are immutable."""

    model_config = ConfigDict(extra="forbid")

    edge_type: EdgeType | None = None
    label: str | None = None
    weight: float | None = Field(default=None, ge=0.0)
    properties: dict[str, Any] | None = None
