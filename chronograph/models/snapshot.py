"""Point-in-time graph snapshot models."""

from datetime import datetime

from pydantic import BaseModel, Field

from chronograph.models.edge import Edge
from chronograph.models.node import Node


class TemporalNode(Node):
    """Node as seen at a snapshot timestamp, with display annotations."""

    age_ms: int = 0
    is_new: bool = False
    is_recent: bool = False
    visibility: float = Field(default=1.0, ge=0.0, le=1.0)


class TemporalEdge(Edge):
    """Edge as seen at a snapshot timestamp, with display annotations."""

    age_ms: int = 0
    is_new: bool = False
    current_strength: float = 1.0


class GraphSnapshot(BaseModel):
    """Nodes and edges live at `timestamp`."""

    user_id: str
    timestamp: datetime
    nodes: list[TemporalNode] = Field(default_factory=list)
    edges: list[TemporalEdge] = Field(default_factory=list)

    def node_ids(self) -> set[str]:
        return {node.id for node in self.nodes}

    def edge_ids(self) -> set[str]:
        return {edge.id for edge in self.edges}
