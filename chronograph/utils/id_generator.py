"""
ID generation utilities for ChronoGraph.

Provides consistent ID generation for all entity types:
- Nodes: node_xxx
- Edges: edge_xxx
- Events: evt_xxx
"""

from uuid import uuid4


def generate_node_id() -> str:
    """
    Generate unique Node ID.

    Returns:
        ID in format "node_xxx" where xxx is 12 hex characters
    """
    return f"node_{uuid4().hex[:12]}"


def generate_edge_id() -> str:
    """
    Generate unique Edge ID.

    Returns:
        ID in format "edge_xxx" where xxx is 12 hex characters
    """
    return f"edge_{uuid4().hex[:12]}"


def generate_event_id() -> str:
    """
    Generate unique Event ID.

    Event IDs use the full UUID since the log grows without bound.

    Returns:
        ID in format "evt_xxx" where xxx is 32 hex characters
    """
    return f"evt_{uuid4().hex}"
