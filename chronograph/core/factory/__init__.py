"""
Factory modules for creating ChronoGraph components.
"""

from chronograph.core.factory.graph_factory import GraphStoreFactory

__all__ = [
    "GraphStoreFactory",
]
