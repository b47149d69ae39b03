"""
Graph store implementations for ChronoGraph.

Provides abstract base and concrete implementations for graph storage.

Available backends:
- SQLiteGraphStore: Local single-file store with transactional event logging
"""

from chronograph.core.graph_store.base import GraphStore
from chronograph.core.graph_store.sqlite_store import SQLiteGraphStore

__all__ = [
    "GraphStore",
    "SQLiteGraphStore",
]
