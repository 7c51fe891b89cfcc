"""
Graph store implementations for WorldGraph.

Provides abstract base and concrete implementations for location/exit storage.

Available backends:
- SQLiteGraphStore: Local file-backed store
- Neo4jGraphStore: Production-grade graph database
"""

from worldgraph.core.graph_store.base import GraphStore
from worldgraph.core.graph_store.neo4j_store import Neo4jGraphStore
from worldgraph.core.graph_store.sqlite_store import SQLiteGraphStore

__all__ = [
    "GraphStore",
    "Neo4jGraphStore",
    "SQLiteGraphStore",
]
