"""
Factory modules for creating WorldGraph components.

Provides modular factories for LLM, Embedder, Graph Store and Oracle.
"""

from worldgraph.core.factory.embedder_factory import EmbedderFactory
from worldgraph.core.factory.graph_factory import GraphStoreFactory
from worldgraph.core.factory.llm_factory import LLMFactory
from worldgraph.core.factory.oracle_factory import OracleFactory

__all__ = [
    "LLMFactory",
    "EmbedderFactory",
    "GraphStoreFactory",
    "OracleFactory",
]
