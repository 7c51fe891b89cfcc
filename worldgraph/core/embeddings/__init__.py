"""
Embedding providers used for description similarity.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""

from worldgraph.core.embeddings.base import Embedder
from worldgraph.core.embeddings.ollama import OllamaEmbedder
from worldgraph.core.embeddings.openai import OpenAIEmbedder

__all__ = [
    "Embedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
]
