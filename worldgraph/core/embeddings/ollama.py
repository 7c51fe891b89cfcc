"""
Ollama embedder using native ollama-python SDK.
"""

import ollama

from worldgraph.core.embeddings.base import Embedder
from worldgraph.utils.exceptions import EmbeddingError, ValidationError
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaEmbedder(Embedder):
    """
    Ollama embedder for generating text embeddings.

    Supports models like nomic-embed-text, mxbai-embed-large, etc.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 60.0,
    ):
        """
        Initialize Ollama embedder.

        Args:
            host: Ollama server URL
            model: Embedding model name
            timeout: Request timeout in seconds
        """
        self.host = host
        self.model = model
        self.timeout = timeout

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for text using Ollama.

        Raises:
            ValidationError: If text is invalid
            EmbeddingError: If Ollama embedding fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        embeddings = await self.batch_embed([text], **kwargs)
        return embeddings[0]

    async def batch_embed(self, texts: list[str], **kwargs) -> list[list[float]]:
        """
        Embed several texts in one request.

        Raises:
            EmbeddingError: If Ollama embedding fails
        """
        if not texts:
            return []

        try:
            response = await self.client.embed(model=self.model, input=texts, **kwargs)
        except Exception as e:
            logger.error(
                f"Ollama embedding error: {e}",
                extra={"model": self.model, "host": self.host, "error": str(e)},
            )
            raise EmbeddingError(f"Ollama embedding error: {e}") from e

        embeddings = response["embeddings"] if response else None
        if not embeddings or len(embeddings) != len(texts):
            raise EmbeddingError(
                "Ollama returned invalid embedding response",
                context={"model": self.model, "expected": len(texts)},
            )
        return [list(e) for e in embeddings]

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
