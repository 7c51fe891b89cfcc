"""
Abstract base class for embedding providers.
Used by the duplication gate to compare location descriptions.
"""

from abc import ABC, abstractmethod


class Embedder(ABC):
    """
    Abstract base for embedding providers.

    Responsibilities:
    - Generate vector embeddings for text
    - Batch processing for efficiency
    """

    @abstractmethod
    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding vector for text.

        Args:
            text: Text to embed
            **kwargs: Provider-specific parameters

        Returns:
            List of floats representing the embedding vector

        Raises:
            ValidationError: If text is invalid
            EmbeddingError: If embedding generation fails
        """
        pass

    async def batch_embed(self, texts: list[str], **kwargs) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Default implementation processes sequentially.
        Override for provider-specific batch optimization.

        Returns:
            List of embedding vectors (same order as input texts)
        """
        embeddings = []
        for text in texts:
            embeddings.append(await self.embed(text, **kwargs))
        return embeddings

    @abstractmethod
    async def close(self):
        """Close any open connections."""
        pass
