"""
OpenAI embedder using official SDK.
"""

from openai import AsyncOpenAI

from worldgraph.core.embeddings.base import Embedder
from worldgraph.utils.exceptions import EmbeddingError, ValidationError
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAIEmbedder(Embedder):
    """
    OpenAI embedder for generating text embeddings.

    Supports models like text-embedding-3-small, text-embedding-3-large, etc.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
    ):
        self.model = model

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for text using OpenAI.

        Raises:
            ValidationError: If text is invalid
            EmbeddingError: If OpenAI API call fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        embeddings = await self.batch_embed([text], **kwargs)
        return embeddings[0]

    async def batch_embed(self, texts: list[str], **kwargs) -> list[list[float]]:
        """
        Batch embed using OpenAI's native batch input.

        Raises:
            EmbeddingError: If batch embedding fails
        """
        if not texts:
            return []

        try:
            response = await self.client.embeddings.create(model=self.model, input=texts, **kwargs)
        except Exception as e:
            logger.error(
                f"OpenAI batch embedding error: {e}",
                extra={"model": self.model, "num_texts": len(texts), "error": str(e)},
            )
            raise EmbeddingError(f"OpenAI batch embedding error: {e}") from e

        if not response.data:
            raise EmbeddingError("OpenAI returned empty batch embedding response")

        return [item.embedding for item in response.data]

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
