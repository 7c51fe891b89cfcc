"""
Factory for creating embedder providers.
"""

from worldgraph.config import EmbedderConfig
from worldgraph.core.embeddings.base import Embedder
from worldgraph.core.embeddings.ollama import OllamaEmbedder
from worldgraph.core.embeddings.openai import OpenAIEmbedder
from worldgraph.utils.exceptions import ConfigurationError


class EmbedderFactory:
    """Factory for creating embedder providers from configuration."""

    @staticmethod
    def create(config: EmbedderConfig) -> Embedder | None:
        """
        Create embedder from configuration.

        Args:
            config: Embedder configuration

        Returns:
            Embedder instance, or None when provider is "none"
            (duplication checks then use TF-IDF similarity)

        Raises:
            ConfigurationError: If provider is not supported
        """
        if config.provider == "none":
            return None
        elif config.provider == "ollama":
            return OllamaEmbedder(
                host=config.base_url,
                model=config.model,
                timeout=config.timeout,
            )
        elif config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required")
            return OpenAIEmbedder(
                api_key=config.api_key,
                model=config.model,
                timeout=config.timeout,
            )
        else:
            raise ConfigurationError(
                f"Unsupported embedder provider: {config.provider}",
                context={"provider": config.provider},
            )
