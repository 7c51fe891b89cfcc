"""
Factory for creating LLM providers.
"""

from worldgraph.config import LLMConfig
from worldgraph.core.llm.base import LLMProvider
from worldgraph.core.llm.ollama import OllamaLLM
from worldgraph.core.llm.openai import OpenAILLM
from worldgraph.utils.exceptions import ConfigurationError


class LLMFactory:
    """Factory for creating LLM providers from configuration."""

    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """
        Create LLM provider from configuration.

        Args:
            config: LLM configuration

        Returns:
            LLM provider instance

        Raises:
            ConfigurationError: If provider is not supported or misconfigured
        """
        if config.provider == "ollama":
            return OllamaLLM(
                host=config.base_url,
                model=config.model,
                timeout=config.timeout,
            )
        elif config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required")
            return OpenAILLM(
                api_key=config.api_key,
                model=config.model,
                base_url=config.base_url,
                timeout=config.timeout,
            )
        else:
            raise ConfigurationError(
                f"Unsupported LLM provider: {config.provider}",
                context={"provider": config.provider},
            )
