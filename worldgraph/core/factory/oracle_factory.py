"""
Factory for creating narrative oracles and safety classifiers.
"""

from worldgraph.config import Config
from worldgraph.core.factory.llm_factory import LLMFactory
from worldgraph.core.llm.base import LLMProvider
from worldgraph.core.oracle.base import NarrativeOracle
from worldgraph.core.oracle.llm_oracle import LLMNarrativeOracle
from worldgraph.core.safety.base import SafetyClassifier
from worldgraph.core.safety.llm_classifier import LLMSafetyClassifier
from worldgraph.core.safety.pattern import PatternSafetyClassifier
from worldgraph.utils.exceptions import ConfigurationError


class OracleFactory:
    """Factory for LLM-backed components."""

    @staticmethod
    def create(config: Config, llm: LLMProvider | None = None) -> NarrativeOracle:
        """
        Create the narrative oracle.

        Args:
            config: Main configuration object
            llm: Optional provider to reuse; built from config.llm otherwise

        Returns:
            NarrativeOracle instance
        """
        return LLMNarrativeOracle(
            llm=llm or LLMFactory.create(config.llm),
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
        )

    @staticmethod
    def create_safety_classifier(
        config: Config, llm: LLMProvider | None = None
    ) -> SafetyClassifier:
        """
        Create the safety classifier.

        Raises:
            ConfigurationError: If the provider is not supported
        """
        if config.safety.provider == "pattern":
            return PatternSafetyClassifier(config.safety.blocked_patterns)
        elif config.safety.provider == "llm":
            return LLMSafetyClassifier(llm or LLMFactory.create(config.llm))
        else:
            raise ConfigurationError(
                f"Unsupported safety provider: {config.safety.provider}",
                context={"provider": config.safety.provider},
            )
