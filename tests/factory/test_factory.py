"""
Tests for factory classes.

Tests the creation of components using factories.
"""

import pytest

from worldgraph.config import EmbedderConfig, LLMConfig
from worldgraph.core.embeddings.ollama import OllamaEmbedder
from worldgraph.core.embeddings.openai import OpenAIEmbedder
from worldgraph.core.factory import EmbedderFactory, GraphStoreFactory, LLMFactory, OracleFactory
from worldgraph.core.graph_store.neo4j_store import Neo4jGraphStore
from worldgraph.core.graph_store.sqlite_store import SQLiteGraphStore
from worldgraph.core.llm.base import LLMProvider
from worldgraph.core.llm.ollama import OllamaLLM
from worldgraph.core.llm.openai import OpenAILLM
from worldgraph.core.oracle.llm_oracle import LLMNarrativeOracle
from worldgraph.core.safety.llm_classifier import LLMSafetyClassifier
from worldgraph.core.safety.pattern import PatternSafetyClassifier
from worldgraph.utils.exceptions import ConfigurationError


class TestLLMFactory:
    """Test LLM factory."""

    def test_create_ollama_llm(self):
        config = LLMConfig(provider="ollama", model="llama3.1:8b", timeout=12.0)

        llm = LLMFactory.create(config)

        assert isinstance(llm, OllamaLLM)
        assert isinstance(llm, LLMProvider)
        assert llm.model == "llama3.1:8b"
        assert llm.timeout == 12.0

    def test_create_openai_llm(self):
        config = LLMConfig(
            provider="openai",
            model="gpt-4o-mini",
            api_key="sk-test-key",
            base_url="https://api.openai.com/v1",
        )

        llm = LLMFactory.create(config)

        assert isinstance(llm, OpenAILLM)
        assert llm.model == "gpt-4o-mini"

    def test_create_openai_without_api_key_raises_error(self):
        config = LLMConfig(provider="openai", model="gpt-4o", api_key=None)

        with pytest.raises(ConfigurationError, match="API key is required"):
            LLMFactory.create(config)

    def test_unsupported_provider(self):
        with pytest.raises(ConfigurationError, match="Unsupported LLM provider"):
            LLMFactory.create(LLMConfig(provider="llamafile"))


class TestEmbedderFactory:
    """Test embedder factory."""

    def test_none_provider(self):
        assert EmbedderFactory.create(EmbedderConfig()) is None

    def test_create_ollama_embedder(self):
        embedder = EmbedderFactory.create(
            EmbedderConfig(provider="ollama", model="mxbai-embed-large")
        )

        assert isinstance(embedder, OllamaEmbedder)
        assert embedder.model == "mxbai-embed-large"

    def test_create_openai_embedder(self):
        embedder = EmbedderFactory.create(
            EmbedderConfig(provider="openai", model="text-embedding-3-small", api_key="sk-test")
        )

        assert isinstance(embedder, OpenAIEmbedder)

    def test_openai_embedder_requires_key(self):
        with pytest.raises(ConfigurationError):
            EmbedderFactory.create(EmbedderConfig(provider="openai"))

    def test_unsupported_provider(self):
        with pytest.raises(ConfigurationError, match="Unsupported embedder provider"):
            EmbedderFactory.create(EmbedderConfig(provider="word2vec"))


class TestGraphStoreFactory:
    """Test graph store factory."""

    def test_create_sqlite(self, config):
        store = GraphStoreFactory.create(config)

        assert isinstance(store, SQLiteGraphStore)
        assert store.db_path == config.sqlite.db_path

    def test_create_neo4j(self, config):
        config.graph_backend = "neo4j"
        config.neo4j.uri = "bolt://graph:7687"

        store = GraphStoreFactory.create(config)

        assert isinstance(store, Neo4jGraphStore)
        assert store.uri == "bolt://graph:7687"

    def test_unsupported_backend(self, config):
        config.graph_backend = "networkx"

        with pytest.raises(ConfigurationError, match="Unsupported graph backend"):
            GraphStoreFactory.create(config)


class TestOracleFactory:
    """Test oracle and safety classifier factory."""

    def test_create_oracle(self, config):
        config.llm.temperature = 0.2

        oracle = OracleFactory.create(config)

        assert isinstance(oracle, LLMNarrativeOracle)
        assert isinstance(oracle.llm, OllamaLLM)
        assert oracle.temperature == 0.2

    def test_create_oracle_reuses_llm(self, config):
        llm = OllamaLLM(model="qwen2.5:7b")

        oracle = OracleFactory.create(config, llm=llm)

        assert oracle.llm is llm

    def test_pattern_safety(self, config):
        classifier = OracleFactory.create_safety_classifier(config)

        assert isinstance(classifier, PatternSafetyClassifier)
        assert len(classifier.patterns) == len(config.safety.blocked_patterns)

    def test_llm_safety(self, config):
        config.safety.provider = "llm"

        classifier = OracleFactory.create_safety_classifier(config)

        assert isinstance(classifier, LLMSafetyClassifier)

    def test_unsupported_safety_provider(self, config):
        config.safety.provider = "vibes"

        with pytest.raises(ConfigurationError):
            OracleFactory.create_safety_classifier(config)
