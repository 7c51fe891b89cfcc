"""
Configuration for WorldGraph.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """LLM provider configuration (narrative oracle and LLM safety classifier)."""

    provider: str = "ollama"  # ollama, openai
    model: str = "llama3.1:8b"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    temperature: float = 0.7
    max_tokens: int = 4000
    timeout: float = 30.0


class EmbedderConfig(BaseModel):
    """Embedder configuration. Provider "none" falls back to TF-IDF similarity."""

    provider: str = "none"  # none, ollama, openai
    model: str = "nomic-embed-text"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    timeout: float = 60.0
    dimension: int | None = None


class SafetyConfig(BaseModel):
    """Safety classifier configuration."""

    provider: str = "pattern"  # pattern, llm
    blocked_patterns: list[str] = Field(
        default_factory=lambda: [
            r"\b(?:gore|mutilat\w*|dismember\w*)\b",
            r"\b(?:torture chamber|sexual)\b",
        ]
    )


class ExpansionConfig(BaseModel):
    """Expansion orchestration limits."""

    max_depth: int = 2
    max_batch_size: int = 20
    oracle_deadline_seconds: float = 10.0
    oracle_max_attempts: int = 2
    oracle_retry_delay: float = 1.0
    default_travel_duration: float = 60.0
    reconnect_after_commit: bool = True


class InferenceConfig(BaseModel):
    """Exit inference thresholds."""

    confidence_threshold: float = 0.5


class ValidationConfig(BaseModel):
    """Validation gate thresholds."""

    similarity_threshold: float = 0.9
    duplication_neighbor_hops: int = 2
    min_description_length: int = 20
    max_description_length: int = 2000
    max_name_length: int = 120


class ReconnectionConfig(BaseModel):
    """Travel-time-bounded reconnection search."""

    enabled: bool = True
    max_hops: int = 4
    tolerance_factor: float = 2.0
    ambiguous_policy: str = "reject"  # reject, accept
    max_per_location: int = 1
    consistency_checker: str = "heuristic"  # heuristic, oracle
    consistency_deadline_seconds: float = 10.0


class ConcurrencyConfig(BaseModel):
    """Worker pool and store retry settings."""

    max_workers: int = 4
    store_max_retries: int = 3
    store_retry_delay: float = 0.5


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class SQLiteConfig(BaseModel):
    """SQLite graph store configuration."""

    db_path: str = "data/worldgraph.db"


class Neo4jConfig(BaseModel):
    """Neo4j graph database configuration."""

    uri: str = "bolt://localhost:7687"
    username: str = "neo4j"
    password: str = "password"
    database: str = "neo4j"


class Config(BaseModel):
    """Main configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)
    expansion: ExpansionConfig = Field(default_factory=ExpansionConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    reconnection: ReconnectionConfig = Field(default_factory=ReconnectionConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sqlite: SQLiteConfig = Field(default_factory=SQLiteConfig)
    neo4j: Neo4jConfig = Field(default_factory=Neo4jConfig)

    # Graph store backend
    graph_backend: str = "sqlite"  # sqlite, neo4j

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            WORLDGRAPH_LLM_PROVIDER: LLM provider (ollama, openai)
            WORLDGRAPH_LLM_MODEL: LLM model name
            WORLDGRAPH_LLM_BASE_URL: LLM base URL
            WORLDGRAPH_LLM_API_KEY: LLM API key (for OpenAI)
            WORLDGRAPH_EMBEDDER_PROVIDER: Embedder provider (none, ollama, openai)
            WORLDGRAPH_SAFETY_PROVIDER: Safety classifier (pattern, llm)
            WORLDGRAPH_EXPANSION_MAX_DEPTH: Expansion depth cap
            WORLDGRAPH_EXPANSION_MAX_BATCH_SIZE: Stubs per batch cap
            WORLDGRAPH_ORACLE_DEADLINE_SECONDS: Oracle deadline
            WORLDGRAPH_SIMILARITY_THRESHOLD: Duplication threshold
            WORLDGRAPH_RECONNECTION_MAX_HOPS: Reconnection search radius
            WORLDGRAPH_RECONNECTION_TOLERANCE: Duration tolerance factor
            WORLDGRAPH_MAX_WORKERS: Worker pool size
            WORLDGRAPH_GRAPH_BACKEND: Graph backend (sqlite, neo4j)
            WORLDGRAPH_SQLITE_PATH: SQLite database file
            WORLDGRAPH_NEO4J_URI: Neo4j URI
            WORLDGRAPH_NEO4J_USERNAME: Neo4j username
            WORLDGRAPH_NEO4J_PASSWORD: Neo4j password
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None or value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            llm=LLMConfig(
                provider=get_env("WORLDGRAPH_LLM_PROVIDER", "ollama"),
                model=get_env("WORLDGRAPH_LLM_MODEL", "llama3.1:8b"),
                base_url=get_env("WORLDGRAPH_LLM_BASE_URL", "http://localhost:11434"),
                api_key=get_env("WORLDGRAPH_LLM_API_KEY"),
                temperature=get_env("WORLDGRAPH_LLM_TEMPERATURE", 0.7),
                max_tokens=get_env("WORLDGRAPH_LLM_MAX_TOKENS", 4000),
                timeout=get_env("WORLDGRAPH_LLM_TIMEOUT", 30.0),
            ),
            embedder=EmbedderConfig(
                provider=get_env("WORLDGRAPH_EMBEDDER_PROVIDER", "none"),
                model=get_env("WORLDGRAPH_EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("WORLDGRAPH_EMBEDDER_BASE_URL", "http://localhost:11434"),
                api_key=get_env("WORLDGRAPH_EMBEDDER_API_KEY"),
                timeout=get_env("WORLDGRAPH_EMBEDDER_TIMEOUT", 60.0),
                dimension=get_env("WORLDGRAPH_EMBEDDER_DIMENSION"),
            ),
            safety=SafetyConfig(
                provider=get_env("WORLDGRAPH_SAFETY_PROVIDER", "pattern"),
            ),
            expansion=ExpansionConfig(
                max_depth=get_env("WORLDGRAPH_EXPANSION_MAX_DEPTH", 2),
                max_batch_size=get_env("WORLDGRAPH_EXPANSION_MAX_BATCH_SIZE", 20),
                oracle_deadline_seconds=get_env("WORLDGRAPH_ORACLE_DEADLINE_SECONDS", 10.0),
                oracle_max_attempts=get_env("WORLDGRAPH_ORACLE_MAX_ATTEMPTS", 2),
                default_travel_duration=get_env("WORLDGRAPH_DEFAULT_TRAVEL_DURATION", 60.0),
                reconnect_after_commit=get_env("WORLDGRAPH_RECONNECT_AFTER_COMMIT", True),
            ),
            inference=InferenceConfig(
                confidence_threshold=get_env("WORLDGRAPH_EXIT_CONFIDENCE_THRESHOLD", 0.5),
            ),
            validation=ValidationConfig(
                similarity_threshold=get_env("WORLDGRAPH_SIMILARITY_THRESHOLD", 0.9),
                duplication_neighbor_hops=get_env("WORLDGRAPH_DUPLICATION_NEIGHBOR_HOPS", 2),
            ),
            reconnection=ReconnectionConfig(
                enabled=get_env("WORLDGRAPH_RECONNECTION_ENABLED", True),
                max_hops=get_env("WORLDGRAPH_RECONNECTION_MAX_HOPS", 4),
                tolerance_factor=get_env("WORLDGRAPH_RECONNECTION_TOLERANCE", 2.0),
                ambiguous_policy=get_env("WORLDGRAPH_RECONNECTION_AMBIGUOUS_POLICY", "reject"),
                max_per_location=get_env("WORLDGRAPH_RECONNECTION_MAX_PER_LOCATION", 1),
                consistency_checker=get_env("WORLDGRAPH_CONSISTENCY_CHECKER", "heuristic"),
            ),
            concurrency=ConcurrencyConfig(
                max_workers=get_env("WORLDGRAPH_MAX_WORKERS", 4),
                store_max_retries=get_env("WORLDGRAPH_STORE_MAX_RETRIES", 3),
                store_retry_delay=get_env("WORLDGRAPH_STORE_RETRY_DELAY", 0.5),
            ),
            graph_backend=get_env("WORLDGRAPH_GRAPH_BACKEND", "sqlite"),
            sqlite=SQLiteConfig(
                db_path=get_env("WORLDGRAPH_SQLITE_PATH", "data/worldgraph.db"),
            ),
            neo4j=Neo4jConfig(
                uri=get_env("WORLDGRAPH_NEO4J_URI", "bolt://localhost:7687"),
                username=get_env("WORLDGRAPH_NEO4J_USERNAME", "neo4j"),
                password=get_env("WORLDGRAPH_NEO4J_PASSWORD", "password"),
                database=get_env("WORLDGRAPH_NEO4J_DATABASE", "neo4j"),
            ),
            logging=LoggingConfig(
                level=get_env("WORLDGRAPH_LOG_LEVEL", "INFO"),
                log_to_file=get_env("WORLDGRAPH_LOG_TO_FILE", False),
                log_dir=get_env("WORLDGRAPH_LOG_DIR", "logs"),
                file_rotation=get_env("WORLDGRAPH_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("WORLDGRAPH_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("WORLDGRAPH_LOG_COMPRESSION", "zip"),
                serialize=get_env("WORLDGRAPH_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file)

        # Sections whose env values differ from defaults override YAML
        default = cls()
        final_dict = {**config_dict}
        for section in (
            "llm",
            "embedder",
            "safety",
            "expansion",
            "inference",
            "validation",
            "reconnection",
            "concurrency",
            "sqlite",
            "neo4j",
            "logging",
        ):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        if env_config.graph_backend != default.graph_backend:
            final_dict["graph_backend"] = env_config.graph_backend

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
