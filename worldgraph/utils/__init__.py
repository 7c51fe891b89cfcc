"""Utility modules for WorldGraph."""

from worldgraph.utils.exceptions import (
    BaseDescriptionImmutableError,
    ConfigurationError,
    DirectionSlotConflictError,
    EmbeddingError,
    GraphStoreError,
    IntegrityViolationError,
    LLMError,
    LLMTimeoutError,
    LocationNotFoundError,
    NotFoundError,
    OracleError,
    OracleResponseError,
    OracleTimeoutError,
    OracleUnavailableError,
    PartialCommitError,
    SafetyClassifierError,
    StagingError,
    StoreError,
    TransientInfraError,
    ValidationError,
    WorldGraphError,
)
from worldgraph.utils.id_generator import (
    generate_batch_id,
    generate_candidate_id,
    generate_location_id,
    generate_staging_id,
)
from worldgraph.utils.locks import KeyedLock
from worldgraph.utils.logger import get_logger, setup_logging
from worldgraph.utils.retry import retry_operation

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_location_id",
    "generate_batch_id",
    "generate_staging_id",
    "generate_candidate_id",
    # Concurrency helpers
    "KeyedLock",
    "retry_operation",
    # Exceptions
    "WorldGraphError",
    "StoreError",
    "GraphStoreError",
    "TransientInfraError",
    "PartialCommitError",
    "OracleError",
    "OracleTimeoutError",
    "OracleUnavailableError",
    "OracleResponseError",
    "SafetyClassifierError",
    "IntegrityViolationError",
    "BaseDescriptionImmutableError",
    "StagingError",
    "DirectionSlotConflictError",
    "ValidationError",
    "NotFoundError",
    "LocationNotFoundError",
    "ConfigurationError",
    "EmbeddingError",
    "LLMError",
    "LLMTimeoutError",
]
