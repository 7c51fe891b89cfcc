"""
Custom exception hierarchy for WorldGraph.

Provides structured error types for the expansion pipeline.
All exceptions inherit from WorldGraphError for easy catching.

Gate rejections (schema, safety, duplication, exit sanity, consistency) are
reported as values on GateResult / ReconnectionCandidate and never raised.
"""


class WorldGraphError(Exception):
    """
    Base exception for all WorldGraph errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize WorldGraph error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StoreError(WorldGraphError):
    """
    Base exception for store operations.
    Used for errors related to data storage operations.
    """

    pass


class GraphStoreError(StoreError):
    """
    Graph store operation errors.
    Raised when graph database operations fail.
    """

    pass


class TransientInfraError(WorldGraphError):
    """
    Transient infrastructure failure that survived bounded retries.
    Raised before anything of the enclosing change reached the store.
    """

    pass


class PartialCommitError(TransientInfraError):
    """
    Store failure between two exit pairs of one commit.
    Pairs written before the failure are complete; the slots after them are still free.
    """

    def __init__(self, message: str, locations: list, exits: list, context: dict | None = None):
        super().__init__(message, context)
        self.locations = locations
        self.exits = exits


class OracleError(WorldGraphError):
    """
    Narrative oracle failures.
    `retryable` separates transient failures from terminal ones.
    """

    retryable: bool = False


class OracleTimeoutError(OracleError):
    """Oracle call exceeded its deadline."""

    retryable = True


class OracleUnavailableError(OracleError):
    """Oracle backend could not be reached or returned a server error."""

    retryable = True


class OracleResponseError(OracleError):
    """Oracle returned a response that could not be parsed."""

    retryable = False


class SafetyClassifierError(WorldGraphError):
    """
    Safety classifier errors.
    Raised when classification itself fails (not when content is rejected).
    """

    pass


class IntegrityViolationError(WorldGraphError):
    """
    Graph invariant violation detected after a write.
    Further commits touching the affected locations are halted until manual repair.
    """

    pass


class BaseDescriptionImmutableError(IntegrityViolationError):
    """Attempt to rewrite the base description of a crystallized location."""

    pass


class StagingError(WorldGraphError):
    """
    Staging misuse, such as committing a handle twice or after discard.
    Always a programming error.
    """

    pass


class DirectionSlotConflictError(WorldGraphError):
    """
    Direction slot already holds an exit to a different destination.
    """

    pass


class ValidationError(WorldGraphError):
    """
    Validation errors.
    Raised when input validation fails or data is invalid.
    """

    pass


class NotFoundError(WorldGraphError):
    """
    Resource not found errors.
    Raised when a requested resource doesn't exist.
    """

    pass


class LocationNotFoundError(NotFoundError):
    """Requested location does not exist in the graph store."""

    pass


class ConfigurationError(WorldGraphError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass


class EmbeddingError(WorldGraphError):
    """
    Embedding generation errors.
    Raised when embedding generation fails.
    """

    pass


class LLMError(WorldGraphError):
    """
    LLM operation errors.
    Raised when LLM operations fail (API errors, timeouts, etc.).
    """

    pass


class LLMTimeoutError(LLMError):
    """LLM request timed out."""

    pass
