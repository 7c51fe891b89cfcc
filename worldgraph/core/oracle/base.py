"""
Abstract base class for narrative oracles.

An oracle turns a batch of stubs into candidate prose. Its output is
untrusted: names, terrain and exit hints all pass through the exit
inferencer and the validation gates before anything is committed.
"""

from abc import ABC, abstractmethod

from worldgraph.models.generation import BatchRequest, BatchResponse
from worldgraph.models.reconnection import ConsistencyAssessment, ConsistencyRequest


class NarrativeOracle(ABC):
    """Abstract base for narrative text generators."""

    @abstractmethod
    async def generate_batch(self, request: BatchRequest, deadline: float) -> BatchResponse:
        """
        Describe every stub in the request with a single call.

        Args:
            request: Batch of stubs with terrain and parent context
            deadline: Seconds the call may take

        Returns:
            Raw BatchResponse, one StubDescription per stub when successful

        Raises:
            OracleTimeoutError: Deadline exceeded (retryable)
            OracleUnavailableError: Backend unreachable (retryable)
            OracleResponseError: Unusable response (terminal)
        """
        pass

    @abstractmethod
    async def assess_consistency(
        self, request: ConsistencyRequest, deadline: float
    ) -> ConsistencyAssessment:
        """
        Judge whether a new exit between two locations fits both descriptions.

        Args:
            request: Source, target and direction of the proposed exit
            deadline: Seconds the call may take

        Returns:
            ConsistencyAssessment (consistent, contradictory or ambiguous)

        Raises:
            OracleError: If the judgement cannot be obtained
        """
        pass

    async def close(self) -> None:
        """Release provider resources."""
        pass
