"""
Consistency checks for proposed reconnection exits.

A checker judges whether a new exit between two existing locations fits
what both descriptions already say. Verdicts are values; only a failure to
obtain a judgement is an exception.
"""

import asyncio
from abc import ABC, abstractmethod

from worldgraph.core.oracle.base import NarrativeOracle
from worldgraph.models.direction import Direction
from worldgraph.models.location import Location, TerrainType
from worldgraph.models.reconnection import (
    ConsistencyAssessment,
    ConsistencyRequest,
    ConsistencyVerdict,
)
from worldgraph.services.exit_inferencer import ExitInferencer
from worldgraph.utils.exceptions import OracleTimeoutError
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)

# Terrain pairs that rarely share a border; the link is plausible but unproven
_UNLIKELY_BORDERS: set[frozenset[TerrainType]] = {
    frozenset({TerrainType.NARROW_CORRIDOR, TerrainType.RIVERBANK}),
    frozenset({TerrainType.NARROW_CORRIDOR, TerrainType.OPEN_PLAIN}),
}


class ConsistencyChecker(ABC):
    """Abstract base for reconnection consistency checks."""

    @abstractmethod
    async def check(self, request: ConsistencyRequest) -> ConsistencyAssessment:
        """
        Judge a proposed exit.

        Args:
            request: Source, target and the direction from source to target

        Returns:
            ConsistencyAssessment
        """
        pass


class HeuristicConsistencyChecker(ConsistencyChecker):
    """
    Rule-based checker that never calls out of process.

    Contradictory when either description rules out its side of the exit,
    or when the vertical direction disagrees with the terrain. Ambiguous when
    the two terrains rarely border each other.
    """

    def __init__(self, inferencer: ExitInferencer | None = None):
        self.inferencer = inferencer or ExitInferencer()

    async def check(self, request: ConsistencyRequest) -> ConsistencyAssessment:
        source, target, direction = request.source, request.target, request.direction
        back = direction.opposite

        if direction in source.forbidden_exits or direction in self._blocked(source):
            return ConsistencyAssessment(
                verdict=ConsistencyVerdict.CONTRADICTORY,
                reason=f"{source.id} rules out {direction.value}",
            )
        if back in target.forbidden_exits or back in self._blocked(target):
            return ConsistencyAssessment(
                verdict=ConsistencyVerdict.CONTRADICTORY,
                reason=f"{target.id} rules out {back.value}",
            )

        if direction == Direction.UP and source.terrain == TerrainType.HILLTOP:
            return ConsistencyAssessment(
                verdict=ConsistencyVerdict.CONTRADICTORY,
                reason="nothing lies above a hilltop",
            )
        if direction == Direction.DOWN and target.terrain == TerrainType.HILLTOP:
            return ConsistencyAssessment(
                verdict=ConsistencyVerdict.CONTRADICTORY,
                reason="cannot descend onto a hilltop",
            )

        if frozenset({source.terrain, target.terrain}) in _UNLIKELY_BORDERS:
            return ConsistencyAssessment(
                verdict=ConsistencyVerdict.AMBIGUOUS,
                reason=f"{source.terrain.value} rarely borders {target.terrain.value}",
            )

        return ConsistencyAssessment(verdict=ConsistencyVerdict.CONSISTENT)

    def _blocked(self, location: Location) -> list[Direction]:
        return self.inferencer.find_blocked(location.base_description)


class OracleConsistencyChecker(ConsistencyChecker):
    """Delegates the judgement to the narrative oracle."""

    def __init__(self, oracle: NarrativeOracle, deadline: float = 10.0):
        """
        Args:
            oracle: Oracle asked for the verdict
            deadline: Seconds one judgement may take
        """
        self.oracle = oracle
        self.deadline = deadline

    async def check(self, request: ConsistencyRequest) -> ConsistencyAssessment:
        try:
            return await asyncio.wait_for(
                self.oracle.assess_consistency(request, self.deadline),
                timeout=self.deadline,
            )
        except asyncio.TimeoutError as e:
            raise OracleTimeoutError(
                f"Consistency check exceeded {self.deadline}s",
                context={
                    "source_id": request.source.id,
                    "target_id": request.target.id,
                    "direction": request.direction.value,
                },
            ) from e
