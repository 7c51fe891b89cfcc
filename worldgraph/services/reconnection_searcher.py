"""
Reconnection search.

After a location crystallizes, nearby locations that are reachable only by
a detour become candidates for a direct exit. Each candidate walks a fixed
lifecycle: proposed -> duration_checked -> consistency_checked -> committed,
and can be discarded at any step before commit.
"""

import time

from worldgraph.core.graph_store.base import GraphStore
from worldgraph.models.direction import Direction, direction_order
from worldgraph.models.exit import Exit
from worldgraph.models.location import Location
from worldgraph.models.reconnection import (
    CandidateState,
    ConsistencyRequest,
    ConsistencyVerdict,
    ReconnectionCandidate,
    ReconnectionReport,
)
from worldgraph.models.signals import ReconnectionSignal
from worldgraph.services.consistency import ConsistencyChecker, HeuristicConsistencyChecker
from worldgraph.services.observability import ObservabilitySink
from worldgraph.services.staging_area import StagingArea
from worldgraph.utils.exceptions import (
    DirectionSlotConflictError,
    LocationNotFoundError,
    OracleError,
)
from worldgraph.utils.id_generator import generate_candidate_id
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)


class ReconnectionSearcher:
    """
    Finds and commits shortcut exits around a new location.

    The graph carries no coordinates: a shortcut direction must already be
    hinted by the new location's description (a pending exit) and its
    opposite slot on the target must be free.
    """

    def __init__(
        self,
        graph_store: GraphStore,
        staging_area: StagingArea,
        checker: ConsistencyChecker | None = None,
        sink: ObservabilitySink | None = None,
        max_hops: int = 4,
        tolerance_factor: float = 2.0,
        ambiguous_policy: str = "reject",
        max_per_location: int = 1,
    ):
        """
        Args:
            graph_store: Graph to search
            staging_area: Only path for committing new exits
            checker: Consistency checker (heuristic by default)
            sink: Receives one ReconnectionSignal per pass
            max_hops: Search radius
            tolerance_factor: Allowed detour ratio for the duration gate
            ambiguous_policy: "reject" or "accept" for ambiguous verdicts
            max_per_location: Commits allowed per pass
        """
        self.graph_store = graph_store
        self.staging_area = staging_area
        self.checker = checker or HeuristicConsistencyChecker()
        self.sink = sink
        self.max_hops = max_hops
        self.tolerance_factor = tolerance_factor
        self.ambiguous_policy = ambiguous_policy
        self.max_per_location = max_per_location

    # ═══════════════════════════════════════════════════════════
    # SEARCH
    # ═══════════════════════════════════════════════════════════

    async def search_reconnection(
        self, new_location_id: str, max_hops: int | None = None
    ) -> list[ReconnectionCandidate]:
        """
        Propose candidates around a location.

        Only crystallized locations at two or more hops that are not already
        directly connected qualify. For each, the minimum hop count is kept,
        with the lowest accumulated duration among paths of that length.

        Args:
            new_location_id: Location to search around
            max_hops: Search radius (defaults to the configured one)

        Returns:
            Proposed candidates sorted by (hops, duration, id)

        Raises:
            LocationNotFoundError: If the location does not exist
        """
        max_hops = self.max_hops if max_hops is None else max_hops
        source = await self.graph_store.get_location(new_location_id)
        if source is None:
            raise LocationNotFoundError(
                f"Location not found: {new_location_id}",
                context={"location_id": new_location_id},
            )
        if not source.is_crystallized or max_hops < 2:
            return []

        direct_exits = await self.graph_store.get_exits(new_location_id)
        if not direct_exits:
            return []
        original_duration = min(e.travel_duration for e in direct_exits)
        direct_ids = {e.destination_id for e in direct_exits}

        locations, exits = await self.graph_store.neighbors(new_location_id, max_hops)
        by_id = {location.id: location for location in locations}
        distances = self._shortest_paths(new_location_id, exits, max_hops)

        candidates = [
            ReconnectionCandidate(
                candidate_id=generate_candidate_id(),
                source_id=new_location_id,
                target_id=target_id,
                hops=hops,
                candidate_duration=duration,
                original_duration=original_duration,
                tolerance_factor=self.tolerance_factor,
            )
            for target_id, (hops, duration) in distances.items()
            if hops >= 2
            and target_id not in direct_ids
            and target_id in by_id
            and by_id[target_id].is_crystallized
        ]
        candidates.sort(key=lambda c: (c.hops, c.candidate_duration, c.target_id))

        logger.debug(
            f"{len(candidates)} reconnection candidates within {max_hops} hops of {new_location_id}",
            extra={"location_id": new_location_id, "max_hops": max_hops},
        )
        return candidates

    @staticmethod
    def _shortest_paths(
        start_id: str, exits: list[Exit], max_hops: int
    ) -> dict[str, tuple[int, float]]:
        """Breadth-first (hops, duration) per reachable location, start excluded."""
        adjacency: dict[str, list[Exit]] = {}
        for exit in exits:
            adjacency.setdefault(exit.origin_id, []).append(exit)

        best: dict[str, tuple[int, float]] = {start_id: (0, 0.0)}
        frontier = [start_id]
        for hop in range(1, max_hops + 1):
            reached: dict[str, float] = {}
            for origin_id in frontier:
                base = best[origin_id][1]
                for exit in adjacency.get(origin_id, []):
                    target = exit.destination_id
                    if target in best:
                        continue
                    duration = base + exit.travel_duration
                    if target not in reached or duration < reached[target]:
                        reached[target] = duration
            for target, duration in reached.items():
                best[target] = (hop, duration)
            frontier = sorted(reached)
            if not frontier:
                break

        best.pop(start_id)
        return best

    # ═══════════════════════════════════════════════════════════
    # RECONNECT
    # ═══════════════════════════════════════════════════════════

    async def reconnect(self, new_location_id: str) -> ReconnectionReport:
        """
        Search, gate and commit reconnections for one location.

        Raises:
            LocationNotFoundError: If the location does not exist
            IntegrityViolationError: If a committed pair cannot be confirmed
            TransientInfraError: If the store keeps failing
        """
        start = time.perf_counter()
        candidates = await self.search_reconnection(new_location_id)
        report = ReconnectionReport(location_id=new_location_id, candidates=candidates)

        for candidate in candidates:
            if len(report.exits) // 2 >= self.max_per_location:
                candidate.discard("per-location reconnection limit reached")
                continue
            committed = await self._process(candidate)
            if committed:
                report.exits.extend(committed)

        signal = ReconnectionSignal(
            location_id=new_location_id,
            candidates_considered=len(candidates),
            committed_count=len(report.committed),
            discarded_count=sum(1 for c in candidates if c.state == CandidateState.DISCARDED),
            hop_counts=[c.hops for c in report.committed],
            duration_ratios=[round(c.duration_ratio, 3) for c in report.committed],
            elapsed_ms=(time.perf_counter() - start) * 1000,
        )
        if self.sink is not None:
            await self.sink.emit_reconnection(signal)
        return report

    async def _process(self, candidate: ReconnectionCandidate) -> list[Exit]:
        if not candidate.within_tolerance:
            candidate.discard(
                f"detour ratio {candidate.duration_ratio:.2f} exceeds {self.tolerance_factor}"
            )
            return []
        candidate.advance(CandidateState.DURATION_CHECKED)

        source = await self.graph_store.get_location(candidate.source_id)
        target = await self.graph_store.get_location(candidate.target_id)
        if source is None or target is None:
            candidate.discard("location disappeared")
            return []

        direction = await self._select_direction(source, target)
        if direction is None:
            candidate.discard("no_compatible_direction")
            return []
        candidate.direction = direction

        try:
            assessment = await self.checker.check(
                ConsistencyRequest(source=source, target=target, direction=direction)
            )
        except OracleError as e:
            logger.error(
                f"Consistency check failed for {candidate.source_id} -> {candidate.target_id}: {e}",
                extra={"candidate_id": candidate.candidate_id, "error_type": type(e).__name__},
            )
            candidate.discard(f"consistency check failed: {e.message}")
            return []

        candidate.verdict = assessment.verdict
        if assessment.verdict == ConsistencyVerdict.CONTRADICTORY or (
            assessment.verdict == ConsistencyVerdict.AMBIGUOUS and self.ambiguous_policy != "accept"
        ):
            # Logged for curator review; never retried
            logger.info(
                f"Reconnection {candidate.source_id} -{direction.value}-> {candidate.target_id} "
                f"rejected as {assessment.verdict.value}: {assessment.reason}",
                extra={
                    "candidate_id": candidate.candidate_id,
                    "verdict": assessment.verdict.value,
                    "hops": candidate.hops,
                },
            )
            candidate.discard(f"{assessment.verdict.value}: {assessment.reason}")
            return []
        candidate.advance(CandidateState.CONSISTENCY_CHECKED)

        handle = self.staging_area.stage_reconnection(
            candidate, travel_duration=candidate.original_duration
        )
        try:
            _, exits = await self.staging_area.commit(handle)
        except DirectionSlotConflictError as e:
            # Slot taken by a concurrent commit since it was read
            logger.warning(
                f"Reconnection {candidate.candidate_id} lost its slot: {e}",
                extra={"candidate_id": candidate.candidate_id},
            )
            return []

        logger.info(
            f"Reconnected {candidate.source_id} -{direction.value}-> {candidate.target_id} "
            f"({candidate.hops} hops, ratio {candidate.duration_ratio:.2f})",
            extra={"candidate_id": candidate.candidate_id, "hops": candidate.hops},
        )
        return exits

    async def _select_direction(self, source: Location, target: Location) -> Direction | None:
        source_taken = {e.direction for e in await self.graph_store.get_exits(source.id)}
        target_taken = {e.direction for e in await self.graph_store.get_exits(target.id)}

        options = [
            direction
            for direction in sorted(source.pending_exits, key=direction_order)
            if direction not in source_taken
            and direction not in source.forbidden_exits
            and direction.opposite not in target_taken
            and direction.opposite not in target.forbidden_exits
        ]
        if not options:
            return None
        for direction in options:
            if direction.opposite in target.pending_exits:
                return direction
        return options[0]
