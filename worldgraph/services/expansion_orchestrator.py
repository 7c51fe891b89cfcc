"""
Expansion orchestrator - grows the world graph around a location.

For every trigger the orchestrator:
1. Plans a batch of stubs in the free direction slots of the root
2. Asks the narrative oracle to describe the whole batch in one call
3. Infers exits from each description
4. Runs the validation gate chain
5. Stages and commits the accepted stubs with reciprocal exits
6. Schedules a reconnection search for every new location

Triggers for the same root are serialized; triggers for different roots
run concurrently.
"""

import asyncio
import time

from worldgraph.config import Config
from worldgraph.core.graph_store.base import GraphStore
from worldgraph.core.oracle.base import NarrativeOracle
from worldgraph.core.terrain import get_terrain_guidance, is_terrain_type
from worldgraph.models.direction import Direction, direction_order
from worldgraph.models.generation import (
    BatchRequest,
    BatchResponse,
    ExpansionResult,
    ExpansionStatus,
    ExpansionTrigger,
    GenerationBatch,
    GenerationStub,
    StubRequest,
)
from worldgraph.models.location import Location, LocationState, TerrainType
from worldgraph.models.signals import BatchOutcome, BatchSignal
from worldgraph.models.validation import GateResult
from worldgraph.services.exit_inferencer import ExitInferencer
from worldgraph.services.observability import LoggingObservabilitySink, ObservabilitySink
from worldgraph.services.reconnection_searcher import ReconnectionSearcher
from worldgraph.services.staging_area import StagingArea, StagingHandle
from worldgraph.services.validation_gates import ValidationGateChain
from worldgraph.utils.exceptions import (
    DirectionSlotConflictError,
    EmbeddingError,
    IntegrityViolationError,
    OracleError,
    OracleTimeoutError,
    OracleUnavailableError,
    PartialCommitError,
    SafetyClassifierError,
    TransientInfraError,
    WorldGraphError,
)
from worldgraph.utils.id_generator import generate_batch_id, generate_location_id
from worldgraph.utils.locks import KeyedLock
from worldgraph.utils.logger import get_logger
from worldgraph.utils.retry import retry_operation

logger = get_logger(__name__)


class _Attempt:
    """Mutable bookkeeping for one expansion attempt."""

    def __init__(self, trigger: ExpansionTrigger):
        self.trigger = trigger
        self.start = time.perf_counter()
        self.batch: GenerationBatch | None = None
        self.gate_result: GateResult | None = None
        self.handle: StagingHandle | None = None
        self.commit_started = False
        self.committed = False

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.start) * 1000


class ExpansionOrchestrator:
    """
    Coordinates stub planning, generation, validation and commit.

    Features:
    - One batched oracle call per expansion with a hard deadline
    - Bounded retry for retryable oracle failures; exhaustion fails atomically
    - Per-root serialization so one direction slot never gets two stubs
    - Commit shielded from cancellation
    - Exactly one BatchSignal per attempt
    """

    def __init__(
        self,
        graph_store: GraphStore,
        oracle: NarrativeOracle,
        gate_chain: ValidationGateChain,
        staging_area: StagingArea,
        config: Config,
        inferencer: ExitInferencer | None = None,
        reconnection_searcher: ReconnectionSearcher | None = None,
        sink: ObservabilitySink | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            graph_store: Graph the world lives in (read-only here)
            oracle: Narrative oracle describing stubs
            gate_chain: Validation gates
            staging_area: Only write path into the graph
            config: System configuration
            inferencer: Exit inferencer (built from config when omitted)
            reconnection_searcher: Runs after every commit when given
            sink: Receives batch signals (logs them by default)
        """
        self.graph_store = graph_store
        self.oracle = oracle
        self.gate_chain = gate_chain
        self.staging_area = staging_area
        self.config = config
        self.inferencer = inferencer or ExitInferencer(
            confidence_threshold=config.inference.confidence_threshold
        )
        self.reconnection_searcher = reconnection_searcher
        self.sink = sink or LoggingObservabilitySink()

        self._root_locks = KeyedLock()
        self._reconnections: set[asyncio.Task] = set()

    # ═══════════════════════════════════════════════════════════
    # EXPANSION
    # ═══════════════════════════════════════════════════════════

    async def expand(self, trigger: ExpansionTrigger) -> ExpansionResult:
        """
        Expand the graph around trigger.root_id.

        Args:
            trigger: Root, arrival direction, depth and optional overrides

        Returns:
            ExpansionResult (expanded, partial, skipped or failed)

        Store, embedder and safety classifier failures that survive their
        retries end as a failed result. Every attempt emits exactly one
        BatchSignal, including the ones that raise.

        Raises:
            IntegrityViolationError: If a reciprocal pair could not be confirmed
            WorldGraphError: Any other error, after the failure signal is emitted
            asyncio.CancelledError: If cancelled; nothing is committed unless the
                commit had already started
        """
        attempt = _Attempt(trigger)
        logger.info(
            f"Expanding {trigger.root_id} (depth {trigger.depth}, arrival "
            f"{trigger.arrival_direction.value if trigger.arrival_direction else 'none'})",
            extra={"root_id": trigger.root_id, "correlation_id": trigger.correlation_id},
        )

        try:
            result = await self._run(attempt)
        except asyncio.CancelledError:
            if attempt.handle is not None and not attempt.commit_started:
                self.staging_area.discard(attempt.handle)
            await self._emit(attempt, BatchOutcome.FAILURE, "cancelled")
            raise
        except IntegrityViolationError as e:
            await self._emit(attempt, BatchOutcome.FAILURE, e.message)
            raise
        except (TransientInfraError, EmbeddingError, SafetyClassifierError) as e:
            result = self._failed(attempt, f"infrastructure failure: {e.message}")
        except WorldGraphError as e:
            await self._emit(attempt, BatchOutcome.FAILURE, e.message)
            raise

        result.elapsed_ms = attempt.elapsed_ms
        outcome = {
            ExpansionStatus.EXPANDED: BatchOutcome.SUCCESS,
            ExpansionStatus.SKIPPED: BatchOutcome.SUCCESS,
            ExpansionStatus.PARTIAL: BatchOutcome.PARTIAL,
            ExpansionStatus.FAILED: BatchOutcome.FAILURE,
        }[result.status]
        await self._emit(attempt, outcome, result.message or None)
        return result

    async def _run(self, attempt: _Attempt) -> ExpansionResult:
        trigger = attempt.trigger
        max_depth = self.config.expansion.max_depth
        if trigger.depth > max_depth:
            return self._failed(attempt, f"depth {trigger.depth} exceeds maximum {max_depth}")

        async with self._root_locks.acquire(trigger.root_id):
            # Read under the lock: an earlier trigger may have filled slots
            root = await self._store_call(
                lambda: self.graph_store.get_location(trigger.root_id),
                f"get_location({trigger.root_id})",
            )
            if root is None:
                return self._failed(attempt, f"root {trigger.root_id} does not exist")

            existing = await self._store_call(
                lambda: self.graph_store.get_exits(root.id), f"get_exits({root.id})"
            )
            batch = self.plan_batch(root, trigger, {e.direction for e in existing})
            attempt.batch = batch
            if not batch.stubs:
                return ExpansionResult(
                    status=ExpansionStatus.SKIPPED,
                    root_id=root.id,
                    batch_id=batch.batch_id,
                    skipped_directions=batch.skipped_directions,
                    message="no free direction slots to expand into",
                )

            try:
                response = await self._generate(root, batch)
            except TransientInfraError as e:
                return self._failed(attempt, f"oracle unavailable: {e.message}")
            except OracleError as e:
                return self._failed(attempt, f"oracle failed: {e.message}")

            self._apply_response(batch, response)
            gate_result = await self.gate_chain.validate(batch)
            attempt.gate_result = gate_result
            if gate_result.batch_failed:
                return self._failed(attempt, gate_result.failure_reason or "root stub rejected")
            if not gate_result.accepted:
                return self._failed(attempt, "every stub was rejected")

            attempt.handle = self.staging_area.stage(
                batch,
                gate_result,
                root,
                model=response.model,
                occupied={e.direction for e in existing},
            )
            try:
                locations, exits = await self._commit(attempt)
            except PartialCommitError as e:
                return self._partial_commit(attempt, root, e)
            except (DirectionSlotConflictError, TransientInfraError) as e:
                return self._failed(attempt, f"commit failed: {e.message}")

        self._schedule_reconnection([loc.id for loc in locations if loc.id != root.id])

        rejected = len(gate_result.rejected)
        return ExpansionResult(
            status=ExpansionStatus.PARTIAL if rejected else ExpansionStatus.EXPANDED,
            root_id=root.id,
            batch_id=batch.batch_id,
            locations=locations,
            exits=exits,
            rejections=gate_result.rejected,
            warnings=gate_result.warnings,
            skipped_directions=batch.skipped_directions,
        )

    # ═══════════════════════════════════════════════════════════
    # STUB PLANNING
    # ═══════════════════════════════════════════════════════════

    def plan_batch(
        self, root: Location, trigger: ExpansionTrigger, occupied: set[Direction]
    ) -> GenerationBatch:
        """
        Place stubs in the free direction slots of the root.

        The arrival direction already carries the way back and is never
        stubbed. Directions hinted by the root's description come first,
        then the terrain's natural directions.

        Args:
            root: Root location
            trigger: Expansion trigger
            occupied: Directions of the root that already hold an exit

        Returns:
            GenerationBatch with stubs in parent-before-child order
        """
        settings = self.config.expansion
        terrain = trigger.terrain or root.terrain
        guidance = get_terrain_guidance(terrain)
        duration = trigger.travel_duration or settings.default_travel_duration

        batch = GenerationBatch(
            batch_id=generate_batch_id(),
            root_id=root.id,
            arrival_direction=trigger.arrival_direction,
            depth=trigger.depth,
        )

        if root.state != LocationState.CRYSTALLIZED:
            batch.stubs.append(
                GenerationStub(
                    stub_id=root.id,
                    parent_id=root.id,
                    depth=0,
                    terrain_hint=terrain,
                    travel_duration=duration,
                    is_root=True,
                )
            )

        preferred = sorted(root.pending_exits, key=direction_order)
        ordered = preferred + [d for d in guidance.candidate_directions() if d not in preferred]

        free: list[Direction] = []
        for direction in ordered:
            if direction == trigger.arrival_direction or direction in root.forbidden_exits:
                continue
            if direction in occupied:
                batch.skipped_directions.append(direction)
                continue
            free.append(direction)

        capacity = settings.max_batch_size - len(batch.stubs)
        count = min(trigger.target_neighbor_count or guidance.typical_exits, len(free), capacity)
        batch.target_neighbor_count = count

        first_level = [
            GenerationStub(
                stub_id=generate_location_id(),
                parent_id=root.id,
                direction=direction,
                depth=1,
                terrain_hint=terrain,
                travel_duration=duration,
            )
            for direction in free[:count]
        ]
        batch.stubs.extend(first_level)

        if trigger.depth >= 2:
            for parent in first_level:
                room = settings.max_batch_size - len(batch.stubs)
                if room <= 0:
                    break
                child_directions = [
                    d for d in guidance.candidate_directions() if d != parent.return_direction
                ]
                per_parent = max(1, guidance.typical_exits - 1)
                for direction in child_directions[: min(per_parent, room)]:
                    batch.stubs.append(
                        GenerationStub(
                            stub_id=generate_location_id(),
                            parent_id=parent.stub_id,
                            direction=direction,
                            depth=2,
                            terrain_hint=terrain,
                            travel_duration=duration,
                        )
                    )

        logger.debug(
            f"Planned {batch.size} stubs for {root.id}",
            extra={
                "batch_id": batch.batch_id,
                "directions": [s.direction.value for s in batch.stubs if s.direction],
                "skipped": [d.value for d in batch.skipped_directions],
            },
        )
        return batch

    # ═══════════════════════════════════════════════════════════
    # GENERATION
    # ═══════════════════════════════════════════════════════════

    async def _generate(self, root: Location, batch: GenerationBatch) -> BatchResponse:
        by_id = {stub.stub_id: stub for stub in batch.stubs}
        request = BatchRequest(
            batch_id=batch.batch_id,
            root_name=root.name or batch.stubs[0].placeholder_name,
            root_description=root.base_description,
            root_terrain=root.terrain,
            arrival_direction=batch.arrival_direction,
            stubs=[
                StubRequest(
                    stub_id=stub.stub_id,
                    parent_name=(
                        root.name
                        if stub.parent_id == root.id
                        else by_id[stub.parent_id].placeholder_name
                    ),
                    direction=stub.direction,
                    return_direction=stub.return_direction,
                    terrain_hint=stub.terrain_hint,
                    terrain_prompt_hint=get_terrain_guidance(stub.terrain_hint).prompt_hint,
                    depth=stub.depth,
                )
                for stub in batch.stubs
            ],
        )
        deadline = self.config.expansion.oracle_deadline_seconds

        async def call() -> BatchResponse:
            try:
                return await asyncio.wait_for(
                    self.oracle.generate_batch(request, deadline), timeout=deadline
                )
            except asyncio.TimeoutError as e:
                raise OracleTimeoutError(
                    f"Oracle exceeded deadline of {deadline}s",
                    context={"batch_id": batch.batch_id},
                ) from e

        return await retry_operation(
            call,
            f"generate_batch({batch.batch_id})",
            max_retries=self.config.expansion.oracle_max_attempts,
            retry_delay=self.config.expansion.oracle_retry_delay,
            retryable=(OracleTimeoutError, OracleUnavailableError),
        )

    def _apply_response(self, batch: GenerationBatch, response: BatchResponse) -> None:
        """Attach oracle output to stubs and infer their exits."""
        for stub in batch.stubs:
            stub.response = response.for_stub(stub.stub_id)
            if stub.response is None:
                continue
            raw_terrain = stub.response.terrain.strip().lower()
            terrain = TerrainType(raw_terrain) if is_terrain_type(raw_terrain) else stub.terrain_hint
            arrival = batch.arrival_direction if stub.is_root else stub.return_direction
            stub.proposals = self.inferencer.infer_exits(
                stub.response.description,
                terrain,
                arrival,
                exit_hints=stub.response.exit_hints,
            )
            stub.blocked_directions = self.inferencer.find_blocked(stub.response.description)

    # ═══════════════════════════════════════════════════════════
    # COMMIT
    # ═══════════════════════════════════════════════════════════

    async def _commit(self, attempt: _Attempt):
        attempt.commit_started = True
        commit_task = asyncio.ensure_future(self.staging_area.commit(attempt.handle))
        try:
            result = await asyncio.shield(commit_task)
        except asyncio.CancelledError:
            if commit_task.done() and not commit_task.cancelled():
                attempt.committed = commit_task.exception() is None
                raise
            # The commit keeps running; wait for it before giving up
            await asyncio.wait({commit_task})
            attempt.committed = not commit_task.cancelled() and commit_task.exception() is None
            if attempt.committed:
                locations, _ = commit_task.result()
                self._schedule_reconnection(
                    [loc.id for loc in locations if loc.id != attempt.trigger.root_id]
                )
            raise
        attempt.committed = True
        return result

    # ═══════════════════════════════════════════════════════════
    # RECONNECTION
    # ═══════════════════════════════════════════════════════════

    def _schedule_reconnection(self, location_ids: list[str]) -> None:
        if (
            not location_ids
            or self.reconnection_searcher is None
            or not self.config.expansion.reconnect_after_commit
        ):
            return
        task = asyncio.create_task(self._reconnect_all(location_ids))
        self._reconnections.add(task)
        task.add_done_callback(self._reconnections.discard)

    async def _reconnect_all(self, location_ids: list[str]) -> None:
        # Sequential so two new siblings never link to each other twice
        for location_id in location_ids:
            try:
                await self.reconnection_searcher.reconnect(location_id)
            except WorldGraphError as e:
                logger.error(
                    f"Reconnection for {location_id} failed: {e}",
                    extra={"location_id": location_id, "error_type": type(e).__name__},
                )

    async def wait_for_reconnections(self) -> None:
        """Wait until every scheduled reconnection pass has finished."""
        while self._reconnections:
            await asyncio.gather(*list(self._reconnections))

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    async def _store_call(self, operation, name: str):
        return await retry_operation(
            operation,
            name,
            max_retries=self.config.concurrency.store_max_retries,
            retry_delay=self.config.concurrency.store_retry_delay,
        )

    def _failed(self, attempt: _Attempt, reason: str) -> ExpansionResult:
        logger.warning(
            f"Could not expand {attempt.trigger.root_id}: {reason}",
            extra={
                "root_id": attempt.trigger.root_id,
                "correlation_id": attempt.trigger.correlation_id,
            },
        )
        gate_result = attempt.gate_result
        return ExpansionResult(
            status=ExpansionStatus.FAILED,
            root_id=attempt.trigger.root_id,
            batch_id=attempt.batch.batch_id if attempt.batch else None,
            rejections=gate_result.rejected if gate_result else [],
            warnings=gate_result.warnings if gate_result else [],
            skipped_directions=attempt.batch.skipped_directions if attempt.batch else [],
            message=f"could not expand: {reason}",
        )

    def _partial_commit(
        self, attempt: _Attempt, root: Location, error: PartialCommitError
    ) -> ExpansionResult:
        """Report the pairs that reached the store before the commit stopped."""
        logger.error(
            f"Commit for {root.id} stopped after {len(error.exits) // 2} exit pairs: {error.message}",
            extra={
                "root_id": root.id,
                "batch_id": attempt.batch.batch_id,
                "written": [loc.id for loc in error.locations],
            },
        )
        self._schedule_reconnection([loc.id for loc in error.locations if loc.id != root.id])
        gate_result = attempt.gate_result
        return ExpansionResult(
            status=ExpansionStatus.PARTIAL,
            root_id=root.id,
            batch_id=attempt.batch.batch_id,
            locations=error.locations,
            exits=error.exits,
            rejections=gate_result.rejected,
            warnings=gate_result.warnings,
            skipped_directions=attempt.batch.skipped_directions,
            message=f"commit stopped part way: {error.message}",
        )

    async def _emit(self, attempt: _Attempt, outcome: BatchOutcome, reason: str | None) -> None:
        batch = attempt.batch
        gate_result = attempt.gate_result
        if outcome == BatchOutcome.FAILURE and attempt.committed:
            # Cancelled after the commit went through
            partial = gate_result is not None and bool(gate_result.rejected)
            outcome = BatchOutcome.PARTIAL if partial else BatchOutcome.SUCCESS
        await self.sink.emit_batch(
            BatchSignal(
                batch_id=batch.batch_id if batch else None,
                root_id=attempt.trigger.root_id,
                outcome=outcome,
                batch_size=batch.size if batch else 0,
                accepted_count=len(gate_result.accepted) if gate_result else 0,
                rejected_count=len(gate_result.rejected) if gate_result else 0,
                warning_count=len(gate_result.warnings) if gate_result else 0,
                elapsed_ms=attempt.elapsed_ms,
                reason=reason,
            )
        )
