"""
Staging area between validation and the graph store.

Staged locations and exits are held in memory only until commit. A handle
is committed at most once. Under per-location write locks every exit is
written together with its reciprocal and read back, and a new location only
crystallizes once the pair leading into it is confirmed. A store failure
between pairs leaves the pairs written so far complete and the remaining
slots free; a failure inside a pair quarantines the locations involved
until someone repairs them by hand.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from worldgraph.core.graph_store.base import GraphStore
from worldgraph.models.direction import Direction
from worldgraph.models.exit import Exit, ExitSource
from worldgraph.models.generation import GenerationBatch
from worldgraph.models.location import Location, Provenance, compute_input_hash
from worldgraph.models.reconnection import CandidateState, ReconnectionCandidate
from worldgraph.models.validation import GateResult
from worldgraph.utils.exceptions import (
    DirectionSlotConflictError,
    IntegrityViolationError,
    PartialCommitError,
    StagingError,
    TransientInfraError,
)
from worldgraph.utils.id_generator import generate_staging_id
from worldgraph.utils.locks import KeyedLock
from worldgraph.utils.logger import get_logger
from worldgraph.utils.retry import retry_operation

logger = get_logger(__name__)


class StagingState(str, Enum):
    STAGED = "staged"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"
    DISCARDED = "discarded"


class StagingHandle(BaseModel):
    """Opaque reference to a staged change."""

    handle_id: str
    kind: str  # batch, reconnection
    batch_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class _StagedChange:
    def __init__(self, handle: StagingHandle):
        self.handle = handle
        self.state = StagingState.STAGED
        self.locations: dict[str, Location] = {}
        self.exit_pairs: list[tuple[Exit, Exit]] = []
        self.candidate: ReconnectionCandidate | None = None

    @property
    def involved_ids(self) -> set[str]:
        ids = set(self.locations)
        for forward, _ in self.exit_pairs:
            ids.update((forward.origin_id, forward.destination_id))
        return ids

    def add_pair(self, forward: Exit) -> None:
        reverse = forward.reciprocal()
        slots = {e.slot for pair in self.exit_pairs for e in pair}
        for exit in (forward, reverse):
            if exit.slot in slots:
                raise StagingError(
                    f"Direction slot {exit.origin_id}:{exit.direction.value} staged twice",
                    context={"handle_id": self.handle.handle_id},
                )
            slots.add(exit.slot)
            staged = self.locations.get(exit.origin_id)
            if staged is None:
                continue
            if exit.direction in staged.forbidden_exits:
                raise StagingError(
                    f"Direction slot {exit.origin_id}:{exit.direction.value} is blocked: "
                    f"{staged.forbidden_exits[exit.direction]}",
                    context={"handle_id": self.handle.handle_id},
                )
            staged.pending_exits.pop(exit.direction, None)
        self.exit_pairs.append((forward, reverse))


class StagingArea:
    """
    Holds validated changes until they are committed or discarded.

    Only the orchestrator and the reconnection searcher stage changes;
    nothing else writes to the graph store.
    """

    def __init__(
        self,
        graph_store: GraphStore,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        write_locks: KeyedLock | None = None,
    ):
        """
        Args:
            graph_store: Durable store commits are written to
            max_retries: Attempts per store call
            retry_delay: Base backoff delay in seconds
            write_locks: Per-location lock registry shared by every writer
        """
        self.graph_store = graph_store
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.write_locks = write_locks or KeyedLock()
        self._changes: dict[str, _StagedChange] = {}
        self._quarantine: dict[str, str] = {}

    # ═══════════════════════════════════════════════════════════
    # STAGING
    # ═══════════════════════════════════════════════════════════

    def stage(
        self,
        batch: GenerationBatch,
        gate_result: GateResult,
        root: Location,
        model: str | None = None,
        occupied: set[Direction] | None = None,
    ) -> StagingHandle:
        """
        Stage every accepted stub of a batch together with its exit pair.

        Args:
            batch: Batch after oracle, inference and validation
            gate_result: Verdicts for the batch
            root: Root location as read under the expansion lock
            model: Oracle model identifier for provenance
            occupied: Directions of the root that already hold an exit

        Returns:
            StagingHandle

        Raises:
            StagingError: If the gate result failed the batch or slots collide
        """
        if gate_result.batch_failed:
            raise StagingError(
                f"Batch {batch.batch_id} failed validation and cannot be staged",
                context={"batch_id": batch.batch_id},
            )

        handle = StagingHandle(
            handle_id=generate_staging_id(), kind="batch", batch_id=batch.batch_id
        )
        change = _StagedChange(handle)

        for stub in batch.stubs:
            if not gate_result.is_accepted(stub.stub_id):
                continue
            response = stub.response
            location = root.model_copy(deep=True) if stub.is_root else Location(id=stub.stub_id)
            location.mark_pending(
                name=response.name.strip(),
                description=response.description.strip(),
                terrain=response.terrain.strip().lower(),
                provenance=Provenance(
                    model=model,
                    batch_id=batch.batch_id,
                    input_hash=compute_input_hash(
                        root.base_description, stub.terrain_hint.value, stub.stub_id
                    ),
                ),
            )
            if stub.is_root:
                taken = set(occupied or ()) | {batch.arrival_direction}
            else:
                taken = {stub.return_direction}
            location.pending_exits = {
                p.direction: p.reason for p in stub.proposals if p.direction not in taken
            }
            location.forbidden_exits = {
                d: "blocked in description" for d in stub.blocked_directions if d not in taken
            }
            change.locations[location.id] = location

        for stub in batch.stubs:
            if stub.is_root or not gate_result.is_accepted(stub.stub_id):
                continue
            change.add_pair(
                Exit(
                    origin_id=stub.parent_id,
                    destination_id=stub.stub_id,
                    direction=stub.direction,
                    travel_duration=stub.travel_duration,
                    narrative_hook=stub.response.narrative_hook,
                    source=ExitSource.GENERATED,
                )
            )

        self._changes[handle.handle_id] = change
        logger.debug(
            f"Staged batch {batch.batch_id}: {len(change.locations)} locations, "
            f"{len(change.exit_pairs)} exit pairs",
            extra={"handle_id": handle.handle_id, "batch_id": batch.batch_id},
        )
        return handle

    def stage_reconnection(
        self, candidate: ReconnectionCandidate, travel_duration: float
    ) -> StagingHandle:
        """
        Stage the exit pair for a reconnection candidate.

        Raises:
            StagingError: If the candidate has not passed every check
        """
        if candidate.state != CandidateState.CONSISTENCY_CHECKED or candidate.direction is None:
            raise StagingError(
                f"Candidate {candidate.candidate_id} is not ready to stage",
                context={"state": candidate.state.value},
            )

        handle = StagingHandle(handle_id=generate_staging_id(), kind="reconnection")
        change = _StagedChange(handle)
        change.candidate = candidate
        change.add_pair(
            Exit(
                origin_id=candidate.source_id,
                destination_id=candidate.target_id,
                direction=candidate.direction,
                travel_duration=travel_duration,
                source=ExitSource.RECONNECTION,
            )
        )
        self._changes[handle.handle_id] = change
        return handle

    def get_staged_locations(self, handle: StagingHandle) -> list[Location]:
        """Copies of the staged locations (never visible through the graph store)."""
        change = self._get_change(handle)
        return [location.model_copy(deep=True) for location in change.locations.values()]

    def discard(self, handle: StagingHandle) -> None:
        """
        Drop a staged change.

        Raises:
            StagingError: If the handle is committing or already committed
        """
        change = self._get_change(handle)
        if change.state in (StagingState.COMMITTING, StagingState.COMMITTED):
            raise StagingError(
                f"Handle {handle.handle_id} is {change.state.value} and cannot be discarded",
                context={"handle_id": handle.handle_id},
            )
        change.state = StagingState.DISCARDED
        if change.candidate is not None and not change.candidate.is_terminal:
            change.candidate.discard("staged change discarded")
        self._changes.pop(handle.handle_id, None)

    # ═══════════════════════════════════════════════════════════
    # COMMIT
    # ═══════════════════════════════════════════════════════════

    async def commit(self, handle: StagingHandle) -> tuple[list[Location], list[Exit]]:
        """
        Write a staged change to the graph store.

        Returns:
            (locations written, exits written)

        Raises:
            StagingError: If the handle was already committed or discarded
            IntegrityViolationError: If a location is quarantined or a
                reciprocal pair cannot be confirmed
            DirectionSlotConflictError: If a slot already points elsewhere
            TransientInfraError: If the store keeps failing
        """
        change = self._changes.get(handle.handle_id)
        if change is None or change.state == StagingState.DISCARDED:
            raise StagingError(
                f"Handle {handle.handle_id} is unknown or discarded",
                context={"handle_id": handle.handle_id},
            )
        if change.state != StagingState.STAGED:
            raise StagingError(
                f"Handle {handle.handle_id} already {change.state.value}; commit happens once",
                context={"handle_id": handle.handle_id},
            )
        change.state = StagingState.COMMITTING

        try:
            involved = change.involved_ids
            quarantined = sorted(involved & set(self._quarantine))
            if quarantined:
                raise IntegrityViolationError(
                    f"Locations quarantined pending repair: {', '.join(quarantined)}",
                    context={"location_ids": quarantined},
                )

            async with self.write_locks.acquire_many(involved):
                await self._check_slots(change)
                written_locations, written_exits = await self._write(change)
        except BaseException:
            change.state = StagingState.FAILED
            if change.candidate is not None and not change.candidate.is_terminal:
                change.candidate.discard("commit failed")
            raise

        change.state = StagingState.COMMITTED
        if change.candidate is not None:
            change.candidate.advance(CandidateState.COMMITTED)

        logger.info(
            f"Committed {handle.kind} {handle.batch_id or handle.handle_id}: "
            f"{len(written_locations)} locations, {len(written_exits)} exits",
            extra={"handle_id": handle.handle_id, "batch_id": handle.batch_id},
        )
        return written_locations, written_exits

    # ═══════════════════════════════════════════════════════════
    # QUARANTINE
    # ═══════════════════════════════════════════════════════════

    def is_quarantined(self, location_id: str) -> bool:
        return location_id in self._quarantine

    @property
    def quarantined(self) -> dict[str, str]:
        return dict(self._quarantine)

    def release_quarantine(self, location_id: str) -> None:
        """Allow commits for a location again after manual repair."""
        reason = self._quarantine.pop(location_id, None)
        if reason is not None:
            logger.info(
                f"Quarantine released for {location_id}",
                extra={"location_id": location_id, "reason": reason},
            )

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    def _get_change(self, handle: StagingHandle) -> _StagedChange:
        change = self._changes.get(handle.handle_id)
        if change is None:
            raise StagingError(
                f"Handle {handle.handle_id} is unknown or discarded",
                context={"handle_id": handle.handle_id},
            )
        return change

    async def _store_call(self, operation, name: str):
        return await retry_operation(
            operation, name, max_retries=self.max_retries, retry_delay=self.retry_delay
        )

    async def _check_slots(self, change: _StagedChange) -> None:
        for pair in change.exit_pairs:
            for exit in pair:
                existing = await self._store_call(
                    lambda e=exit: self.graph_store.get_exit(e.origin_id, e.direction),
                    f"get_exit({exit.origin_id}:{exit.direction.value})",
                )
                if existing is not None and existing.destination_id != exit.destination_id:
                    raise DirectionSlotConflictError(
                        f"{exit.origin_id}:{exit.direction.value} already leads to "
                        f"{existing.destination_id}",
                        context={
                            "origin_id": exit.origin_id,
                            "direction": exit.direction.value,
                            "existing_destination": existing.destination_id,
                        },
                    )

    async def _write(self, change: _StagedChange) -> tuple[list[Location], list[Exit]]:
        written_locations: list[Location] = []
        written_exits: list[Exit] = []
        destinations = {forward.destination_id for forward, _ in change.exit_pairs}

        # A described root stub has no pair leading into it and goes first
        for location in change.locations.values():
            if location.id in destinations:
                continue
            location.crystallize()
            await self._store_call(
                lambda loc=location: self.graph_store.upsert_location(loc),
                f"upsert_location({location.id})",
            )
            written_locations.append(location)

        for forward, reverse in change.exit_pairs:
            destination = change.locations.get(forward.destination_id)
            try:
                await self._write_pair(change, forward, reverse, destination)
            except TransientInfraError as e:
                if not written_locations and not written_exits:
                    raise
                raise PartialCommitError(
                    f"Commit stopped before {forward.origin_id}:{forward.direction.value}: "
                    f"{e.message}",
                    locations=written_locations,
                    exits=written_exits,
                    context={
                        "handle_id": change.handle.handle_id,
                        "written_location_ids": [loc.id for loc in written_locations],
                    },
                ) from e
            written_exits.extend((forward, reverse))
            if destination is not None:
                written_locations.append(destination)

        return written_locations, written_exits

    async def _write_pair(
        self,
        change: _StagedChange,
        forward: Exit,
        reverse: Exit,
        destination: Location | None,
    ) -> None:
        """
        Write one reciprocal pair, then crystallize its new destination.

        A new destination is stored as pending first so the exits have both
        endpoints; it only crystallizes once both exits are confirmed. A
        pending location without exits is unreachable and never crystallizes.

        Raises:
            TransientInfraError: If the store failed before any of the pair was written
            IntegrityViolationError: If the store failed part way through the pair
        """
        for exit in (forward, reverse):
            if exit.origin_id not in change.locations:
                await self._clear_pending_slot(exit.origin_id, exit.direction)

        partly_written = False
        try:
            if destination is not None:
                await self._store_call(
                    lambda: self.graph_store.upsert_location(destination),
                    f"upsert_location({destination.id})",
                )
            await self._store_call(
                lambda: self.graph_store.upsert_exit(forward),
                f"upsert_exit({forward.origin_id}:{forward.direction.value})",
            )
            partly_written = True
            await self._store_call(
                lambda: self.graph_store.upsert_exit(reverse),
                f"upsert_exit({reverse.origin_id}:{reverse.direction.value})",
            )
        except TransientInfraError as e:
            if not partly_written:
                raise
            self._quarantine_pair(forward, "exit pair only partly written")
            raise IntegrityViolationError(
                f"Exit pair {forward.origin_id} <-> {forward.destination_id} only partly written",
                context={"origin_id": forward.origin_id, "destination_id": forward.destination_id},
            ) from e

        stored_forward = await self._store_call(
            lambda: self.graph_store.get_exit(forward.origin_id, forward.direction),
            f"get_exit({forward.origin_id}:{forward.direction.value})",
        )
        stored_reverse = await self._store_call(
            lambda: self.graph_store.get_exit(reverse.origin_id, reverse.direction),
            f"get_exit({reverse.origin_id}:{reverse.direction.value})",
        )
        if (
            stored_forward is None
            or stored_reverse is None
            or not stored_forward.is_reciprocal_of(stored_reverse)
            or stored_forward.destination_id != forward.destination_id
        ):
            self._quarantine_pair(forward, "reciprocal pair not confirmed after write")
            raise IntegrityViolationError(
                f"Reciprocal pair {forward.origin_id} <-> {forward.destination_id} "
                "not confirmed after write",
                context={"origin_id": forward.origin_id, "destination_id": forward.destination_id},
            )

        if destination is None:
            return
        destination.crystallize()
        try:
            await self._store_call(
                lambda: self.graph_store.upsert_location(destination),
                f"upsert_location({destination.id})",
            )
        except TransientInfraError as e:
            self._quarantine_pair(forward, "destination left pending after its exits were written")
            raise IntegrityViolationError(
                f"Location {destination.id} could not be crystallized",
                context={"location_id": destination.id},
            ) from e

    async def _clear_pending_slot(self, location_id: str, direction: Direction) -> None:
        existing = await self._store_call(
            lambda: self.graph_store.get_location(location_id),
            f"get_location({location_id})",
        )
        if existing is None or direction not in existing.pending_exits:
            return
        existing.pending_exits.pop(direction)
        existing.updated_at = datetime.now()
        await self._store_call(
            lambda: self.graph_store.upsert_location(existing),
            f"upsert_location({location_id})",
        )

    def _quarantine_pair(self, forward: Exit, reason: str) -> None:
        for location_id in (forward.origin_id, forward.destination_id):
            self._quarantine[location_id] = reason
        logger.error(
            f"Integrity violation between {forward.origin_id} and {forward.destination_id}: "
            f"{reason}; commits halted for both locations",
            extra={
                "origin_id": forward.origin_id,
                "destination_id": forward.destination_id,
                "direction": forward.direction.value,
            },
        )
