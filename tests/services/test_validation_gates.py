"""
Tests for the validation gates and the gate chain.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from worldgraph.core.safety.pattern import PatternSafetyClassifier
from worldgraph.models.direction import Direction
from worldgraph.models.exit import ExitProposal
from worldgraph.models.generation import ExitHint, GenerationBatch, GenerationStub, StubDescription
from worldgraph.models.validation import Accepted, Rejected, RejectionKind
from worldgraph.services.validation_gates import (
    DuplicationGate,
    ExitSanityGate,
    SafetyGate,
    SchemaGate,
    ValidationGateChain,
)
from worldgraph.utils.exceptions import GraphStoreError, TransientInfraError


def described_stub(
    stub_id: str,
    direction: Direction | None = Direction.NORTH,
    parent_id: str = "loc_root",
    description: str | None = None,
    name: str = "Quiet Glade",
    terrain: str = "open-plain",
    is_root: bool = False,
    proposals: list[ExitProposal] | None = None,
    hints: list[ExitHint] | None = None,
) -> GenerationStub:
    stub = GenerationStub(
        stub_id=stub_id, parent_id=parent_id, direction=direction, is_root=is_root
    )
    stub.response = StubDescription(
        stub_id=stub_id,
        name=name,
        description=description or f"A glade named {stub_id} hums with bees and clover.",
        terrain=terrain,
        exit_hints=hints or [],
    )
    if proposals is None:
        proposals = []
        if direction is not None:
            proposals = [
                ExitProposal(direction=direction.opposite, confidence=1.0, forced=True),
                ExitProposal(direction=direction, confidence=0.85),
                ExitProposal(direction=Direction.UP, confidence=0.85),
            ]
    stub.proposals = proposals
    return stub


def batch_of(*stubs: GenerationStub, root_id: str = "loc_root") -> GenerationBatch:
    return GenerationBatch(batch_id="batch_gates", root_id=root_id, stubs=list(stubs))


@pytest.mark.unit
@pytest.mark.asyncio
class TestSchemaGate:
    """Test structural checks."""

    async def test_well_formed_stub_accepted(self):
        stub = described_stub("loc_a")

        verdict = await SchemaGate().check(stub, batch_of(stub), [])

        assert isinstance(verdict, Accepted)

    @pytest.mark.parametrize(
        "changes,reason",
        [
            ({"name": "  "}, "empty name"),
            ({"description": "Too short."}, "shorter than"),
            ({"terrain": "swamp"}, "unknown terrain"),
        ],
    )
    async def test_malformed_stub_rejected(self, changes, reason):
        stub = described_stub("loc_a")
        stub.response = stub.response.model_copy(update=changes)

        verdict = await SchemaGate().check(stub, batch_of(stub), [])

        assert isinstance(verdict, Rejected)
        assert verdict.rejection_kind == RejectionKind.SCHEMA
        assert reason in verdict.reason

    async def test_missing_response_rejected(self):
        stub = GenerationStub(stub_id="loc_a", parent_id="loc_root", direction=Direction.NORTH)

        verdict = await SchemaGate().check(stub, batch_of(stub), [])

        assert isinstance(verdict, Rejected)

    async def test_hint_confidence_out_of_range(self):
        stub = described_stub("loc_a", hints=[ExitHint(direction="north", confidence=1.5)])

        verdict = await SchemaGate().check(stub, batch_of(stub), [])

        assert isinstance(verdict, Rejected)

    async def test_unknown_hint_direction_warns(self):
        stub = described_stub("loc_a", hints=[ExitHint(direction="sideways", confidence=0.5)])

        verdict = await SchemaGate().check(stub, batch_of(stub), [])

        assert isinstance(verdict, Accepted)
        assert "sideways" in verdict.warnings[0]


@pytest.mark.unit
@pytest.mark.asyncio
class TestSafetyAndExitSanity:
    """Test content safety and exit proposal checks."""

    async def test_unsafe_text_rejected(self):
        gate = SafetyGate(PatternSafetyClassifier([r"\bgore\b"]))
        stub = described_stub("loc_a", description="Gore is smeared across the flagstones here.")

        verdict = await gate.check(stub, batch_of(stub), [])

        assert verdict.rejection_kind == RejectionKind.SAFETY

    async def test_duplicate_directions_rejected(self):
        stub = described_stub(
            "loc_a",
            proposals=[
                ExitProposal(direction=Direction.SOUTH, confidence=1.0),
                ExitProposal(direction=Direction.SOUTH, confidence=0.6),
            ],
        )

        verdict = await ExitSanityGate().check(stub, batch_of(stub), [])

        assert verdict.rejection_kind == RejectionKind.EXIT_SANITY
        assert "south" in verdict.reason

    async def test_missing_return_rejected(self):
        stub = described_stub(
            "loc_a", proposals=[ExitProposal(direction=Direction.EAST, confidence=0.9)]
        )

        verdict = await ExitSanityGate().check(stub, batch_of(stub), [])

        assert isinstance(verdict, Rejected)
        assert "missing return exit south" in verdict.reason

    async def test_contradicted_return_warns(self):
        stub = described_stub(
            "loc_a",
            proposals=[
                ExitProposal(
                    direction=Direction.SOUTH, confidence=1.0, forced=True, contradicted=True
                ),
                ExitProposal(direction=Direction.EAST, confidence=0.9),
                ExitProposal(direction=Direction.WEST, confidence=0.9),
            ],
        )

        verdict = await ExitSanityGate().check(stub, batch_of(stub), [])

        assert isinstance(verdict, Accepted)
        assert verdict.warnings[0].startswith("return exit south kept")

    async def test_unusual_exit_count_only_warns(self):
        stub = described_stub(
            "loc_a",
            proposals=[ExitProposal(direction=Direction.SOUTH, confidence=1.0, forced=True)],
        )

        verdict = await ExitSanityGate().check(stub, batch_of(stub), [])

        assert isinstance(verdict, Accepted)
        assert "usually 3-5" in verdict.warnings[0]

    async def test_direction_blocked_by_parent_rejected(self):
        root = described_stub("loc_root", direction=None, parent_id="loc_root", is_root=True)
        root.blocked_directions = [Direction.NORTH, Direction.EAST]
        north = described_stub("loc_a")
        west = described_stub("loc_b", direction=Direction.WEST)
        batch = batch_of(root, north, west)

        blocked = await ExitSanityGate().check(north, batch, [])
        open_ = await ExitSanityGate().check(west, batch, [])

        assert blocked.rejection_kind == RejectionKind.EXIT_SANITY
        assert blocked.reason == "loc_root description blocks north"
        assert isinstance(open_, Accepted)


@pytest.mark.unit
@pytest.mark.asyncio
class TestDuplicationGate:
    """Test near-duplicate detection."""

    async def test_copy_of_root_rejected(self, store, plain_root):
        gate = DuplicationGate(store, similarity_threshold=0.9)
        stub = described_stub("loc_a", description=plain_root.base_description)
        batch = batch_of(stub, root_id=plain_root.id)
        state = await gate.prepare(batch)

        verdict = await gate.check(stub, batch, [], state)

        assert verdict.rejection_kind == RejectionKind.DUPLICATE
        assert plain_root.id in verdict.reason

    async def test_copy_of_sibling_rejected(self, store, plain_root):
        gate = DuplicationGate(store, similarity_threshold=0.9)
        first = described_stub("loc_a", description="Foxgloves lean over a mossy stone well.")
        second = described_stub("loc_b", description="Foxgloves lean over a mossy stone well.")
        batch = batch_of(first, second, root_id=plain_root.id)
        state = await gate.prepare(batch)

        verdict = await gate.check(second, batch, [first], state)

        assert isinstance(verdict, Rejected)
        assert "loc_a" in verdict.reason

    async def test_distinct_prose_accepted(self, store, plain_root):
        gate = DuplicationGate(store, similarity_threshold=0.9)
        stub = described_stub("loc_a", description="Salt wind rattles the shutters of a fishing hut.")
        batch = batch_of(stub, root_id=plain_root.id)
        state = await gate.prepare(batch)

        assert isinstance(await gate.check(stub, batch, [], state), Accepted)

    async def test_embedder_used_when_available(self, store, plain_root):
        embedder = MagicMock()
        embedder.batch_embed = AsyncMock(
            side_effect=lambda texts: [[1.0, 0.0] if "grassy" in t else [0.0, 1.0] for t in texts]
        )
        gate = DuplicationGate(store, embedder=embedder, similarity_threshold=0.9)
        copy = described_stub("loc_a", description="Another grassy plain, much like the last.")
        fresh = described_stub("loc_b", description="A salt marsh hisses with wading birds.")
        batch = batch_of(copy, fresh, root_id=plain_root.id)
        state = await gate.prepare(batch)

        assert isinstance(await gate.check(copy, batch, [], state), Rejected)
        assert isinstance(await gate.check(fresh, batch, [], state), Accepted)
        embedder.batch_embed.assert_awaited()

    async def test_concurrent_batches_keep_their_own_neighborhood(self, store, make_location):
        moor = make_location("loc_moor", description="Root A is a windy moor with heather.")
        dunes = make_location("loc_dunes", description="Root B is a stretch of pale dunes.")
        await store.upsert_location(moor)
        await store.upsert_location(dunes)

        async def slow_embed(texts):
            await asyncio.sleep(0.05)
            vectors = []
            for text in texts:
                if "moor" in text:
                    vectors.append([1.0, 0.0, 0.0])
                elif "dunes" in text:
                    vectors.append([0.0, 1.0, 0.0])
                else:
                    vectors.append([0.0, 0.0, 1.0])
            return vectors

        embedder = MagicMock()
        embedder.batch_embed = AsyncMock(side_effect=slow_embed)
        chain = ValidationGateChain([DuplicationGate(store, embedder=embedder)])
        copy = described_stub(
            "loc_copy", parent_id=moor.id, description="Another windy moor, grey and bare."
        )
        marsh = described_stub(
            "loc_marsh", parent_id=dunes.id, description="A salt marsh hisses with birds."
        )

        async def validate_later(batch, delay):
            await asyncio.sleep(delay)
            return await chain.validate(batch)

        result_a, result_b = await asyncio.gather(
            chain.validate(batch_of(copy, root_id=moor.id)),
            validate_later(batch_of(marsh, root_id=dunes.id), 0.02),
        )

        assert result_a.accepted == []
        assert "loc_moor" in result_a.rejected[0].reason
        assert result_b.accepted == ["loc_marsh"]

    async def test_prepare_retries_store_reads(self, store, plain_root):
        gate = DuplicationGate(store, max_retries=3, retry_delay=0.0)
        neighbors = AsyncMock(side_effect=[GraphStoreError("database is locked"), ([], [])])

        with patch.object(store, "neighbors", neighbors):
            state = await gate.prepare(batch_of(root_id=plain_root.id))

        assert state.references == [(plain_root.id, plain_root.base_description)]
        assert neighbors.await_count == 2

    async def test_prepare_gives_up_with_transient_error(self, store, plain_root):
        gate = DuplicationGate(store, max_retries=2, retry_delay=0.0)

        with patch.object(store, "neighbors", AsyncMock(side_effect=GraphStoreError("down"))):
            with pytest.raises(TransientInfraError):
                await gate.prepare(batch_of(root_id=plain_root.id))


@pytest.mark.unit
@pytest.mark.asyncio
class TestGateChain:
    """Test aggregation across gates and stubs."""

    async def test_children_rejected_with_parent(self, gate_chain, plain_root):
        parent = described_stub(
            "loc_parent", parent_id=plain_root.id, description="Gore drips from the brambles here."
        )
        child = described_stub("loc_child", direction=Direction.EAST, parent_id="loc_parent")
        sibling = described_stub("loc_sibling", direction=Direction.WEST, parent_id=plain_root.id)
        batch = batch_of(parent, child, sibling, root_id=plain_root.id)

        result = await gate_chain.validate(batch)

        assert result.accepted == ["loc_sibling"]
        assert [r.stub_id for r in result.rejected] == ["loc_parent", "loc_child"]
        assert result.rejected[1].reason == "parent loc_parent rejected"
        assert not result.batch_failed

    async def test_root_rejection_fails_batch(self, gate_chain, stub_root):
        root = described_stub(
            stub_root.id, direction=None, parent_id=stub_root.id, name="", is_root=True
        )
        other = described_stub("loc_a", parent_id=stub_root.id)
        batch = batch_of(root, other, root_id=stub_root.id)

        result = await gate_chain.validate(batch)

        assert result.batch_failed
        assert result.accepted == []
        assert "schema" in result.failure_reason

    async def test_schema_runs_before_safety(self, gate_chain, plain_root):
        stub = described_stub("loc_a", parent_id=plain_root.id, description="Gore.")
        batch = batch_of(stub, root_id=plain_root.id)

        result = await gate_chain.validate(batch)

        assert result.rejected[0].kind == RejectionKind.SCHEMA

    async def test_warnings_collected_not_blocking(self, gate_chain, plain_root):
        stub = described_stub(
            "loc_a",
            parent_id=plain_root.id,
            proposals=[ExitProposal(direction=Direction.SOUTH, confidence=1.0, forced=True)],
        )
        batch = batch_of(stub, root_id=plain_root.id)

        result = await gate_chain.validate(batch)

        assert result.accepted == ["loc_a"]
        assert result.warnings[0].gate == "exit_sanity"
