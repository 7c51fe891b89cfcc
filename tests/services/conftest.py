"""Fixtures for service tests.

Every test gets a fresh SQLite database under tmp_path and a scripted
oracle, so the whole pipeline runs without network access.
"""

import asyncio
import itertools
from collections.abc import AsyncGenerator, Callable

import pytest

from worldgraph.config import Config
from worldgraph.core.graph_store.sqlite_store import SQLiteGraphStore
from worldgraph.core.oracle.base import NarrativeOracle
from worldgraph.core.safety.pattern import PatternSafetyClassifier
from worldgraph.models.direction import Direction
from worldgraph.models.exit import Exit, ExitProposal
from worldgraph.models.generation import (
    BatchRequest,
    BatchResponse,
    GenerationBatch,
    GenerationStub,
    StubDescription,
    StubRequest,
)
from worldgraph.models.location import Location, LocationState, TerrainType
from worldgraph.models.reconnection import (
    ConsistencyAssessment,
    ConsistencyRequest,
    ConsistencyVerdict,
)
from worldgraph.models.validation import GateResult
from worldgraph.services.exit_inferencer import ExitInferencer
from worldgraph.services.expansion_orchestrator import ExpansionOrchestrator
from worldgraph.services.observability import RecordingObservabilitySink
from worldgraph.services.staging_area import StagingArea
from worldgraph.services.validation_gates import (
    DuplicationGate,
    ExitSanityGate,
    SafetyGate,
    SchemaGate,
    ValidationGateChain,
)

_ADJECTIVES = [
    "silver", "amber", "crimson", "misty", "golden", "quiet", "ancient", "sunlit",
    "tangled", "fragrant", "pale", "mossy", "windswept", "dappled", "frosted",
]
_NOUNS = [
    "grasses", "ferns", "poppies", "thistles", "reeds", "heather", "brambles",
    "lilies", "clover", "willows", "birches", "junipers", "nettles", "foxgloves",
]
_FEATURES = [
    "pond", "shrine", "cairn", "beehive", "scarecrow", "well", "totem", "sundial",
    "boulder", "campfire", "fountain", "statue", "windmill", "orchard", "dovecote",
]


class ScriptedOracle(NarrativeOracle):
    """
    Deterministic oracle.

    Each stub gets unique prose mentioning a path back along its return
    direction and a trail onward in its own direction.
    """

    def __init__(
        self,
        overrides: dict[Direction | None, Callable[[StubRequest], StubDescription]] | None = None,
        failures: list[Exception] | None = None,
        delay: float = 0.0,
        verdict: ConsistencyVerdict = ConsistencyVerdict.CONSISTENT,
    ):
        self.overrides = overrides or {}
        self.failures = list(failures or [])
        self.delay = delay
        self.verdict = verdict
        self.requests: list[BatchRequest] = []
        self._counter = itertools.count()

    async def generate_batch(self, request: BatchRequest, deadline: float) -> BatchResponse:
        self.requests.append(request)
        if self.failures:
            raise self.failures.pop(0)
        if self.delay:
            await asyncio.sleep(self.delay)
        descriptions = []
        for stub in request.stubs:
            override = self.overrides.get(stub.direction)
            descriptions.append(override(stub) if override else self.describe(stub))
        return BatchResponse(descriptions=descriptions, model="scripted")

    async def assess_consistency(
        self, request: ConsistencyRequest, deadline: float
    ) -> ConsistencyAssessment:
        return ConsistencyAssessment(verdict=self.verdict, reason="scripted")

    def describe(self, stub: StubRequest) -> StubDescription:
        n = next(self._counter)
        adjective = _ADJECTIVES[n % len(_ADJECTIVES)]
        noun = _NOUNS[(n * 3) % len(_NOUNS)]
        feature = _FEATURES[(n // len(_ADJECTIVES)) % len(_FEATURES)]
        sentences = [f"{adjective.capitalize()} {noun} surround a lonely {feature} here."]
        if stub.return_direction:
            sentences.append(
                f"A worn path leads {stub.return_direction.value} back the way you came."
            )
        if stub.direction:
            sentences.append(f"A faint trail continues {stub.direction.value} beyond.")
        return StubDescription(
            stub_id=stub.stub_id,
            name=f"{adjective.capitalize()} {feature.capitalize()} {n}",
            description=" ".join(sentences),
            terrain=stub.terrain_hint.value,
            narrative_hook=f"You walk toward the {feature}.",
        )


def _make_location(
    location_id: str,
    description: str | None = None,
    terrain: TerrainType = TerrainType.OPEN_PLAIN,
    pending: dict[Direction, str] | None = None,
) -> Location:
    """Crystallized location with unique prose."""
    location = Location(id=location_id, terrain=terrain)
    location.mark_pending(
        name=location_id.replace("_", " ").title(),
        description=description or f"The {location_id} clearing is calm and open to the sky.",
        terrain=terrain,
    )
    location.crystallize()
    location.pending_exits = dict(pending or {})
    return location


async def _link(
    store: SQLiteGraphStore,
    origin_id: str,
    direction: Direction,
    destination_id: str,
    duration: float = 10.0,
) -> None:
    """Write an exit and its reciprocal directly."""
    exit = Exit(
        origin_id=origin_id,
        destination_id=destination_id,
        direction=direction,
        travel_duration=duration,
    )
    await store.upsert_exit(exit)
    await store.upsert_exit(exit.reciprocal())


def _make_batch(root: Location, directions: list[Direction]) -> tuple[GenerationBatch, GateResult]:
    """Batch with described stubs around root, all accepted."""
    batch = GenerationBatch(batch_id="batch_test", root_id=root.id)
    for i, direction in enumerate(directions):
        stub = GenerationStub(
            stub_id=f"loc_stub_{direction.value}",
            parent_id=root.id,
            direction=direction,
            travel_duration=30.0,
        )
        stub.response = StubDescription(
            stub_id=stub.stub_id,
            name=f"Stub {i}",
            description=f"Stub number {i} lies {direction.value} of the root.",
            terrain="open-plain",
            narrative_hook="A short walk.",
        )
        stub.proposals = [
            ExitProposal(direction=direction.opposite, confidence=1.0, forced=True),
            ExitProposal(direction=direction, confidence=0.8, reason="trail onward"),
        ]
        batch.stubs.append(stub)
    return batch, GateResult(accepted=[s.stub_id for s in batch.stubs])


@pytest.fixture
def config() -> Config:
    """Defaults with fast retries."""
    config = Config()
    config.expansion.oracle_retry_delay = 0.0
    config.concurrency.store_retry_delay = 0.0
    return config


@pytest.fixture
async def store(tmp_path) -> AsyncGenerator[SQLiteGraphStore, None]:
    store = SQLiteGraphStore(db_path=str(tmp_path / "world.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def oracle() -> ScriptedOracle:
    return ScriptedOracle()


@pytest.fixture
def sink() -> RecordingObservabilitySink:
    return RecordingObservabilitySink()


@pytest.fixture
def staging(store) -> StagingArea:
    return StagingArea(store, max_retries=2, retry_delay=0.0)


@pytest.fixture
def gate_chain(store, config) -> ValidationGateChain:
    return ValidationGateChain(
        [
            SchemaGate(),
            SafetyGate(PatternSafetyClassifier(config.safety.blocked_patterns)),
            ExitSanityGate(),
            DuplicationGate(
                store,
                similarity_threshold=config.validation.similarity_threshold,
                retry_delay=0.0,
            ),
        ]
    )


@pytest.fixture
def orchestrator(store, oracle, gate_chain, staging, config, sink) -> ExpansionOrchestrator:
    """Orchestrator without reconnection so batch exits stay predictable."""
    return ExpansionOrchestrator(
        store,
        oracle,
        gate_chain,
        staging,
        config,
        inferencer=ExitInferencer(),
        sink=sink,
    )


@pytest.fixture
async def plain_root(store) -> Location:
    root = _make_location(
        "loc_root",
        description="A wide grassy plain rolls away under a pale sky, dotted with sheep.",
    )
    await store.upsert_location(root)
    return root


@pytest.fixture
async def stub_root(store) -> Location:
    root = Location(id="loc_unexplored", state=LocationState.STUB)
    await store.upsert_location(root)
    return root


@pytest.fixture
def make_oracle() -> type[ScriptedOracle]:
    return ScriptedOracle


@pytest.fixture
def make_location() -> Callable[..., Location]:
    return _make_location


@pytest.fixture
def link():
    return _link


@pytest.fixture
def make_batch():
    return _make_batch


@pytest.fixture
def make_orchestrator(store, gate_chain, staging, config, sink):
    """Build an orchestrator around a custom oracle."""

    def build(oracle: NarrativeOracle, **kwargs) -> ExpansionOrchestrator:
        return ExpansionOrchestrator(
            store,
            oracle,
            gate_chain,
            staging,
            config,
            inferencer=ExitInferencer(),
            sink=sink,
            **kwargs,
        )

    return build
