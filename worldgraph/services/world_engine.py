"""
Unified World Engine - wires every component together.

Brings together:
- Graph store, narrative oracle, safety classifier, embedder
- Exit inference and validation gates
- Staging area and reconnection search
- Expansion orchestrator and worker pool
"""

import asyncio

from worldgraph.config import Config
from worldgraph.core.embeddings.base import Embedder
from worldgraph.core.factory import (
    EmbedderFactory,
    GraphStoreFactory,
    LLMFactory,
    OracleFactory,
)
from worldgraph.core.graph_store.base import GraphStore
from worldgraph.core.oracle.base import NarrativeOracle
from worldgraph.core.safety.base import SafetyClassifier
from worldgraph.models.direction import Direction
from worldgraph.models.exit import Exit
from worldgraph.models.generation import ExpansionResult, ExpansionTrigger
from worldgraph.models.location import (
    LayerType,
    Location,
    Provenance,
    ProvenanceSource,
    TerrainType,
)
from worldgraph.models.reconnection import ReconnectionReport
from worldgraph.services.consistency import (
    ConsistencyChecker,
    HeuristicConsistencyChecker,
    OracleConsistencyChecker,
)
from worldgraph.services.exit_inferencer import ExitInferencer
from worldgraph.services.expansion_orchestrator import ExpansionOrchestrator
from worldgraph.services.observability import LoggingObservabilitySink, ObservabilitySink
from worldgraph.services.reconnection_searcher import ReconnectionSearcher
from worldgraph.services.staging_area import StagingArea
from worldgraph.services.validation_gates import (
    DuplicationGate,
    ExitSanityGate,
    SafetyGate,
    SchemaGate,
    ValidationGateChain,
)
from worldgraph.services.worker_pool import ExpansionWorkerPool
from worldgraph.utils.exceptions import ConfigurationError, LocationNotFoundError
from worldgraph.utils.id_generator import generate_location_id
from worldgraph.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


class WorldEngine:
    """
    World Engine integrating all components.

    Features:
    - Seed locations and expand the graph around them
    - Queue expansions on a bounded worker pool
    - Reconnection search after every commit
    - Description layers over immutable base text
    """

    def __init__(
        self,
        graph_store: GraphStore,
        oracle: NarrativeOracle,
        safety_classifier: SafetyClassifier,
        config: Config,
        embedder: Embedder | None = None,
        sink: ObservabilitySink | None = None,
    ):
        """
        Initialize World Engine.

        Args:
            graph_store: Durable graph (SQLite or Neo4j)
            oracle: Narrative oracle
            safety_classifier: Content safety classifier
            config: Configuration object
            embedder: Optional embedder for duplicate detection
            sink: Signal sink (structured logs by default)
        """
        self.graph_store = graph_store
        self.oracle = oracle
        self.safety_classifier = safety_classifier
        self.embedder = embedder
        self.config = config
        self.sink = sink or LoggingObservabilitySink()

        self.inferencer = ExitInferencer(
            confidence_threshold=config.inference.confidence_threshold
        )

        self.gate_chain = ValidationGateChain(
            [
                SchemaGate(
                    min_description_length=config.validation.min_description_length,
                    max_description_length=config.validation.max_description_length,
                    max_name_length=config.validation.max_name_length,
                ),
                SafetyGate(safety_classifier),
                ExitSanityGate(),
                DuplicationGate(
                    graph_store,
                    embedder=embedder,
                    similarity_threshold=config.validation.similarity_threshold,
                    neighbor_hops=config.validation.duplication_neighbor_hops,
                    max_retries=config.concurrency.store_max_retries,
                    retry_delay=config.concurrency.store_retry_delay,
                ),
            ]
        )

        self.staging_area = StagingArea(
            graph_store,
            max_retries=config.concurrency.store_max_retries,
            retry_delay=config.concurrency.store_retry_delay,
        )

        self.reconnection = ReconnectionSearcher(
            graph_store,
            self.staging_area,
            checker=self._build_checker(),
            sink=self.sink,
            max_hops=config.reconnection.max_hops,
            tolerance_factor=config.reconnection.tolerance_factor,
            ambiguous_policy=config.reconnection.ambiguous_policy,
            max_per_location=config.reconnection.max_per_location,
        )

        self.orchestrator = ExpansionOrchestrator(
            graph_store,
            oracle,
            self.gate_chain,
            self.staging_area,
            config,
            inferencer=self.inferencer,
            reconnection_searcher=self.reconnection if config.reconnection.enabled else None,
            sink=self.sink,
        )

        self.pool = ExpansionWorkerPool(self.orchestrator, config.concurrency.max_workers)

    @classmethod
    def from_config(cls, config: Config, sink: ObservabilitySink | None = None) -> "WorldEngine":
        """Build every provider from configuration."""
        setup_logging(
            level=config.logging.level,
            log_to_file=config.logging.log_to_file,
            log_dir=config.logging.log_dir,
            file_rotation=config.logging.file_rotation,
            file_retention=config.logging.file_retention,
            compression=config.logging.compression,
            serialize=config.logging.serialize,
        )

        llm = LLMFactory.create(config.llm)
        safety_llm = llm if config.safety.provider == "llm" else None
        return cls(
            graph_store=GraphStoreFactory.create(config),
            oracle=OracleFactory.create(config, llm=llm),
            safety_classifier=OracleFactory.create_safety_classifier(config, llm=safety_llm),
            config=config,
            embedder=EmbedderFactory.create(config.embedder),
            sink=sink,
        )

    def _build_checker(self) -> ConsistencyChecker:
        kind = self.config.reconnection.consistency_checker
        if kind == "heuristic":
            return HeuristicConsistencyChecker(self.inferencer)
        elif kind == "oracle":
            return OracleConsistencyChecker(
                self.oracle, deadline=self.config.reconnection.consistency_deadline_seconds
            )
        else:
            raise ConfigurationError(
                f"Unsupported consistency checker: {kind}", context={"checker": kind}
            )

    async def initialize(self) -> None:
        """Initialize the graph store."""
        logger.info("Initializing World Engine")
        await self.graph_store.initialize()
        logger.info("World Engine ready")

    # ═══════════════════════════════════════════════════════════
    # LOCATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_location(
        self,
        name: str = "",
        description: str = "",
        terrain: TerrainType = TerrainType.OPEN_PLAIN,
        location_id: str | None = None,
    ) -> Location:
        """
        Seed a location by hand.

        With a description the location is crystallized immediately;
        without one it is stored as a stub for the oracle to describe on
        first expansion.

        Returns:
            Stored location
        """
        location = Location(id=location_id or generate_location_id(), terrain=terrain)
        if description.strip():
            location.mark_pending(
                name=name,
                description=description,
                terrain=terrain,
                provenance=Provenance(source=ProvenanceSource.MANUAL),
            )
            location.crystallize()
            location.pending_exits = {
                p.direction: p.reason
                for p in self.inferencer.infer_exits(description, terrain, None)
            }
            location.forbidden_exits = {
                d: "blocked in description" for d in self.inferencer.find_blocked(description)
            }
        else:
            location.name = name

        await self.graph_store.upsert_location(location)
        logger.info(
            f"Created location {location.id} ({location.state.value})",
            extra={"location_id": location.id, "terrain": terrain.value},
        )
        return location

    async def get_location(self, location_id: str) -> Location:
        """
        Raises:
            LocationNotFoundError: If the location does not exist
        """
        location = await self.graph_store.get_location(location_id)
        if location is None:
            raise LocationNotFoundError(
                f"Location not found: {location_id}", context={"location_id": location_id}
            )
        return location

    async def get_exits(self, location_id: str) -> list[Exit]:
        return await self.graph_store.get_exits(location_id)

    async def add_layer(
        self, location_id: str, layer_type: LayerType | str, text: str
    ) -> Location:
        """Append a description layer; the base description is left untouched."""
        async with self.staging_area.write_locks.acquire(location_id):
            location = await self.get_location(location_id)
            location.append_layer(layer_type, text)
            await self.graph_store.upsert_location(location)
        return location

    async def describe(self, location_id: str) -> str:
        """Full description: base text plus every layer."""
        location = await self.get_location(location_id)
        return location.render_description()

    # ═══════════════════════════════════════════════════════════
    # EXPANSION
    # ═══════════════════════════════════════════════════════════

    async def expand(
        self,
        root_id: str,
        arrival_direction: Direction | str | None = None,
        depth: int = 1,
        target_neighbor_count: int | None = None,
    ) -> ExpansionResult:
        """Expand around a location and wait for the result."""
        return await self.orchestrator.expand(
            ExpansionTrigger(
                root_id=root_id,
                arrival_direction=arrival_direction,
                depth=depth,
                target_neighbor_count=target_neighbor_count,
            )
        )

    def submit(self, trigger: ExpansionTrigger) -> "asyncio.Future[ExpansionResult]":
        """Queue an expansion on the worker pool."""
        return self.pool.submit(trigger)

    async def reconnect(self, location_id: str) -> ReconnectionReport:
        """Run a reconnection pass for one location on demand."""
        return await self.reconnection.reconnect(location_id)

    async def wait_for_reconnections(self) -> None:
        await self.orchestrator.wait_for_reconnections()

    # ═══════════════════════════════════════════════════════════
    # STATISTICS & LIFECYCLE
    # ═══════════════════════════════════════════════════════════

    async def get_statistics(self) -> dict:
        return {
            "locations": await self.graph_store.count_locations(),
            "exits": await self.graph_store.count_exits(),
            "quarantined": sorted(self.staging_area.quarantined),
        }

    async def close(self) -> None:
        """Stop workers, wait for reconnections and close every provider."""
        logger.info("Shutting down World Engine")

        await self.pool.stop()
        await self.orchestrator.wait_for_reconnections()

        await self.graph_store.close()
        await self.oracle.close()
        await self.safety_classifier.close()
        if self.embedder is not None:
            await self.embedder.close()

        logger.info("World Engine shutdown complete")
