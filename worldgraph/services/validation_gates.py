"""
Validation gate chain.

Gates run in a fixed order per stub: Schema, Safety, ExitSanity, then
Duplication. Deterministic checks run before the similarity pass so a
malformed stub never costs an embedding call. The first rejection removes
the stub and all of its descendants from the batch; rejecting the root stub
fails the whole batch. Warnings are advisory and never block a commit.
"""

from abc import ABC, abstractmethod
from typing import Any

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from worldgraph.core.directions import normalize_direction
from worldgraph.core.embeddings.base import Embedder
from worldgraph.core.graph_store.base import GraphStore
from worldgraph.core.safety.base import SafetyClassifier
from worldgraph.core.terrain import get_terrain_guidance, is_terrain_type
from worldgraph.models.generation import GenerationBatch, GenerationStub
from worldgraph.models.location import TerrainType
from worldgraph.models.validation import (
    Accepted,
    GateResult,
    GateVerdict,
    GateWarning,
    Rejected,
    Rejection,
    RejectionKind,
)
from worldgraph.utils.logger import get_logger
from worldgraph.utils.retry import retry_operation

logger = get_logger(__name__)


class ValidationGate(ABC):
    """Single validation step applied to each stub."""

    name: str = "gate"

    async def prepare(self, batch: GenerationBatch) -> Any:
        """
        Build per-batch state before any stub is checked.

        Gates are shared by concurrent expansions, so anything tied to one
        batch lives in the returned object, which the chain hands back to
        every `check` call of that batch.
        """
        return None

    @abstractmethod
    async def check(
        self,
        stub: GenerationStub,
        batch: GenerationBatch,
        accepted: list[GenerationStub],
        state: Any = None,
    ) -> GateVerdict:
        """
        Check one stub.

        Args:
            stub: Stub under validation (response and proposals filled in)
            batch: Enclosing batch
            accepted: Stubs of this batch that already passed every gate
            state: Whatever `prepare` returned for this batch

        Returns:
            Accepted (optionally with warnings) or Rejected
        """
        pass


class SchemaGate(ValidationGate):
    """Structural checks on the oracle response."""

    name = "schema"

    def __init__(
        self,
        min_description_length: int = 20,
        max_description_length: int = 2000,
        max_name_length: int = 120,
    ):
        self.min_description_length = min_description_length
        self.max_description_length = max_description_length
        self.max_name_length = max_name_length

    async def check(self, stub, batch, accepted, state=None) -> GateVerdict:
        response = stub.response
        if response is None:
            return Rejected(rejection_kind=RejectionKind.SCHEMA, reason="oracle returned nothing")

        name = response.name.strip()
        if not name:
            return Rejected(rejection_kind=RejectionKind.SCHEMA, reason="empty name")
        if len(name) > self.max_name_length:
            return Rejected(
                rejection_kind=RejectionKind.SCHEMA,
                reason=f"name longer than {self.max_name_length} characters",
            )

        length = len(response.description.strip())
        if length < self.min_description_length:
            return Rejected(
                rejection_kind=RejectionKind.SCHEMA,
                reason=f"description shorter than {self.min_description_length} characters",
            )
        if length > self.max_description_length:
            return Rejected(
                rejection_kind=RejectionKind.SCHEMA,
                reason=f"description longer than {self.max_description_length} characters",
            )

        if not is_terrain_type(response.terrain.strip().lower()):
            return Rejected(
                rejection_kind=RejectionKind.SCHEMA,
                reason=f"unknown terrain '{response.terrain}'",
            )

        warnings = []
        for hint in response.exit_hints:
            if not 0.0 <= hint.confidence <= 1.0:
                return Rejected(
                    rejection_kind=RejectionKind.SCHEMA,
                    reason=f"exit hint confidence {hint.confidence} outside [0, 1]",
                )
            if not normalize_direction(hint.direction).ok:
                warnings.append(f"ignored unrecognized exit hint '{hint.direction}'")

        return Accepted(warnings=warnings)


class SafetyGate(ValidationGate):
    """Content safety. Rejections are terminal and never retried."""

    name = "safety"

    def __init__(self, classifier: SafetyClassifier):
        self.classifier = classifier

    async def check(self, stub, batch, accepted, state=None) -> GateVerdict:
        text = f"{stub.response.name}\n{stub.response.description}"
        if stub.response.narrative_hook:
            text += f"\n{stub.response.narrative_hook}"

        verdict = await self.classifier.classify(text)
        if not verdict.allowed:
            return Rejected(rejection_kind=RejectionKind.SAFETY, reason=verdict.reason or "unsafe")
        return Accepted()


class ExitSanityGate(ValidationGate):
    """
    Exit proposals must be unique per direction and include the way back.

    A stub is also rejected when the prose of its parent, written in the same
    batch, blocks the direction the stub hangs off.
    """

    name = "exit_sanity"

    async def check(self, stub, batch, accepted, state=None) -> GateVerdict:
        parent = None if stub.is_root else batch.get_stub(stub.parent_id)
        if parent is not None and stub.direction in parent.blocked_directions:
            return Rejected(
                rejection_kind=RejectionKind.EXIT_SANITY,
                reason=f"{parent.stub_id} description blocks {stub.direction.value}",
            )

        directions = [p.direction for p in stub.proposals]
        duplicates = sorted({d.value for d in directions if directions.count(d) > 1})
        if duplicates:
            return Rejected(
                rejection_kind=RejectionKind.EXIT_SANITY,
                reason=f"duplicate exit directions: {', '.join(duplicates)}",
            )

        warnings = []
        if stub.return_direction is not None:
            back = next((p for p in stub.proposals if p.direction == stub.return_direction), None)
            if back is None:
                return Rejected(
                    rejection_kind=RejectionKind.EXIT_SANITY,
                    reason=f"missing return exit {stub.return_direction.value}",
                )
            if back.contradicted:
                warnings.append(
                    f"return exit {back.direction.value} kept although the description "
                    "suggests it is blocked"
                )

        terrain = TerrainType(stub.response.terrain.strip().lower())
        guidance = get_terrain_guidance(terrain)
        if not guidance.allows(len(directions)):
            warnings.append(
                f"{len(directions)} exits for {terrain.value}; usually "
                f"{guidance.min_exits}-{guidance.max_exits}"
            )

        return Accepted(warnings=warnings)


class _Neighborhood:
    """Reference descriptions and embeddings for one batch."""

    def __init__(self, references: list[tuple[str, str]]):
        self.references = references
        self.embeddings: dict[str, np.ndarray] = {}


class DuplicationGate(ValidationGate):
    """
    Rejects stubs too similar to nearby locations or to earlier stubs of the batch.

    Comparison is limited to the root's neighborhood, never the whole world.
    Uses embedding cosine similarity when an embedder is available and TF-IDF
    cosine similarity otherwise.
    """

    name = "duplication"

    def __init__(
        self,
        graph_store: GraphStore,
        embedder: Embedder | None = None,
        similarity_threshold: float = 0.9,
        neighbor_hops: int = 2,
        max_retries: int = 3,
        retry_delay: float = 0.5,
    ):
        self.graph_store = graph_store
        self.embedder = embedder
        self.similarity_threshold = similarity_threshold
        self.neighbor_hops = neighbor_hops
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def prepare(self, batch: GenerationBatch) -> _Neighborhood:
        """
        Read the root and its neighborhood.

        Raises:
            TransientInfraError: If the store keeps failing
        """
        locations, _ = await retry_operation(
            lambda: self.graph_store.neighbors(batch.root_id, self.neighbor_hops),
            f"neighbors({batch.root_id})",
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )
        root = await retry_operation(
            lambda: self.graph_store.get_location(batch.root_id),
            f"get_location({batch.root_id})",
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )
        if root is not None:
            locations = [root] + locations
        return _Neighborhood(
            [
                (location.id, location.base_description)
                for location in locations
                if location.base_description.strip()
            ]
        )

    async def check(self, stub, batch, accepted, state=None) -> GateVerdict:
        neighborhood = state if state is not None else await self.prepare(batch)
        references = neighborhood.references + [
            (other.stub_id, other.response.description)
            for other in accepted
            if other.response is not None
        ]
        if not references:
            return Accepted()

        candidate = stub.response.description
        scores = await self._similarities(
            candidate, [text for _, text in references], neighborhood.embeddings
        )
        best = int(np.argmax(scores))
        if scores[best] >= self.similarity_threshold:
            return Rejected(
                rejection_kind=RejectionKind.DUPLICATE,
                reason=(
                    f"description {scores[best]:.2f} similar to {references[best][0]} "
                    f"(threshold {self.similarity_threshold})"
                ),
            )
        return Accepted()

    async def _similarities(
        self, candidate: str, references: list[str], cache: dict[str, np.ndarray]
    ) -> np.ndarray:
        if self.embedder is not None:
            missing = list(dict.fromkeys(t for t in [candidate] + references if t not in cache))
            if missing:
                vectors = await self.embedder.batch_embed(missing)
                for text, vector in zip(missing, vectors):
                    cache[text] = np.asarray(vector, dtype=float)
            candidate_vec = cache[candidate].reshape(1, -1)
            reference_vecs = np.vstack([cache[t] for t in references])
            return cosine_similarity(candidate_vec, reference_vecs)[0]

        try:
            matrix = TfidfVectorizer().fit_transform([candidate] + references)
        except ValueError:
            # Empty vocabulary: nothing comparable
            return np.zeros(len(references))
        return cosine_similarity(matrix[0:1], matrix[1:])[0]


class ValidationGateChain:
    """Runs every gate over every stub and aggregates verdicts."""

    def __init__(self, gates: list[ValidationGate]):
        self.gates = gates

    async def validate(self, batch: GenerationBatch) -> GateResult:
        """
        Validate a batch.

        Stubs are visited in batch order, which places parents before children.

        Returns:
            GateResult with accepted stub IDs, rejections, warnings and the
            batch_failed flag (root stub rejected)
        """
        states = [await gate.prepare(batch) for gate in self.gates]

        result = GateResult()
        accepted: list[GenerationStub] = []
        rejected_ids: dict[str, Rejection] = {}

        for stub in batch.stubs:
            parent_rejection = rejected_ids.get(stub.parent_id)
            if parent_rejection is not None and not stub.is_root:
                rejection = Rejection(
                    stub_id=stub.stub_id,
                    gate=parent_rejection.gate,
                    kind=parent_rejection.kind,
                    reason=f"parent {stub.parent_id} rejected",
                )
                rejected_ids[stub.stub_id] = rejection
                result.rejected.append(rejection)
                continue

            rejection, warnings = await self._run_gates(stub, batch, accepted, states)
            result.warnings.extend(warnings)

            if rejection is None:
                accepted.append(stub)
                result.accepted.append(stub.stub_id)
                continue

            rejected_ids[stub.stub_id] = rejection
            result.rejected.append(rejection)
            logger.info(
                f"Stub {stub.stub_id} rejected by {rejection.gate}: {rejection.reason}",
                extra={"batch_id": batch.batch_id, "stub_id": stub.stub_id, "gate": rejection.gate},
            )
            if stub.is_root:
                result.batch_failed = True
                result.failure_reason = f"root rejected by {rejection.gate}: {rejection.reason}"
                result.accepted = []
                return result

        for warning in result.warnings:
            logger.warning(
                f"{warning.gate} warning for {warning.stub_id}: {warning.message}",
                extra={"batch_id": batch.batch_id, "stub_id": warning.stub_id},
            )

        return result

    async def _run_gates(
        self,
        stub: GenerationStub,
        batch: GenerationBatch,
        accepted: list[GenerationStub],
        states: list[Any],
    ) -> tuple[Rejection | None, list[GateWarning]]:
        warnings: list[GateWarning] = []
        for gate, state in zip(self.gates, states):
            verdict = await gate.check(stub, batch, accepted, state)
            if isinstance(verdict, Rejected):
                return (
                    Rejection(
                        stub_id=stub.stub_id,
                        gate=gate.name,
                        kind=verdict.rejection_kind,
                        reason=verdict.reason,
                    ),
                    warnings,
                )
            warnings.extend(
                GateWarning(stub_id=stub.stub_id, gate=gate.name, message=message)
                for message in verdict.warnings
            )
        return None, warnings
