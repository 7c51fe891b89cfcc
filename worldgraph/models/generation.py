"""
Models for expansion triggers, generation batches and oracle exchanges.

Batches are ephemeral: they live for one expansion attempt and are only
persisted in logs.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from worldgraph.models.direction import Direction
from worldgraph.models.exit import Exit, ExitProposal
from worldgraph.models.location import Location, TerrainType
from worldgraph.models.validation import GateWarning, Rejection


class ExpansionTrigger(BaseModel):
    """Request to grow the graph around a root location."""

    root_id: str
    arrival_direction: Direction | None = Field(
        default=None,
        description="Side of the root the traveller came in from; it already holds the return path",
    )
    depth: int = Field(default=1, ge=1)
    target_neighbor_count: int | None = Field(default=None, ge=1)
    terrain: TerrainType | None = Field(default=None, description="Overrides the root's terrain")
    travel_duration: float | None = Field(default=None, gt=0)
    correlation_id: str | None = None

    @field_validator("arrival_direction", mode="before")
    @classmethod
    def _normalize_arrival(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ExitHint(BaseModel):
    """Exit suggested by the oracle. Values are raw and unvalidated."""

    direction: str
    confidence: float = 0.5


class StubDescription(BaseModel):
    """Oracle output for one stub. Terrain is raw text until SchemaGate checks it."""

    model_config = {"extra": "ignore"}

    stub_id: str
    name: str = ""
    description: str = ""
    terrain: str = ""
    narrative_hook: str | None = None
    exit_hints: list[ExitHint] = Field(default_factory=list)


class GenerationStub(BaseModel):
    """
    One placeholder location in a batch.

    `direction` points from the parent to the stub; `return_direction` is the
    way back and is always present in the stub's exit proposals.
    """

    stub_id: str
    parent_id: str
    direction: Direction | None = None
    depth: int = 1
    terrain_hint: TerrainType = TerrainType.OPEN_PLAIN
    travel_duration: float = Field(default=60.0, gt=0)
    is_root: bool = False

    response: StubDescription | None = None
    proposals: list[ExitProposal] = Field(default_factory=list)
    blocked_directions: list[Direction] = Field(
        default_factory=list, description="Directions the description rules out"
    )

    @property
    def return_direction(self) -> Direction | None:
        return self.direction.opposite if self.direction else None

    @property
    def placeholder_name(self) -> str:
        return f"Unexplored {self.terrain_hint.value.replace('-', ' ').title()}"


class GenerationBatch(BaseModel):
    """Stubs produced for one expansion attempt."""

    batch_id: str
    root_id: str
    arrival_direction: Direction | None = None
    depth: int = 1
    target_neighbor_count: int = 0
    stubs: list[GenerationStub] = Field(default_factory=list)
    skipped_directions: list[Direction] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def size(self) -> int:
        return len(self.stubs)

    def get_stub(self, stub_id: str) -> GenerationStub | None:
        for stub in self.stubs:
            if stub.stub_id == stub_id:
                return stub
        return None

    def descendants(self, stub_id: str) -> list[GenerationStub]:
        """All stubs reachable from stub_id through parent links."""
        found: list[GenerationStub] = []
        frontier = [stub_id]
        while frontier:
            parent = frontier.pop()
            for stub in self.stubs:
                if stub.parent_id == parent and not stub.is_root:
                    found.append(stub)
                    frontier.append(stub.stub_id)
        return found


class StubRequest(BaseModel):
    """What the oracle is asked to describe for one stub."""

    stub_id: str
    parent_name: str
    direction: Direction | None = None
    return_direction: Direction | None = None
    terrain_hint: TerrainType
    terrain_prompt_hint: str = ""
    depth: int = 1


class BatchRequest(BaseModel):
    """Single batched oracle request covering every stub of a batch."""

    batch_id: str
    root_name: str
    root_description: str
    root_terrain: TerrainType
    arrival_direction: Direction | None = None
    stubs: list[StubRequest]


class BatchResponse(BaseModel):
    """Raw oracle reply."""

    model_config = {"extra": "ignore"}

    descriptions: list[StubDescription] = Field(default_factory=list)
    model: str | None = None

    def for_stub(self, stub_id: str) -> StubDescription | None:
        for description in self.descriptions:
            if description.stub_id == stub_id:
                return description
        return None


class ExpansionStatus(str, Enum):
    EXPANDED = "expanded"  # every stub committed
    PARTIAL = "partial"  # some stubs rejected, the rest committed
    SKIPPED = "skipped"  # nothing left to expand
    FAILED = "failed"  # nothing committed


class ExpansionResult(BaseModel):
    """Outcome of one expansion attempt."""

    status: ExpansionStatus
    root_id: str
    batch_id: str | None = None
    locations: list[Location] = Field(default_factory=list)
    exits: list[Exit] = Field(default_factory=list)
    rejections: list[Rejection] = Field(default_factory=list)
    warnings: list[GateWarning] = Field(default_factory=list)
    skipped_directions: list[Direction] = Field(default_factory=list)
    message: str = ""
    elapsed_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status in (ExpansionStatus.EXPANDED, ExpansionStatus.PARTIAL)
