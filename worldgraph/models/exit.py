"""Directed exit between two locations."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from worldgraph.models.direction import Direction


class ExitSource(str, Enum):
    GENERATED = "generated"
    RECONNECTION = "reconnection"
    MANUAL = "manual"


class Exit(BaseModel):
    """
    Directed edge from origin to destination.

    Every committed exit has a reciprocal in the opposite direction, and a
    location holds at most one exit per direction.
    """

    origin_id: str
    destination_id: str
    direction: Direction
    travel_duration: float = Field(..., gt=0, description="Abstract travel time units")
    narrative_hook: str | None = Field(default=None, description="Short flavour text for the exit")
    source: ExitSource = Field(default=ExitSource.GENERATED)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def slot(self) -> tuple[str, Direction]:
        return (self.origin_id, self.direction)

    def reciprocal(self, narrative_hook: str | None = None) -> "Exit":
        return Exit(
            origin_id=self.destination_id,
            destination_id=self.origin_id,
            direction=self.direction.opposite,
            travel_duration=self.travel_duration,
            narrative_hook=narrative_hook,
            source=self.source,
        )

    def is_reciprocal_of(self, other: "Exit") -> bool:
        return (
            self.origin_id == other.destination_id
            and self.destination_id == other.origin_id
            and self.direction == other.direction.opposite
        )


class ExitProposal(BaseModel):
    """Exit inferred from prose, before validation."""

    direction: Direction
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str = ""
    forced: bool = Field(default=False, description="Inserted to guarantee the return path")
    contradicted: bool = Field(default=False, description="Prose argues against this exit")
