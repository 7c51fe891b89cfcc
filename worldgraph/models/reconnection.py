"""Reconnection candidates and their lifecycle."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from worldgraph.models.direction import Direction
from worldgraph.models.exit import Exit
from worldgraph.models.location import Location
from worldgraph.utils.exceptions import ValidationError


class CandidateState(str, Enum):
    PROPOSED = "proposed"
    DURATION_CHECKED = "duration_checked"
    CONSISTENCY_CHECKED = "consistency_checked"
    COMMITTED = "committed"
    DISCARDED = "discarded"


_TRANSITIONS: dict[CandidateState, set[CandidateState]] = {
    CandidateState.PROPOSED: {CandidateState.DURATION_CHECKED, CandidateState.DISCARDED},
    CandidateState.DURATION_CHECKED: {
        CandidateState.CONSISTENCY_CHECKED,
        CandidateState.DISCARDED,
    },
    CandidateState.CONSISTENCY_CHECKED: {CandidateState.COMMITTED, CandidateState.DISCARDED},
    CandidateState.COMMITTED: set(),
    CandidateState.DISCARDED: set(),
}


class ConsistencyVerdict(str, Enum):
    CONSISTENT = "consistent"
    CONTRADICTORY = "contradictory"
    AMBIGUOUS = "ambiguous"


class ReconnectionCandidate(BaseModel):
    """
    Proposed shortcut between a new location and an existing one.

    candidate_duration is the travel time accumulated along the traversed path;
    original_duration is the duration of the edge the new location was generated
    through. A candidate only survives the duration gate when
    candidate_duration <= original_duration * tolerance_factor.
    """

    candidate_id: str
    source_id: str
    target_id: str
    hops: int = Field(..., ge=1)
    candidate_duration: float = Field(..., ge=0)
    original_duration: float = Field(..., gt=0)
    tolerance_factor: float = Field(default=2.0, gt=0)
    direction: Direction | None = None
    state: CandidateState = CandidateState.PROPOSED
    verdict: ConsistencyVerdict | None = None
    reason: str | None = None
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def duration_ratio(self) -> float:
        return self.candidate_duration / self.original_duration

    @property
    def within_tolerance(self) -> bool:
        return self.candidate_duration <= self.original_duration * self.tolerance_factor

    @property
    def is_terminal(self) -> bool:
        return self.state in (CandidateState.COMMITTED, CandidateState.DISCARDED)

    def advance(self, state: CandidateState) -> None:
        """
        Move to the next state.

        Raises:
            ValidationError: If the transition skips a step or goes backwards
        """
        if state not in _TRANSITIONS[self.state]:
            raise ValidationError(
                f"Illegal candidate transition {self.state.value} -> {state.value}",
                context={"candidate_id": self.candidate_id},
            )
        self.state = state
        self.updated_at = datetime.now()

    def discard(self, reason: str) -> None:
        self.advance(CandidateState.DISCARDED)
        self.reason = reason


class ConsistencyRequest(BaseModel):
    """Two locations and the direction a new exit would take between them."""

    source: Location
    target: Location
    direction: Direction


class ConsistencyAssessment(BaseModel):
    verdict: ConsistencyVerdict
    reason: str = ""


class ReconnectionReport(BaseModel):
    """Outcome of one reconnection pass for a new location."""

    location_id: str
    candidates: list[ReconnectionCandidate] = Field(default_factory=list)
    exits: list[Exit] = Field(default_factory=list)

    @property
    def committed(self) -> list[ReconnectionCandidate]:
        return [c for c in self.candidates if c.state == CandidateState.COMMITTED]
