"""Validation gate verdicts and aggregated results."""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class RejectionKind(str, Enum):
    SCHEMA = "schema"
    SAFETY = "safety"
    EXIT_SANITY = "exit_sanity"
    DUPLICATE = "duplicate"
    CONSISTENCY = "consistency"


class Accepted(BaseModel):
    kind: Literal["accepted"] = "accepted"
    warnings: list[str] = Field(default_factory=list)


class Rejected(BaseModel):
    kind: Literal["rejected"] = "rejected"
    rejection_kind: RejectionKind
    reason: str


GateVerdict = Annotated[Accepted | Rejected, Field(discriminator="kind")]


class Rejection(BaseModel):
    """A stub removed from its batch by a gate."""

    stub_id: str
    gate: str
    kind: RejectionKind
    reason: str


class GateWarning(BaseModel):
    """Advisory finding. Never blocks a commit."""

    stub_id: str
    gate: str
    message: str


class GateResult(BaseModel):
    """Aggregate of every gate over a batch."""

    accepted: list[str] = Field(default_factory=list, description="Accepted stub IDs in batch order")
    rejected: list[Rejection] = Field(default_factory=list)
    warnings: list[GateWarning] = Field(default_factory=list)
    batch_failed: bool = False
    failure_reason: str | None = None

    def is_accepted(self, stub_id: str) -> bool:
        return stub_id in self.accepted
