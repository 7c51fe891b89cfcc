"""
Data models for WorldGraph.

Graph layer:
- Location, Exit: durable nodes and directed edges
- Direction, TerrainType: canonical vocabularies

Pipeline layer:
- ExpansionTrigger, GenerationBatch, GenerationStub: expansion inputs
- BatchRequest, BatchResponse: oracle exchange
- GateResult, Accepted, Rejected: validation verdicts
- ReconnectionCandidate: shortcut proposals and their state machine
- BatchSignal, ReconnectionSignal: observability payloads
"""

from worldgraph.models.direction import (
    ALL_DIRECTIONS,
    CARDINAL_DIRECTIONS,
    HORIZONTAL_DIRECTIONS,
    Direction,
    direction_order,
    opposite,
)
from worldgraph.models.exit import Exit, ExitProposal, ExitSource
from worldgraph.models.generation import (
    BatchRequest,
    BatchResponse,
    ExitHint,
    ExpansionResult,
    ExpansionStatus,
    ExpansionTrigger,
    GenerationBatch,
    GenerationStub,
    StubDescription,
    StubRequest,
)
from worldgraph.models.location import (
    DescriptionLayer,
    ExitAvailability,
    LayerType,
    Location,
    LocationState,
    Provenance,
    ProvenanceSource,
    TerrainType,
    compute_input_hash,
)
from worldgraph.models.reconnection import (
    CandidateState,
    ConsistencyAssessment,
    ConsistencyRequest,
    ConsistencyVerdict,
    ReconnectionCandidate,
    ReconnectionReport,
)
from worldgraph.models.signals import BatchOutcome, BatchSignal, ReconnectionSignal
from worldgraph.models.validation import (
    Accepted,
    GateResult,
    GateVerdict,
    GateWarning,
    Rejected,
    Rejection,
    RejectionKind,
)

__all__ = [
    # Graph
    "Direction",
    "ALL_DIRECTIONS",
    "CARDINAL_DIRECTIONS",
    "HORIZONTAL_DIRECTIONS",
    "direction_order",
    "opposite",
    "Location",
    "LocationState",
    "TerrainType",
    "LayerType",
    "DescriptionLayer",
    "Provenance",
    "ProvenanceSource",
    "ExitAvailability",
    "compute_input_hash",
    "Exit",
    "ExitSource",
    "ExitProposal",
    # Expansion
    "ExpansionTrigger",
    "ExpansionResult",
    "ExpansionStatus",
    "GenerationBatch",
    "GenerationStub",
    "BatchRequest",
    "BatchResponse",
    "StubRequest",
    "StubDescription",
    "ExitHint",
    # Validation
    "Accepted",
    "Rejected",
    "GateVerdict",
    "GateResult",
    "GateWarning",
    "Rejection",
    "RejectionKind",
    # Reconnection
    "ReconnectionCandidate",
    "CandidateState",
    "ConsistencyVerdict",
    "ConsistencyRequest",
    "ConsistencyAssessment",
    "ReconnectionReport",
    # Signals
    "BatchOutcome",
    "BatchSignal",
    "ReconnectionSignal",
]
