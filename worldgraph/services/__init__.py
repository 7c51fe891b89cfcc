"""
Services: expansion pipeline, validation, staging and reconnection.
"""

from worldgraph.services.consistency import (
    ConsistencyChecker,
    HeuristicConsistencyChecker,
    OracleConsistencyChecker,
)
from worldgraph.services.exit_inferencer import ExitInferencer
from worldgraph.services.expansion_orchestrator import ExpansionOrchestrator
from worldgraph.services.observability import (
    LoggingObservabilitySink,
    ObservabilitySink,
    RecordingObservabilitySink,
)
from worldgraph.services.reconnection_searcher import ReconnectionSearcher
from worldgraph.services.staging_area import StagingArea, StagingHandle, StagingState
from worldgraph.services.validation_gates import (
    DuplicationGate,
    ExitSanityGate,
    SafetyGate,
    SchemaGate,
    ValidationGate,
    ValidationGateChain,
)
from worldgraph.services.worker_pool import ExpansionWorkerPool
from worldgraph.services.world_engine import WorldEngine

__all__ = [
    "ExpansionOrchestrator",
    "ExpansionWorkerPool",
    "WorldEngine",
    "ExitInferencer",
    "ValidationGate",
    "ValidationGateChain",
    "SchemaGate",
    "SafetyGate",
    "ExitSanityGate",
    "DuplicationGate",
    "StagingArea",
    "StagingHandle",
    "StagingState",
    "ReconnectionSearcher",
    "ConsistencyChecker",
    "HeuristicConsistencyChecker",
    "OracleConsistencyChecker",
    "ObservabilitySink",
    "LoggingObservabilitySink",
    "RecordingObservabilitySink",
]
