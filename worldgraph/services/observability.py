"""
Observability sinks for batch and reconnection signals.
"""

from abc import ABC, abstractmethod

from worldgraph.models.signals import BatchOutcome, BatchSignal, ReconnectionSignal
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)


class ObservabilitySink(ABC):
    """Receives one signal per expansion attempt and per reconnection pass."""

    @abstractmethod
    async def emit_batch(self, signal: BatchSignal) -> None:
        pass

    @abstractmethod
    async def emit_reconnection(self, signal: ReconnectionSignal) -> None:
        pass


class LoggingObservabilitySink(ObservabilitySink):
    """Writes signals as structured log records."""

    async def emit_batch(self, signal: BatchSignal) -> None:
        message = (
            f"Batch {signal.batch_id} for {signal.root_id}: {signal.outcome.value} "
            f"({signal.accepted_count}/{signal.batch_size} accepted, "
            f"{signal.elapsed_ms:.1f}ms)"
        )
        extra = {"signal": "batch", **signal.model_dump(mode="json")}
        if signal.outcome == BatchOutcome.FAILURE:
            logger.warning(f"{message}: {signal.reason}", extra=extra)
        else:
            logger.info(message, extra=extra)

    async def emit_reconnection(self, signal: ReconnectionSignal) -> None:
        logger.info(
            f"Reconnection for {signal.location_id}: {signal.committed_count} committed, "
            f"{signal.discarded_count} discarded of {signal.candidates_considered}",
            extra={"signal": "reconnection", **signal.model_dump(mode="json")},
        )


class RecordingObservabilitySink(ObservabilitySink):
    """Keeps signals in memory, for embedding applications and tests."""

    def __init__(self):
        self.batches: list[BatchSignal] = []
        self.reconnections: list[ReconnectionSignal] = []

    async def emit_batch(self, signal: BatchSignal) -> None:
        self.batches.append(signal)

    async def emit_reconnection(self, signal: ReconnectionSignal) -> None:
        self.reconnections.append(signal)
