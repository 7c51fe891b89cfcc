"""
Bounded worker pool for expansion triggers.
"""

import asyncio

from worldgraph.models.generation import ExpansionResult, ExpansionTrigger
from worldgraph.services.expansion_orchestrator import ExpansionOrchestrator
from worldgraph.utils.exceptions import ValidationError
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)


class ExpansionWorkerPool:
    """
    Runs expansions on a fixed number of asyncio workers.

    Each trigger is handled start to finish by one worker. Cancelling the
    future returned by submit() cancels the expansion in flight; a commit
    already under way still completes.
    """

    def __init__(self, orchestrator: ExpansionOrchestrator, max_workers: int = 4):
        if max_workers < 1:
            raise ValidationError(
                "Worker pool needs at least one worker", context={"max_workers": max_workers}
            )
        self.orchestrator = orchestrator
        self.max_workers = max_workers
        self._queue: asyncio.Queue[tuple[ExpansionTrigger, asyncio.Future]] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not worker.done() for worker in self._workers)

    def start(self) -> None:
        """Start the workers (idempotent)."""
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"expansion-worker-{i}")
            for i in range(self.max_workers)
        ]
        logger.info(f"Started {self.max_workers} expansion workers")

    def submit(self, trigger: ExpansionTrigger) -> "asyncio.Future[ExpansionResult]":
        """
        Queue a trigger.

        Returns:
            Future resolving to the ExpansionResult; cancel it to abort
        """
        if not self.running:
            self.start()
        future: asyncio.Future[ExpansionResult] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((trigger, future))
        return future

    async def join(self) -> None:
        """Wait until every queued trigger has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers; queued triggers that never started are cancelled too."""
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            future.cancel()
            self._queue.task_done()
        logger.info("Expansion workers stopped")

    async def _worker(self, index: int) -> None:
        while True:
            trigger, future = await self._queue.get()
            try:
                if future.cancelled():
                    continue
                await self._run(trigger, future)
            finally:
                self._queue.task_done()

    async def _run(self, trigger: ExpansionTrigger, future: asyncio.Future) -> None:
        task = asyncio.create_task(self.orchestrator.expand(trigger))

        def propagate_cancel(done: asyncio.Future) -> None:
            if done.cancelled():
                task.cancel()

        future.add_done_callback(propagate_cancel)
        try:
            result = await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                # The worker itself is being stopped
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                if not future.done():
                    future.cancel()
                raise
            if not future.done():
                future.cancel()
            return
        except Exception as e:
            if not future.done():
                future.set_exception(e)
            return

        if not future.done():
            future.set_result(result)
