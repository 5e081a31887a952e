"""
Worker Pool - parallel key resolution.

W workers share the bounded key queue and push resolved records to the
bounded result queue. A key that fails to resolve is logged and skipped;
the result queue is closed only after every worker has exited.
"""

import asyncio
import logging
from dataclasses import dataclass

from apps.exporter import queues
from apps.exporter.errors import KeyResolutionError
from apps.exporter.resolver import KeyResolver

logger = logging.getLogger(__name__)


@dataclass
class WorkerStats:
    """Per-run totals across all workers."""

    resolved: int = 0
    failed: int = 0


class WorkerPool:
    """Fan-out stage between the key queue and the result queue."""

    def __init__(self, resolver: KeyResolver, workers: int, poll_interval: float = 0.1) -> None:
        if workers < 1:
            raise ValueError("worker pool needs at least one worker")
        self.resolver = resolver
        self.workers = workers
        self.poll_interval = poll_interval
        self.stats = WorkerStats()

    async def worker(
        self,
        worker_id: int,
        key_queue: asyncio.Queue,
        result_queue: asyncio.Queue,
        cancel: asyncio.Event,
    ) -> None:
        """Resolve keys until the end marker or cancellation."""
        while True:
            try:
                key = await queues.get(key_queue, cancel, self.poll_interval)
            except queues.Cancelled:
                logger.debug("Worker stopped by cancellation", extra={"worker_id": worker_id})
                return

            if key is queues.END:
                return

            try:
                record = await self.resolver.resolve(key)
            except KeyResolutionError as e:
                self.stats.failed += 1
                logger.error("Error processing key %s: %s", key, e, extra={"key": key})
                continue

            # Records already resolved are handed over even after cancellation;
            # the writer keeps draining until the pool closes the result queue
            await result_queue.put(record)
            self.stats.resolved += 1

    async def run(
        self,
        key_queue: asyncio.Queue,
        result_queue: asyncio.Queue,
        cancel: asyncio.Event,
    ) -> WorkerStats:
        """Run all workers, then close the result queue.

        Args:
            key_queue: Bounded queue fed by the key source
            result_queue: Bounded queue drained by the stream writer
            cancel: Run-scoped cancellation event

        Returns:
            Resolved and failed key counts

        Raises:
            Exception: Any non key-scoped error raised inside a worker
        """
        tasks = [
            asyncio.create_task(self.worker(i, key_queue, result_queue, cancel), name=f"export-worker-{i}")
            for i in range(self.workers)
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        await result_queue.put(queues.END)
        logger.debug(
            "Worker pool drained",
            extra={"resolved_keys": self.stats.resolved, "failed_keys": self.stats.failed},
        )
        return self.stats
