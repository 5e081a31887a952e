"""
Progress Monitor - periodic throughput reporting.

ProgressCounter is written by the stream writer and read by the monitor; the
monitor never touches the queues, so it cannot stall the pipeline.
"""

import asyncio
import logging
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressSnapshot:
    processed: int
    elapsed: float

    @property
    def rate(self) -> float:
        """Keys per second since the run started."""
        return self.processed / self.elapsed if self.elapsed > 0 else 0.0


class ProgressCounter:
    """Processed-record counter with the run's start time."""

    def __init__(self) -> None:
        self.started_at = time.monotonic()
        self._processed = 0

    @property
    def processed(self) -> int:
        return self._processed

    def increment(self) -> None:
        self._processed += 1

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(self._processed, time.monotonic() - self.started_at)


class ProgressMonitor:
    """Logs progress every ``interval`` seconds until cancelled."""

    def __init__(self, counter: ProgressCounter, interval: float = 5.0) -> None:
        self.counter = counter
        self.interval = interval

    def report(self) -> ProgressSnapshot:
        snapshot = self.counter.snapshot()
        logger.info(
            "Export progress: processed=%d, elapsed=%.0fs, rate=%.1f keys/s",
            snapshot.processed,
            snapshot.elapsed,
            snapshot.rate,
            extra={
                "processed_keys": snapshot.processed,
                "elapsed": round(snapshot.elapsed),
                "keys_per_sec": round(snapshot.rate, 2),
            },
        )
        return snapshot

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.report()
