"""
Export Pipeline - coordinates one export run.

Data flow:
    KeySource -> key queue -> WorkerPool (xW) -> result queue -> StreamWriter -> sink

Both queues are bounded by the batch size. The coordinator owns the queues,
the processed counter and the cancellation event, and drives the run through
IDLE -> RUNNING -> COMPLETED | CANCELLED | FAILED.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from apps.exporter.errors import ExportCancelled, SinkError
from apps.exporter.progress import ProgressCounter, ProgressMonitor
from apps.exporter.resolver import KeyResolver
from apps.exporter.source import KeySource
from apps.exporter.workers import WorkerPool
from apps.exporter.writer import StreamWriter
from utils.config import ExportConfig
from utils.sink import FileSink
from utils.store import KeyValueStore

logger = logging.getLogger(__name__)


class RunState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class ExportSummary:
    """Totals reported when a run completes."""

    total_keys: int
    failed_keys: int
    duration: float

    @property
    def keys_per_sec(self) -> float:
        return self.total_keys / self.duration if self.duration > 0 else 0.0


class ExportPipeline:
    """
    Runs one export from a KeyValueStore into a FileSink.

    Handles:
    - Stage wiring over bounded queues
    - Cooperative cancellation via cancel()
    - Fail-fast shutdown on the first fatal error
    """

    def __init__(self, store: KeyValueStore, sink: FileSink, config: ExportConfig) -> None:
        self.store = store
        self.sink = sink
        self.config = config
        self.counter = ProgressCounter()
        self._cancel = asyncio.Event()
        self._cancel_reason = "cancelled"
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def processed(self) -> int:
        return self.counter.processed

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cooperative cancellation of the running export."""
        if not self._cancel.is_set():
            self._cancel_reason = reason
            logger.warning("Export cancellation requested", extra={"reason": reason})
            self._cancel.set()

    async def run(self) -> ExportSummary:
        """
        Execute the export.

        Returns:
            Summary of the completed run

        Raises:
            ExportCancelled: If cancel() was called during the run
            SinkError: If the output cannot be opened or written
            EnumerationError: If key scanning fails
            RuntimeError: If the pipeline has already been run
        """
        if self._state is not RunState.IDLE:
            raise RuntimeError(f"export pipeline already {self._state.value}")
        self._state = RunState.RUNNING

        logger.info(
            "Starting Redis export",
            extra={
                "output_file": self.config.output_file,
                "workers": self.config.workers,
                "batch_size": self.config.batch_size,
            },
        )

        try:
            self.sink.open()
        except OSError as e:
            self._state = RunState.FAILED
            raise SinkError(f"failed to create output file {self.config.output_file}: {e}") from e

        try:
            return await self._execute()
        finally:
            self.sink.close()

    async def _execute(self) -> ExportSummary:
        key_queue: asyncio.Queue = asyncio.Queue(maxsize=self.config.batch_size)
        result_queue: asyncio.Queue = asyncio.Queue(maxsize=self.config.batch_size)

        source = KeySource(self.store, self.config.batch_size, self.config.workers, self.config.poll_interval)
        pool = WorkerPool(KeyResolver(self.store), self.config.workers, self.config.poll_interval)
        self.counter = ProgressCounter()
        writer = StreamWriter(self.sink, self.counter)
        monitor = ProgressMonitor(self.counter, self.config.progress_interval)

        stages = [
            asyncio.create_task(source.run(key_queue, self._cancel), name="export-source"),
            asyncio.create_task(pool.run(key_queue, result_queue, self._cancel), name="export-workers"),
            asyncio.create_task(writer.run(result_queue), name="export-writer"),
        ]
        monitor_task = asyncio.create_task(monitor.run(), name="export-progress")

        try:
            done, pending = await asyncio.wait(stages, return_when=asyncio.FIRST_EXCEPTION)
            failure: Optional[BaseException] = next(
                (t.exception() for t in done if not t.cancelled() and t.exception() is not None),
                None,
            )
            if failure is not None:
                await self._stop(pending)
                self._state = RunState.FAILED
                logger.error(
                    "Export failed",
                    extra={"error": str(failure), "processed_keys": self.counter.processed},
                )
                raise failure

        except asyncio.CancelledError:
            await self._stop(stages)
            self._state = RunState.CANCELLED
            raise

        finally:
            await self._stop([monitor_task])

        snapshot = self.counter.snapshot()
        summary = ExportSummary(
            total_keys=writer.written,
            failed_keys=pool.stats.failed,
            duration=snapshot.elapsed,
        )

        if self._cancel.is_set():
            self._state = RunState.CANCELLED
            logger.warning(
                "Export cancelled, output contains a partial key set",
                extra={"reason": self._cancel_reason, "total_keys": summary.total_keys},
            )
            raise ExportCancelled(self._cancel_reason)

        self._state = RunState.COMPLETED
        logger.info(
            "Export completed successfully",
            extra={
                "total_keys": summary.total_keys,
                "failed_keys": summary.failed_keys,
                "total_duration": f"{summary.duration:.0f}s",
                "avg_keys_per_sec": round(summary.keys_per_sec, 2),
            },
        )
        return summary

    @staticmethod
    async def _stop(tasks) -> None:
        """Cancel tasks and wait for them to unwind."""
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
