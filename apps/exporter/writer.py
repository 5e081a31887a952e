"""
Stream Writer - the single writer of the output array.

Drains the result queue and appends each record as one element of a
top-level JSON array. The opening bracket is written with the first element
(or at finalization), so a run that fails before producing anything leaves
the output empty.
"""

import asyncio
import logging

from apps.exporter import queues
from apps.exporter.errors import SinkError
from apps.exporter.progress import ProgressCounter
from utils.schemas import encode_record
from utils.sink import FileSink

logger = logging.getLogger(__name__)

OPEN = b"[\n"
SEPARATOR = b",\n"
CLOSE = b"\n]\n"
EMPTY = b"[]\n"


class StreamWriter:
    """Fan-in stage: sole consumer of the result queue, sole writer to the sink."""

    def __init__(self, sink: FileSink, counter: ProgressCounter) -> None:
        self.sink = sink
        self.counter = counter
        self._written = 0
        self._finalized = False

    @property
    def written(self) -> int:
        return self._written

    def _write(self, data: bytes) -> None:
        try:
            self.sink.write(data)
        except OSError as e:
            raise SinkError(f"failed to write output file {self.sink.path}: {e}") from e

    def write_record(self, record) -> None:
        """Append one record as an array element.

        Raises:
            SinkError: If the sink write fails
        """
        element = encode_record(record)
        prefix = OPEN if self._written == 0 else SEPARATOR
        self._write(prefix + element)
        self._written += 1
        self.counter.increment()

    def finalize(self) -> None:
        """Close the array; the output is valid JSON afterwards."""
        if self._finalized:
            return
        self._write(CLOSE if self._written else EMPTY)
        self._finalized = True

    async def run(self, result_queue: asyncio.Queue) -> int:
        """Write records until the worker pool closes the result queue.

        Returns:
            Number of records written

        Raises:
            SinkError: If any write fails
        """
        while True:
            record = await result_queue.get()
            if record is queues.END:
                break
            self.write_record(record)

        self.finalize()
        logger.debug("Stream writer finalized output", extra={"written_keys": self._written})
        return self._written
