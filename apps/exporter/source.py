"""
Key Source - cursor-based key enumeration.

Walks the keyspace one SCAN page at a time and feeds the bounded key queue.
Only the current page is held in memory; the queue provides backpressure.
"""

import asyncio
import logging
from typing import AsyncIterator

from apps.exporter import queues
from apps.exporter.errors import EnumerationError
from utils.store import KeyValueStore

logger = logging.getLogger(__name__)


class KeySource:
    """Producer stage: enumerates keys and closes the key queue when done."""

    def __init__(
        self,
        store: KeyValueStore,
        batch_size: int,
        workers: int,
        poll_interval: float = 0.1,
    ) -> None:
        self.store = store
        self.batch_size = batch_size
        self.workers = workers
        self.poll_interval = poll_interval

    async def pages(self) -> AsyncIterator[list[str]]:
        """Yield key pages until the store reports cursor 0.

        Raises:
            EnumerationError: If a page fetch fails
        """
        cursor = 0
        while True:
            try:
                cursor, keys = await self.store.scan_page(cursor, self.batch_size)
            except Exception as e:
                raise EnumerationError(cursor, e) from e
            if keys:
                yield keys
            if cursor == 0:
                return

    async def run(self, key_queue: asyncio.Queue, cancel: asyncio.Event) -> int:
        """Enqueue every key, then one end marker per worker.

        Returns without closing the queue if cancellation is requested.

        Args:
            key_queue: Bounded queue shared with the worker pool
            cancel: Run-scoped cancellation event

        Returns:
            Number of keys enqueued

        Raises:
            EnumerationError: If key scanning fails
        """
        enqueued = 0
        try:
            async for page in self.pages():
                if cancel.is_set():
                    logger.info("Key enumeration stopped by cancellation", extra={"enqueued_keys": enqueued})
                    return enqueued
                for key in page:
                    await queues.put(key_queue, key, cancel, self.poll_interval)
                    enqueued += 1

            for _ in range(self.workers):
                await queues.put(key_queue, queues.END, cancel, self.poll_interval)

        except queues.Cancelled:
            logger.info("Key enumeration stopped by cancellation", extra={"enqueued_keys": enqueued})
            return enqueued

        except EnumerationError as e:
            logger.error("Error during key scanning: %s", e, extra={"enqueued_keys": enqueued})
            raise

        logger.debug("Key enumeration complete", extra={"enqueued_keys": enqueued})
        return enqueued
