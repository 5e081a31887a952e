"""
Cancellation-aware operations on bounded asyncio queues.

Blocking put/get poll the run's cancellation event every ``poll_interval``
seconds, so a stage stuck on a full or empty queue notices a cancellation
without anyone having to unblock it.
"""

import asyncio
from typing import Any

# End-of-stream marker; one per consumer closes a queue
END = object()


class Cancelled(Exception):
    """The cancellation event was set while waiting on a queue."""


async def put(queue: asyncio.Queue, item: Any, cancel: asyncio.Event, poll_interval: float) -> None:
    """Put ``item``, waiting for free space until cancellation.

    Raises:
        Cancelled: If the cancellation event is set before the item is queued
    """
    while not cancel.is_set():
        try:
            await asyncio.wait_for(queue.put(item), timeout=poll_interval)
            return
        except asyncio.TimeoutError:
            continue
    raise Cancelled()


async def get(queue: asyncio.Queue, cancel: asyncio.Event, poll_interval: float) -> Any:
    """Take the next item, waiting until one arrives or cancellation.

    Raises:
        Cancelled: If the cancellation event is set before an item is taken
    """
    while not cancel.is_set():
        try:
            return await asyncio.wait_for(queue.get(), timeout=poll_interval)
        except asyncio.TimeoutError:
            continue
    raise Cancelled()
