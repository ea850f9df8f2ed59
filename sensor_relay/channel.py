"""Unbounded reading queue between the pollers and the sink writer."""

import asyncio
import logging

from sensor_relay.models import Reading

logger = logging.getLogger(__name__)


class ReadingQueue:
    """Multi-producer, single-consumer FIFO of readings.

    Producers never block: the queue has no size limit. Order is preserved
    per producer; readings from different producers interleave in arrival
    order.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Reading]" = asyncio.Queue()

    def put(self, reading: Reading) -> None:
        """Enqueue a reading without waiting."""
        self._queue.put_nowait(reading)
        logger.debug(f"Queued {reading.kind} reading, {self._queue.qsize()} pending")

    async def get(self) -> Reading:
        """Wait for and remove the oldest reading."""
        return await self._queue.get()

    def task_done(self) -> None:
        """Mark the reading last returned by :meth:`get` as handled."""
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued reading has been handled."""
        await self._queue.join()

    def __len__(self) -> int:
        return self._queue.qsize()
