"""Single consumer that relays queued readings to the sink."""

import logging

from sensor_relay.channel import ReadingQueue
from sensor_relay.errors import SinkError
from sensor_relay.models import Reading
from sensor_relay.sinks import Sink

logger = logging.getLogger(__name__)


class SinkWriter:
    """Pulls readings off the queue and writes them to the sink one at a time.

    The writer is the only user of the sink, so writes never overlap. A
    failed write is logged and dropped; the next reading is attempted as
    usual.
    """

    def __init__(self, queue: ReadingQueue, sink: Sink) -> None:
        self._queue = queue
        self._sink = sink
        self.written = 0
        self.failed = 0

    async def run(self) -> None:
        """Consume the queue forever."""
        logger.info(f"Sink writer started ({type(self._sink).__name__})")
        while True:
            reading = await self._queue.get()
            try:
                await self.write_one(reading)
            finally:
                self._queue.task_done()

    async def write_one(self, reading: Reading) -> bool:
        """Write a single reading, logging instead of raising on failure.

        Returns:
            True if the sink accepted the reading
        """
        try:
            await self._sink.write(reading)
        except SinkError as e:
            self.failed += 1
            logger.warning(
                f"Failed to write {reading.kind} reading from {reading.time.isoformat()}: {e}"
            )
            return False
        except Exception as e:
            self.failed += 1
            logger.error(f"Unexpected error writing {reading.kind} reading: {e}", exc_info=True)
            return False

        self.written += 1
        logger.debug(f"Wrote {reading.kind} reading from {reading.time.isoformat()}")
        return True
