"""Request/response client for the serial thermometer/hygrometer."""

import asyncio
import logging
import time
from typing import Callable, Optional

from sensor_relay import protocol
from sensor_relay.codec import LineCodec
from sensor_relay.errors import InvalidResponse, ReadFailed
from sensor_relay.models import SensorCommand, SensorReading
from sensor_relay.transport import SerialLike, Transport

logger = logging.getLogger(__name__)

PortFactory = Callable[[str, int, float], SerialLike]


class SensorClient:
    """Issues one command per call over a freshly opened serial port.

    The port is opened and closed around every exchange rather than held for
    the process lifetime, so a sensor that re-enumerates (USB replug) is
    picked up again on the next call.
    """

    def __init__(
        self,
        path: str = protocol.DEFAULT_DEVICE,
        baud: int = protocol.BAUD_RATE,
        timeout_s: float = protocol.READ_TIMEOUT_S,
        port_factory: Optional[PortFactory] = None,
        max_line_bytes: int = protocol.MAX_LINE_BYTES,
    ) -> None:
        """Initialize client.

        Args:
            path: Serial device path
            baud: Baud rate
            timeout_s: Per-read timeout on the port, also the budget for
                receiving a whole response line
            port_factory: Callable ``(path, baud, timeout_s) -> SerialLike``
                used instead of pyserial (for testing)
            max_line_bytes: Longest response line accepted
        """
        self.path = path
        self.baud = baud
        self.timeout_s = timeout_s
        self.max_line_bytes = max_line_bytes
        self._port_factory = port_factory
        self._codec = LineCodec()

    async def call(self, command: SensorCommand) -> SensorReading:
        """Send ``command`` and wait for exactly one decoded response.

        The blocking exchange runs in a worker thread. If the awaiting task
        is cancelled the thread finishes on its own and its result is dropped.
        The exchange gives up once ``timeout_s`` has passed without a full
        line (checked between reads) or once ``max_line_bytes`` arrive without
        a terminator, so an abandoned thread never outlives two read timeouts.

        Raises:
            SerialIOError: If the port cannot be opened, written or read
            InvalidResponse: If the response line is malformed or too long
            ReadFailed: If the stream ends, or no line arrives within
                ``timeout_s``
        """
        return await asyncio.to_thread(self.exchange, command)

    def exchange(self, command: SensorCommand) -> SensorReading:
        """Synchronous version of :meth:`call`."""
        with self._open() as transport:
            frame = bytearray()
            self._codec.encode(command, frame)
            transport.write_bytes(bytes(frame))

            deadline = time.monotonic() + self.timeout_s
            buffer = bytearray()
            while True:
                reading = self._codec.decode(buffer)
                if reading is not None:
                    logger.debug(f"Sensor reading: {reading}")
                    return reading

                if len(buffer) > self.max_line_bytes:
                    logger.debug(f"No line terminator in {len(buffer)} bytes")
                    raise InvalidResponse(protocol.DECODE_ERROR_MESSAGE)
                if time.monotonic() > deadline:
                    raise ReadFailed(protocol.READ_FAILED_MESSAGE)

                chunk = transport.read_available()
                if not chunk:
                    raise ReadFailed(protocol.READ_FAILED_MESSAGE)
                buffer.extend(chunk)

    def _open(self) -> Transport:
        if self._port_factory is not None:
            return Transport(self._port_factory(self.path, self.baud, self.timeout_s))
        return Transport.open(self.path, self.baud, self.timeout_s)
