"""Fake serial port that simulates the thermometer/hygrometer firmware.

The firmware answers every ``M`` byte with one line
``"<humidity> <temperature>\\n"``. Other input bytes are ignored.
"""

import logging
from collections import deque
from typing import Deque, Iterable, List, Optional

logger = logging.getLogger(__name__)


class FakeSerial:
    """Deterministic simulator of the sensor's request/response behavior.

    Supports:
    - Default answers built from ``humidity``/``temperature``
    - Scripted raw answers (malformed lines, split lines, several lines)
    - Silent mode (no answer, reads time out with b"")
    - Fragmented delivery (``chunk_size`` bytes visible per read burst)
    - Write failures
    - Line noise (every read returns ``noise`` once answers run out)
    """

    def __init__(
        self,
        humidity: float = 45.2,
        temperature: float = 21.7,
        responses: Optional[Iterable[bytes]] = None,
        silent: bool = False,
        chunk_size: Optional[int] = None,
        fail_on_write: bool = False,
        noise: Optional[bytes] = None,
    ) -> None:
        """Initialize fake sensor.

        Args:
            humidity: Humidity reported in default answers
            temperature: Temperature reported in default answers
            responses: Raw answers used, in order, for successive M commands
                before falling back to default answers
            silent: If True, never answer
            chunk_size: If set, at most this many bytes are reported as
                waiting after the first byte of a read
            fail_on_write: If True, write() raises OSError
            noise: If set, reads with no pending answer return these bytes
                instead of timing out
        """
        self.humidity = humidity
        self.temperature = temperature
        self.silent = silent
        self.chunk_size = chunk_size
        self.fail_on_write = fail_on_write
        self.noise = noise

        self._responses: Deque[bytes] = deque(responses or [])
        self._output = bytearray()

        self.written: List[bytes] = []
        self.is_open = True
        self.close_count = 0

    def close(self) -> None:
        """Close the fake serial port."""
        self.is_open = False
        self.close_count += 1
        logger.debug("FakeSerial closed")

    def write(self, data: bytes) -> int:
        """Write data to device (from host perspective)."""
        if not self.is_open:
            raise RuntimeError("Port is closed")
        if self.fail_on_write:
            raise OSError("Input/output error")

        self.written.append(bytes(data))
        logger.debug(f"FakeSerial received: {data!r}")

        for byte in data:
            if byte == ord("M") and not self.silent:
                self._output.extend(self._next_response())

        return len(data)

    def read(self, size: int = 1) -> bytes:
        """Read up to ``size`` bytes; b"" simulates a read timeout."""
        if not self.is_open:
            raise RuntimeError("Port is closed")

        if not self._output and self.noise:
            return self.noise[:size]

        data = bytes(self._output[:size])
        del self._output[:size]
        return data

    @property
    def in_waiting(self) -> int:
        if self.chunk_size is None:
            return len(self._output)
        return min(len(self._output), self.chunk_size)

    def flush(self) -> None:
        """Flush output buffer (no-op for fake serial)."""
        pass

    def _next_response(self) -> bytes:
        if self._responses:
            return self._responses.popleft()
        return f"{self.humidity} {self.temperature}\n".encode("ascii")


class FakePortFactory:
    """Port factory for SensorClient that hands out fresh FakeSerial ports.

    Records every open so tests can check that each call opened its own
    port and closed it again.
    """

    def __init__(self, *ports: FakeSerial, **defaults) -> None:
        """Initialize factory.

        Args:
            ports: Ports returned by the first opens, in order
            defaults: FakeSerial keyword arguments for ports opened after
                ``ports`` run out
        """
        self._ports: Deque[FakeSerial] = deque(ports)
        self._defaults = defaults
        self.opened: List[FakeSerial] = []
        self.calls: List[tuple] = []

    def __call__(self, path: str, baud: int, timeout_s: float) -> FakeSerial:
        self.calls.append((path, baud, timeout_s))
        port = self._ports.popleft() if self._ports else FakeSerial(**self._defaults)
        self.opened.append(port)
        return port
