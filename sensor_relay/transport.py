"""Serial transport layer for the thermometer/hygrometer."""

import logging
from typing import Optional, Protocol

from sensor_relay import protocol
from sensor_relay.errors import SerialIOError

logger = logging.getLogger(__name__)


class SerialLike(Protocol):
    """Protocol for serial port interface (allows test doubles)."""

    def write(self, data: bytes) -> Optional[int]:
        """Write bytes to serial port."""
        ...

    def read(self, size: int = 1) -> bytes:
        """Read up to size bytes from serial port."""
        ...

    def flush(self) -> None:
        """Flush output buffer (force transmission)."""
        ...

    def close(self) -> None:
        """Close serial port."""
        ...

    @property
    def in_waiting(self) -> int:
        """Number of bytes already received and buffered."""
        ...

    @property
    def is_open(self) -> bool:
        """Check if port is open."""
        ...


class Transport:
    """Wrapper around pyserial scoped to a single request/response exchange.

    Use as a context manager so the port is released when the exchange ends,
    whatever its outcome.
    """

    def __init__(self, serial_port: SerialLike) -> None:
        """Initialize transport with a serial port instance.

        Args:
            serial_port: Object implementing SerialLike protocol
                        (e.g., serial.Serial or FakeSerial for testing)
        """
        self._port = serial_port

    @classmethod
    def open(
        cls,
        port: str,
        baud: int = protocol.BAUD_RATE,
        timeout_s: float = protocol.READ_TIMEOUT_S,
    ) -> "Transport":
        """Open a real serial port (requires pyserial).

        Args:
            port: Serial port device name (e.g., "/dev/ttyACM0")
            baud: Baud rate. The sensor only speaks 9600.
            timeout_s: Read timeout in seconds

        Returns:
            Transport instance wrapping opened serial port

        Raises:
            SerialIOError: If port cannot be opened
        """
        try:
            import serial  # type: ignore
        except ImportError as e:
            raise SerialIOError("pyserial not installed. Run: pip install pyserial") from e

        try:
            ser = serial.Serial(
                port=port,
                baudrate=baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=timeout_s,
                rtscts=False,
                dsrdtr=False,
                xonxoff=False,
            )
            logger.debug(f"Opened serial port {port} at {baud} baud, timeout={timeout_s}s")
            return cls(ser)
        except Exception as e:
            raise SerialIOError(f"Failed to open {port} at {baud} baud: {e}") from e

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the serial port."""
        if self._port.is_open:
            self._port.close()
            logger.debug("Closed serial port")

    @property
    def is_open(self) -> bool:
        """Check if port is currently open."""
        return self._port.is_open

    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes to port.

        Raises:
            SerialIOError: If write fails
        """
        if not self._port.is_open:
            raise SerialIOError("Serial port is not open")

        try:
            self._port.write(data)
            self._port.flush()  # Force immediate transmission
            logger.debug(f"Sent {len(data)} bytes: {data!r}")
        except Exception as e:
            raise SerialIOError(f"Failed to write to port: {e}") from e

    def read_available(self) -> bytes:
        """Block for at least one byte, then drain whatever else is buffered.

        Returns:
            Received bytes, or b"" if the read timed out with nothing received

        Raises:
            SerialIOError: If port is closed or read fails
        """
        if not self._port.is_open:
            raise SerialIOError("Serial port is not open")

        try:
            data = self._port.read(1)
            if not data:
                return b""

            pending = self._port.in_waiting
            if pending:
                data += self._port.read(pending)

            logger.debug(f"Received {len(data)} bytes: {data!r}")
            return data

        except Exception as e:
            raise SerialIOError(f"Failed to read from port: {e}") from e
