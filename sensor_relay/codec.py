"""Line codec for the serial thermometer/hygrometer.

Encodes commands into request frames and decodes newline-terminated response
lines from a growable receive buffer.
"""

import logging
import math
import struct
from typing import Optional

from sensor_relay import protocol
from sensor_relay.errors import InvalidResponse
from sensor_relay.models import SensorCommand, SensorReading

logger = logging.getLogger(__name__)


def parse_f32(token: str) -> float:
    """Parse one numeric token, accepting only finite single precision values.

    Args:
        token: Whitespace-free token from a response line

    Returns:
        Parsed value as a Python float

    Raises:
        ValueError: If the token is not a number, is not finite, or overflows
            a 32-bit float
    """
    if not token.isascii():
        raise ValueError(f"Non-ASCII characters in {token!r}")
    if "_" in token:
        raise ValueError(f"Digit separators not accepted: {token!r}")

    value = float(token)
    if not math.isfinite(value):
        raise ValueError(f"Non-finite value: {token!r}")

    # Raises OverflowError if the value rounds to infinity in single precision
    struct.pack("<f", value)
    return value


def parse_line(line: bytes) -> SensorReading:
    """Parse one response line into a SensorReading.

    Expected format: ``<humidity> <temperature>``. Humidity comes first on
    the wire. Tokens after the second are ignored.

    Args:
        line: Raw line, terminator optional

    Returns:
        Decoded SensorReading

    Raises:
        InvalidResponse: If the line is not UTF-8 or lacks two numeric tokens
    """
    try:
        tokens = line.decode("utf-8").split()
        humidity = parse_f32(tokens[0])
        temperature = parse_f32(tokens[1])
    except (UnicodeDecodeError, IndexError, ValueError, OverflowError) as e:
        logger.debug(f"Rejected response line {line!r}: {e}")
        raise InvalidResponse(protocol.DECODE_ERROR_MESSAGE) from e

    return SensorReading(temperature=temperature, humidity=humidity)


class LineCodec:
    """Framer between SensorCommand/SensorReading and raw bytes."""

    def decode(self, src: bytearray) -> Optional[SensorReading]:
        """Take at most one complete line off the front of ``src``.

        Never consumes bytes past the first newline. When no newline is
        buffered yet, ``src`` is left untouched.

        Args:
            src: Receive buffer, modified in place

        Returns:
            Decoded reading, or None if no complete frame is buffered

        Raises:
            InvalidResponse: If the line is malformed. The line has already
                been removed from ``src`` so decoding can resume after it.
        """
        newline = src.find(protocol.LINE_TERMINATOR)
        if newline < 0:
            return None

        line = bytes(src[: newline + 1])
        del src[: newline + 1]
        return parse_line(line)

    def encode(self, command: SensorCommand, dst: bytearray) -> None:
        """Append the request frame for ``command`` to ``dst``."""
        if command is SensorCommand.MEASURE:
            dst.extend(protocol.CMD_MEASURE)
        else:
            raise ValueError(f"Unsupported command: {command!r}")
