"""Wire protocol and scheduling constants for the thermometer/hygrometer.

The sensor speaks a minimal request/response protocol over a 9600 baud
serial line: the host sends a single ``M`` byte and the sensor answers with
one ASCII line ``"<humidity> <temperature>\\n"``.
"""

from typing import Final

# ============================================================================
# Serial Line
# ============================================================================

BAUD_RATE: Final[int] = 9600

DEFAULT_DEVICE: Final[str] = "/dev/ttyACM0"

# Per-read timeout on the port, also the budget for receiving one whole
# response line. An abandoned exchange gives up within two of these.
READ_TIMEOUT_S: Final[float] = 5.0

# ============================================================================
# Framing
# ============================================================================

CMD_MEASURE: Final[bytes] = b"M"

LINE_TERMINATOR: Final[bytes] = b"\n"

DECODE_ERROR_MESSAGE: Final[str] = "Invalid string"

# Longest response line accepted before the exchange gives up on the port
MAX_LINE_BYTES: Final[int] = 256

READ_FAILED_MESSAGE: Final[str] = "Read failed"

# ============================================================================
# Timing (seconds)
# ============================================================================

POLL_INTERVAL_S: Final[float] = 10.0

CO2_POLL_INTERVAL_S: Final[float] = 10.0

CYCLE_DEADLINE_S: Final[float] = 6.0
