"""Driver for USB HID CO2 monitors (ZyAura/Holtek 04d9:a052).

The monitor streams 8-byte HID reports, each carrying one measurement
(operation byte, 16-bit big-endian value, checksum, 0x0D terminator). Older
firmware obfuscates the reports with a key the host chooses when opening the
device; newer firmware sends them in the clear.
"""

import logging
from typing import List, Optional, Protocol, Sequence, Tuple

from sensor_relay.errors import Co2DeviceError
from sensor_relay.models import Co2Sample

logger = logging.getLogger(__name__)

VENDOR_ID = 0x04D9
PRODUCT_ID = 0xA052

DEFAULT_KEY = (0xC4, 0xC6, 0xC0, 0x92, 0x40, 0x23, 0xDC, 0x96)

OP_CO2 = 0x50
OP_TEMPERATURE = 0x42

FRAME_END = 0x0D
REPORT_SIZE = 8

# "Htemp99e"
_CSTATE = (0x48, 0x74, 0x65, 0x6D, 0x70, 0x39, 0x39, 0x65)
_SHUFFLE = (2, 4, 0, 7, 1, 6, 5, 3)


class HidLike(Protocol):
    """Subset of ``hid.device`` used by the driver (allows test doubles)."""

    def send_feature_report(self, data: List[int]) -> int:
        ...

    def read(self, max_length: int, timeout_ms: int = 0) -> List[int]:
        ...

    def close(self) -> None:
        ...


class Co2Device(Protocol):
    """Anything the CO2 poller can read from."""

    def read(self) -> Co2Sample:
        ...


def decrypt(data: Sequence[int], key: Sequence[int] = DEFAULT_KEY) -> List[int]:
    """Undo the report obfuscation applied by older monitor firmware."""
    phase1 = [0] * REPORT_SIZE
    for i, o in enumerate(_SHUFFLE):
        phase1[o] = data[i]

    phase2 = [phase1[i] ^ key[i] for i in range(REPORT_SIZE)]

    phase3 = [
        ((phase2[i] >> 3) | (phase2[(i - 1) % REPORT_SIZE] << 5)) & 0xFF
        for i in range(REPORT_SIZE)
    ]

    ctmp = [((c >> 4) | (c << 4)) & 0xFF for c in _CSTATE]
    return [(0x100 + phase3[i] - ctmp[i]) & 0xFF for i in range(REPORT_SIZE)]


def is_valid_frame(frame: Sequence[int]) -> bool:
    return frame[4] == FRAME_END and (sum(frame[:3]) & 0xFF) == frame[3]


def decode_report(data: Sequence[int], key: Sequence[int] = DEFAULT_KEY) -> Tuple[int, int]:
    """Turn one raw report into ``(operation, value)``.

    Plain reports are used as-is; anything else is decrypted first.

    Raises:
        Co2DeviceError: If the report has the wrong size or fails its checksum
    """
    if len(data) != REPORT_SIZE:
        raise Co2DeviceError(f"Expected {REPORT_SIZE}-byte report, got {len(data)}")

    frame = list(data) if is_valid_frame(data) else decrypt(data, key)
    if not is_valid_frame(frame):
        raise Co2DeviceError(f"Bad checksum in report {bytes(data).hex()}")

    return frame[0], (frame[1] << 8) | frame[2]


class Co2Monitor:
    """Synchronous reader for one opened CO2 monitor.

    ``read`` blocks until the device has reported both a temperature and a
    CO2 value. It is meant to run on a dedicated thread.
    """

    def __init__(
        self,
        device: HidLike,
        key: Sequence[int] = DEFAULT_KEY,
        read_timeout_ms: int = 5000,
        max_reports: int = 64,
    ) -> None:
        """Initialize monitor around an already opened HID device.

        Args:
            device: Opened HID handle
            key: Obfuscation key to announce to the device
            read_timeout_ms: Timeout for each HID report read
            max_reports: Reports to consume per read before giving up
        """
        self._device = device
        self._key = tuple(key)
        self._read_timeout_ms = read_timeout_ms
        self._max_reports = max_reports

        self._device.send_feature_report([0x00, *self._key])

    @classmethod
    def open_default(cls, key: Sequence[int] = DEFAULT_KEY) -> "Co2Monitor":
        """Open the first attached monitor (requires hidapi).

        Raises:
            Co2DeviceError: If hidapi is missing or no monitor can be opened
        """
        try:
            import hid  # type: ignore
        except ImportError as e:
            raise Co2DeviceError("hidapi not installed. Run: pip install hidapi") from e

        try:
            device = hid.device()
            device.open(VENDOR_ID, PRODUCT_ID)
            monitor = cls(device, key=key)
        except OSError as e:
            raise Co2DeviceError(
                f"No CO2 monitor found at {VENDOR_ID:04x}:{PRODUCT_ID:04x}: {e}"
            ) from e

        logger.info(f"Opened CO2 monitor {VENDOR_ID:04x}:{PRODUCT_ID:04x}")
        return monitor

    def read(self) -> Co2Sample:
        """Read reports until one temperature and one CO2 value are known.

        Reports for other operations (humidity, status) are skipped.

        Raises:
            Co2DeviceError: On read failure, timeout, bad frame, or if the
                device never reports both values within max_reports reports
        """
        temperature: Optional[float] = None
        co2: Optional[int] = None

        for _ in range(self._max_reports):
            try:
                data = self._device.read(REPORT_SIZE, self._read_timeout_ms)
            except (OSError, ValueError) as e:
                raise Co2DeviceError(f"Failed to read CO2 monitor: {e}") from e

            if not data:
                raise Co2DeviceError("Timed out waiting for CO2 monitor report")

            op, value = decode_report(data, self._key)
            if op == OP_TEMPERATURE:
                temperature = value / 16.0 - 273.15
            elif op == OP_CO2:
                co2 = value

            if temperature is not None and co2 is not None:
                return Co2Sample(temperature=temperature, co2=co2)

        raise Co2DeviceError(f"No complete measurement after {self._max_reports} reports")

    def close(self) -> None:
        self._device.close()


def open_default_monitor() -> Optional[Co2Monitor]:
    """Open the default monitor, or return None if it is unavailable."""
    try:
        return Co2Monitor.open_default()
    except Co2DeviceError as e:
        logger.warning(f"CO2 monitor unavailable, CO2 polling disabled: {e}")
        return None
