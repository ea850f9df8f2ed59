"""Fake CO2 monitor devices for tests."""

import threading
from collections import deque
from typing import Deque, Iterable, List, Optional, Sequence, Union

from sensor_relay.co2 import _CSTATE, _SHUFFLE, DEFAULT_KEY, FRAME_END, OP_CO2, OP_TEMPERATURE
from sensor_relay.models import Co2Sample


def make_report(op: int, value: int) -> List[int]:
    """Build a plain (unobfuscated) 8-byte monitor report."""
    hi, lo = (value >> 8) & 0xFF, value & 0xFF
    return [op, hi, lo, (op + hi + lo) & 0xFF, FRAME_END, 0, 0, 0]


def temperature_report(celsius: float) -> List[int]:
    return make_report(OP_TEMPERATURE, round((celsius + 273.15) * 16))


def co2_report(ppm: int) -> List[int]:
    return make_report(OP_CO2, ppm)


class FakeHidDevice:
    """Stands in for ``hid.device``; replays queued reports."""

    def __init__(self, reports: Iterable[Sequence[int]] = ()) -> None:
        self._reports: Deque[List[int]] = deque(list(r) for r in reports)
        self.feature_reports: List[List[int]] = []
        self.closed = False

    def send_feature_report(self, data: List[int]) -> int:
        self.feature_reports.append(list(data))
        return len(data)

    def read(self, max_length: int, timeout_ms: int = 0) -> List[int]:
        if self._reports:
            return self._reports.popleft()[:max_length]
        return []

    def close(self) -> None:
        self.closed = True


Outcome = Union[Co2Sample, Exception]


class FakeCo2Device:
    """Co2Device whose successive reads return or raise scripted outcomes.

    Once the script runs out, reads return ``default``. If ``block`` is set,
    reads wait on it first (to simulate a device that hangs).
    """

    def __init__(
        self,
        outcomes: Iterable[Outcome] = (),
        default: Co2Sample = Co2Sample(temperature=22.5, co2=600),
        block: Optional[threading.Event] = None,
    ) -> None:
        self._outcomes: Deque[Outcome] = deque(outcomes)
        self.default = default
        self.block = block
        self.reads = 0

    def read(self) -> Co2Sample:
        if self.block is not None:
            self.block.wait()
        self.reads += 1
        if self._outcomes:
            outcome = self._outcomes.popleft()
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return self.default


def encrypt(frame: Sequence[int], key: Sequence[int] = DEFAULT_KEY) -> List[int]:
    """Obfuscate a plain report the way older monitor firmware does."""
    ctmp = [((c >> 4) | (c << 4)) & 0xFF for c in _CSTATE]
    phase3 = [(frame[i] + ctmp[i]) & 0xFF for i in range(8)]
    phase2 = [((phase3[i] << 3) | (phase3[(i + 1) % 8] >> 5)) & 0xFF for i in range(8)]
    phase1 = [phase2[i] ^ key[i] for i in range(8)]
    return [phase1[o] for o in _SHUFFLE]
