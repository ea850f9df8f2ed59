"""In-memory sink and tick helpers for pipeline tests."""

import asyncio
from typing import AsyncIterator, Iterable, List, Set

from sensor_relay.errors import SinkError
from sensor_relay.models import Reading


class RecordingSink:
    """Sink that records accepted readings and fails on chosen attempts.

    Attempts are numbered from 0 in the order write() is called.
    """

    def __init__(self, fail_attempts: Iterable[int] = ()) -> None:
        self.fail_attempts: Set[int] = set(fail_attempts)
        self.attempts: List[Reading] = []
        self.written: List[Reading] = []
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0

    async def write(self, reading: Reading) -> None:
        attempt = len(self.attempts)
        self.attempts.append(reading)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if attempt in self.fail_attempts:
                raise SinkError(f"simulated failure on attempt {attempt}")
            self.written.append(reading)
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


async def finite_ticks(count: int, spacing_s: float = 0.0) -> AsyncIterator[int]:
    """Tick source that fires ``count`` times, ``spacing_s`` apart."""
    for tick in range(count):
        if tick and spacing_s:
            await asyncio.sleep(spacing_s)
        yield tick
