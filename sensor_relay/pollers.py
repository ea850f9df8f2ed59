"""Periodic sampling loops for the serial sensor and the CO2 monitor.

Each loop is driven by an async iterator of ticks. In production that is
:func:`interval_ticks`, which never ends; tests pass a finite iterator so a
loop returns once its ticks run out.
"""

import asyncio
import logging
import math
from concurrent.futures import Executor
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional

from sensor_relay import protocol
from sensor_relay.channel import ReadingQueue
from sensor_relay.client import SensorClient
from sensor_relay.co2 import Co2Device
from sensor_relay.errors import RelayError
from sensor_relay.models import Co2Reading, SensorCommand, ThermometerReading
from sensor_relay.supervisor import supervise

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def interval_ticks(period_s: float) -> AsyncIterator[int]:
    """Yield a tick immediately, then every ``period_s`` seconds.

    Ticks are scheduled at a fixed rate from the first one. If the consumer
    falls behind, missed ticks are skipped rather than delivered in a burst.

    Yields:
        Tick number, starting at 0
    """
    if period_s <= 0:
        raise ValueError(f"period_s must be positive, got {period_s}")

    loop = asyncio.get_running_loop()
    next_at = loop.time()
    tick = 0

    while True:
        delay = next_at - loop.time()
        if delay > 0:
            await asyncio.sleep(delay)

        yield tick
        tick += 1

        next_at += period_s
        behind = loop.time() - next_at
        if behind > 0:
            skipped = math.ceil(behind / period_s)
            logger.debug(f"Skipping {skipped} missed tick(s)")
            next_at += skipped * period_s


async def run_serial_poller(
    client: SensorClient,
    queue: ReadingQueue,
    ticks: AsyncIterator[int],
    deadline_s: float = protocol.CYCLE_DEADLINE_S,
    clock: Clock = utc_now,
) -> None:
    """Sample the serial sensor once per tick.

    Each cycle (measure + enqueue) runs under ``deadline_s``. A failed or
    timed-out cycle yields no reading and is not retried; the loop simply
    waits for the next tick. Cycles run one after another, so with a deadline
    shorter than the tick period a cycle never delays the next tick.

    Args:
        client: Serial sensor client
        queue: Queue receiving ThermometerReading instances
        ticks: Tick source
        deadline_s: Per-cycle deadline in seconds
        clock: Source of capture timestamps
    """
    logger.info(f"Serial poller started for {client.path}")

    async def cycle() -> None:
        reading = await client.call(SensorCommand.MEASURE)
        captured = ThermometerReading(
            time=clock(),
            temperature=reading.temperature,
            humidity=reading.humidity,
        )
        queue.put(captured)
        logger.debug(f"Thermometer reading: {captured}")

    async for _ in ticks:
        await supervise(cycle, deadline_s, name="serial cycle")

    logger.info("Serial poller stopped")


async def run_co2_poller(
    device: Co2Device,
    queue: ReadingQueue,
    ticks: AsyncIterator[int],
    executor: Optional[Executor] = None,
    clock: Clock = utc_now,
) -> None:
    """Read the CO2 monitor once per tick.

    The blocking device read runs on ``executor`` (a dedicated thread in
    production) and is not bounded by a deadline: a read that never returns
    stalls this loop only.

    Args:
        device: Opened CO2 monitor
        queue: Queue receiving Co2Reading instances
        ticks: Tick source
        executor: Executor for the blocking read; None uses the loop default
        clock: Source of capture timestamps
    """
    logger.info("CO2 poller started")
    loop = asyncio.get_running_loop()

    async for _ in ticks:
        try:
            sample = await loop.run_in_executor(executor, device.read)
            reading = Co2Reading(
                time=clock(),
                temperature=sample.temperature,
                co2=sample.co2,
            )
        except RelayError as e:
            logger.warning(f"CO2 read failed: {type(e).__name__}: {e}")
            continue
        except Exception as e:
            logger.error(f"CO2 read failed: unexpected error: {e}", exc_info=True)
            continue

        queue.put(reading)
        logger.debug(f"CO2 reading: {reading}")

    logger.info("CO2 poller stopped")
