"""Process wiring: pollers -> reading queue -> sink writer."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import AsyncIterator, Callable, Optional

from sensor_relay.channel import ReadingQueue
from sensor_relay.client import SensorClient
from sensor_relay.co2 import Co2Device, Co2Monitor, open_default_monitor
from sensor_relay.config import Settings
from sensor_relay.pollers import interval_ticks, run_co2_poller, run_serial_poller
from sensor_relay.sinks import Sink, open_sink
from sensor_relay.writer import SinkWriter

logger = logging.getLogger(__name__)

TickFactory = Callable[[float], AsyncIterator[int]]

# How long shutdown waits for an in-flight CO2 read before leaving the monitor open
CO2_CLOSE_TIMEOUT_S = 1.0


async def run_relay(
    settings: Settings,
    client: Optional[SensorClient] = None,
    co2_device: Optional[Co2Device] = None,
    sink: Optional[Sink] = None,
    ticks: TickFactory = interval_ticks,
) -> None:
    """Run the relay until every task ends (never, with real tick sources).

    The sink is opened before any task starts; failing to open it raises
    and aborts startup. A missing CO2 monitor only disables CO2 polling.

    Args:
        settings: Validated settings
        client: Serial client; built from settings if None
        co2_device: CO2 monitor; opened from the default device if None and
            settings.co2_enabled
        sink: Sink; opened from settings if None
        ticks: Factory turning a period into a tick source
    """
    if sink is None:
        sink = await open_sink(settings)

    if client is None:
        client = SensorClient(settings.serial_port, timeout_s=settings.serial_read_timeout_s)

    owned_monitor: Optional[Co2Monitor] = None
    if co2_device is None and settings.co2_enabled:
        owned_monitor = open_default_monitor()
        co2_device = owned_monitor

    queue = ReadingQueue()
    writer = SinkWriter(queue, sink)
    co2_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="co2-reader")

    writer_task = asyncio.create_task(writer.run(), name="sink-writer")
    poller_tasks = [
        asyncio.create_task(
            run_serial_poller(
                client,
                queue,
                ticks(settings.poll_interval_s),
                deadline_s=settings.cycle_deadline_s,
            ),
            name="serial-poller",
        ),
    ]
    if co2_device is not None:
        poller_tasks.append(
            asyncio.create_task(
                run_co2_poller(
                    co2_device,
                    queue,
                    ticks(settings.co2_poll_interval_s),
                    executor=co2_executor,
                ),
                name="co2-poller",
            )
        )
    else:
        logger.info("No CO2 monitor, CO2 polling not started")

    logger.info(f"Relaying readings from {client.path} to {settings.sink} sink")

    try:
        await asyncio.gather(*poller_tasks)
        # Finite tick sources only: deliver what is still queued, then stop
        await queue.join()
    finally:
        tasks = [writer_task, *poller_tasks]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if owned_monitor is not None:
            await _close_monitor(owned_monitor, co2_executor)
        co2_executor.shutdown(wait=False)
        await sink.aclose()
        logger.info(f"Relay stopped ({writer.written} written, {writer.failed} failed)")


async def _close_monitor(monitor: Co2Monitor, executor: ThreadPoolExecutor) -> None:
    # Queued behind any in-flight read on the same single reader thread
    loop = asyncio.get_running_loop()
    try:
        await asyncio.wait_for(
            loop.run_in_executor(executor, monitor.close), timeout=CO2_CLOSE_TIMEOUT_S
        )
    except asyncio.TimeoutError:
        logger.warning("CO2 read still in progress, monitor left open")
    except OSError as e:
        logger.warning(f"Failed to close CO2 monitor: {e}")

