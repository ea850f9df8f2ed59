"""Tests for the reading queue and sink writer."""

import asyncio
from datetime import datetime, timedelta, timezone

from fakes.fake_sink import RecordingSink
from sensor_relay.channel import ReadingQueue
from sensor_relay.models import Co2Reading, ThermometerReading
from sensor_relay.writer import SinkWriter

T0 = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def thermometer(i: int) -> ThermometerReading:
    return ThermometerReading(time=T0 + timedelta(seconds=10 * i), temperature=20.0 + i, humidity=40.0)


async def drain(queue: ReadingQueue, writer: SinkWriter) -> None:
    task = asyncio.create_task(writer.run())
    await asyncio.wait_for(queue.join(), timeout=2.0)
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


def test_queue_is_fifo_and_never_blocks() -> None:
    async def run() -> list:
        queue = ReadingQueue()
        for i in range(1000):
            queue.put(thermometer(i))
        assert len(queue) == 1000
        return [await queue.get() for _ in range(3)]

    first = asyncio.run(run())
    assert [r.temperature for r in first] == [20.0, 21.0, 22.0]


def test_writer_delivers_in_queue_order() -> None:
    sink = RecordingSink()

    async def run() -> None:
        queue = ReadingQueue()
        writer = SinkWriter(queue, sink)
        for i in range(5):
            queue.put(thermometer(i))
        await drain(queue, writer)

    asyncio.run(run())
    assert [r.temperature for r in sink.written] == [20.0, 21.0, 22.0, 23.0, 24.0]


def test_failed_write_does_not_block_next_reading() -> None:
    """Reading N fails, reading N+1 is still attempted and succeeds."""
    sink = RecordingSink(fail_attempts={0})

    async def run() -> SinkWriter:
        queue = ReadingQueue()
        writer = SinkWriter(queue, sink)
        queue.put(thermometer(0))
        queue.put(thermometer(1))
        await drain(queue, writer)
        return writer

    writer = asyncio.run(run())

    assert len(sink.attempts) == 2
    assert sink.written == [thermometer(1)]
    assert writer.failed == 1
    assert writer.written == 1


def test_failed_writes_are_not_retried() -> None:
    sink = RecordingSink(fail_attempts={0, 1, 2})

    async def run() -> None:
        queue = ReadingQueue()
        writer = SinkWriter(queue, sink)
        for i in range(4):
            queue.put(thermometer(i))
        await drain(queue, writer)

    asyncio.run(run())

    assert sink.attempts == [thermometer(i) for i in range(4)]
    assert sink.written == [thermometer(3)]


def test_writes_are_sequential() -> None:
    """Only one write is ever in flight against the sink."""
    sink = RecordingSink()

    async def run() -> None:
        queue = ReadingQueue()
        writer = SinkWriter(queue, sink)
        for i in range(10):
            queue.put(thermometer(i))
            queue.put(Co2Reading(time=T0, temperature=21.0, co2=500 + i))
        await drain(queue, writer)

    asyncio.run(run())

    assert sink.max_in_flight == 1
    assert len(sink.written) == 20


def test_writer_waits_for_late_readings() -> None:
    """The writer keeps consuming readings produced after it started."""
    sink = RecordingSink()

    async def run() -> None:
        queue = ReadingQueue()
        writer = SinkWriter(queue, sink)
        task = asyncio.create_task(writer.run())
        await asyncio.sleep(0.01)
        queue.put(thermometer(0))
        await asyncio.sleep(0.01)
        queue.put(thermometer(1))
        await asyncio.wait_for(queue.join(), timeout=2.0)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    asyncio.run(run())
    assert sink.written == [thermometer(0), thermometer(1)]
