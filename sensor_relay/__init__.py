"""
sensor_relay - Relays thermometer/hygrometer and USB CO2 monitor readings
to a database or HTTP telemetry sink.
"""

from sensor_relay.channel import ReadingQueue
from sensor_relay.client import SensorClient
from sensor_relay.codec import LineCodec
from sensor_relay.errors import (
    Co2DeviceError,
    ConfigError,
    InvalidResponse,
    PoolTimeout,
    ReadFailed,
    RelayError,
    SerialIOError,
    SinkError,
)
from sensor_relay.models import (
    Co2Reading,
    Co2Sample,
    Reading,
    SensorCommand,
    SensorReading,
    ThermometerReading,
)
from sensor_relay.supervisor import CycleOutcome, supervise
from sensor_relay.writer import SinkWriter

__version__ = "0.1.0"

__all__ = [
    "LineCodec",
    "SensorClient",
    "ReadingQueue",
    "SinkWriter",
    "supervise",
    "CycleOutcome",
    "SensorCommand",
    "SensorReading",
    "Co2Sample",
    "Reading",
    "ThermometerReading",
    "Co2Reading",
    "RelayError",
    "SerialIOError",
    "InvalidResponse",
    "ReadFailed",
    "Co2DeviceError",
    "SinkError",
    "PoolTimeout",
    "ConfigError",
]
