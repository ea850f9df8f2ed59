"""Data models for sensor readings."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import ClassVar, Union


class SensorCommand(Enum):
    """Requests understood by the serial sensor."""

    MEASURE = "measure"


@dataclass(frozen=True)
class SensorReading:
    """One decoded response line from the serial sensor.

    Attributes:
        temperature: Temperature in degrees Celsius.
        humidity: Relative humidity in percent.
    """

    temperature: float
    humidity: float


@dataclass(frozen=True)
class Co2Sample:
    """Raw result of one CO2 monitor read, before timestamping."""

    temperature: float
    co2: int


@dataclass(frozen=True)
class ThermometerReading:
    """A serial sensor reading stamped with its capture time.

    Attributes:
        time: UTC timestamp taken when the sensor answered.
        temperature: Temperature in degrees Celsius.
        humidity: Relative humidity in percent.
    """

    kind: ClassVar[str] = "thermometer"

    time: datetime
    temperature: float
    humidity: float

    def values(self) -> dict:
        return {"temperature": self.temperature, "humidity": self.humidity}


@dataclass(frozen=True)
class Co2Reading:
    """A CO2 monitor reading stamped with its capture time.

    Attributes:
        time: UTC timestamp taken when the device read returned.
        temperature: Temperature in degrees Celsius.
        co2: CO2 concentration in ppm (0-65535).
    """

    kind: ClassVar[str] = "co2meter"

    time: datetime
    temperature: float
    co2: int

    def __post_init__(self) -> None:
        if not (0 <= self.co2 <= 0xFFFF):
            raise ValueError(f"co2 must be 0-65535, got {self.co2}")

    def values(self) -> dict:
        return {"temperature": self.temperature, "co2": self.co2}


Reading = Union[ThermometerReading, Co2Reading]
