"""Environment configuration for the relay process."""

import os
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from sensor_relay import protocol
from sensor_relay.errors import ConfigError

DEFAULT_INFLUX_URL = "http://127.0.0.1:8086/write?db=temperature&precision=s"
DEFAULT_HOST_ID = "ubik"
DEFAULT_SQL_DATABASE = "readings.db"

SinkKind = Literal["influx", "rest", "sql"]


class Settings(BaseModel):
    """Validated relay settings.

    Attributes:
        serial_port: Thermometer device path.
        serial_read_timeout_s: Per-read timeout on the serial port.
        poll_interval_s: Serial poller period.
        co2_poll_interval_s: CO2 poller period.
        cycle_deadline_s: Deadline for one serial cycle.
        co2_enabled: Whether to look for a CO2 monitor at startup.
        sink: Which sink receives readings.
        influx_url: Line-protocol write endpoint (sink="influx").
        host_id: Value of the ``host`` tag (sink="influx").
        rest_url: Base URL of the REST endpoint (sink="rest").
        rest_token: Bearer token for the REST endpoint (sink="rest").
        sql_database: SQLite database path (sink="sql").
        sink_timeout_s: HTTP request timeout and pool acquire timeout.
        log_level: Logging level name.
    """

    serial_port: str = protocol.DEFAULT_DEVICE
    serial_read_timeout_s: float = Field(default=protocol.READ_TIMEOUT_S, gt=0)
    poll_interval_s: float = Field(default=protocol.POLL_INTERVAL_S, gt=0)
    co2_poll_interval_s: float = Field(default=protocol.CO2_POLL_INTERVAL_S, gt=0)
    cycle_deadline_s: float = Field(default=protocol.CYCLE_DEADLINE_S, gt=0)
    co2_enabled: bool = True
    sink: SinkKind = "influx"
    influx_url: str = DEFAULT_INFLUX_URL
    host_id: str = DEFAULT_HOST_ID
    rest_url: Optional[str] = None
    rest_token: Optional[str] = None
    sql_database: str = DEFAULT_SQL_DATABASE
    sink_timeout_s: float = Field(default=10.0, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _check_sink_settings(self) -> "Settings":
        if self.sink == "rest" and not (self.rest_url and self.rest_token):
            raise ValueError("sink 'rest' requires REST_URL and REST_TOKEN")
        if self.cycle_deadline_s >= self.poll_interval_s:
            raise ValueError(
                f"cycle_deadline_s ({self.cycle_deadline_s}) must be shorter than "
                f"poll_interval_s ({self.poll_interval_s})"
            )
        return self


# Environment variable -> Settings field
ENV_VARS = {
    "SERIAL_PORT": "serial_port",
    "SERIAL_READ_TIMEOUT_S": "serial_read_timeout_s",
    "POLL_INTERVAL_S": "poll_interval_s",
    "CO2_POLL_INTERVAL_S": "co2_poll_interval_s",
    "CYCLE_DEADLINE_S": "cycle_deadline_s",
    "CO2_ENABLED": "co2_enabled",
    "SINK": "sink",
    "INFLUX_URL": "influx_url",
    "HOST_ID": "host_id",
    "REST_URL": "rest_url",
    "REST_TOKEN": "rest_token",
    "SQL_DATABASE": "sql_database",
    "SINK_TIMEOUT_S": "sink_timeout_s",
    "LOG_LEVEL": "log_level",
}


def load_settings(**overrides: object) -> Settings:
    """Build Settings from the environment.

    Empty variables are treated as unset. Keyword overrides (e.g. from the
    command line) win over the environment; None values are ignored.

    Raises:
        ConfigError: If a value fails validation
    """
    values = {}
    for env_name, field_name in ENV_VARS.items():
        raw = os.getenv(env_name)
        if raw is None or not raw.strip():
            continue
        values[field_name] = raw.strip()

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
