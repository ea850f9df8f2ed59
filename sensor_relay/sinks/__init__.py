"""Persistence sinks for relayed readings."""

import logging
from typing import Protocol

from sensor_relay.config import Settings
from sensor_relay.errors import ConfigError
from sensor_relay.models import Reading

logger = logging.getLogger(__name__)


class Sink(Protocol):
    """Destination for readings. Only ever used by one writer at a time."""

    async def write(self, reading: Reading) -> None:
        """Persist one reading, raising SinkError on failure."""
        ...

    async def aclose(self) -> None:
        """Release the sink's connections."""
        ...


async def open_sink(settings: Settings) -> Sink:
    """Create the sink selected by ``settings.sink``.

    Called once at startup; errors propagate and abort the process.

    Raises:
        SinkError: If the sink's connections cannot be established
        ConfigError: If settings the selected sink needs are missing
    """
    if settings.sink == "influx":
        from sensor_relay.sinks.influx import InfluxLineSink

        sink: Sink = InfluxLineSink(
            settings.influx_url,
            host_id=settings.host_id,
            timeout_s=settings.sink_timeout_s,
        )
    elif settings.sink == "rest":
        from sensor_relay.sinks.rest import RestSink

        if not settings.rest_url or not settings.rest_token:
            raise ConfigError("sink 'rest' requires REST_URL and REST_TOKEN")
        sink = RestSink(
            settings.rest_url,
            settings.rest_token,
            timeout_s=settings.sink_timeout_s,
        )
    elif settings.sink == "sql":
        from sensor_relay.sinks.sql import SqlSink

        sink = await SqlSink.open(
            settings.sql_database,
            acquire_timeout_s=settings.sink_timeout_s,
        )
    else:
        raise ValueError(f"Unknown sink: {settings.sink!r}")

    logger.info(f"Opened {settings.sink} sink")
    return sink
