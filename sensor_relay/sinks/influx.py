"""HTTP line-protocol sink (InfluxDB 1.x ``/write`` endpoint)."""

import logging
from typing import Optional

import httpx

from sensor_relay.config import DEFAULT_HOST_ID
from sensor_relay.errors import SinkError
from sensor_relay.models import Co2Reading, Reading, ThermometerReading

logger = logging.getLogger(__name__)

# Reading kind -> (measurement, field) pairs written for it
METRICS = {
    ThermometerReading.kind: (("temperature", "temperature"), ("humidity", "humidity")),
    Co2Reading.kind: (("co2_temperature", "temperature"), ("co2", "co2")),
}


def format_body(reading: Reading, host_id: str = DEFAULT_HOST_ID) -> str:
    """Render a reading as two line-protocol points with second precision.

    Example:
        ``temperature,host=ubik value=21.7 1700000000\\n``
        ``humidity,host=ubik value=45.2 1700000000\\n``
    """
    timestamp = int(reading.time.timestamp())
    values = reading.values()
    return "".join(
        f"{measurement},host={host_id} value={values[field]} {timestamp}\n"
        for measurement, field in METRICS[reading.kind]
    )


class InfluxLineSink:
    """Posts each reading to a line-protocol write URL."""

    def __init__(
        self,
        url: str,
        host_id: str = DEFAULT_HOST_ID,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 10.0,
    ) -> None:
        """Initialize sink.

        Args:
            url: Full write URL including database and precision parameters
            host_id: Value of the ``host`` tag on every point
            client: Shared HTTP client; one is created if not given
            timeout_s: Request timeout for the created client
        """
        self.url = url
        self.host_id = host_id
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def write(self, reading: Reading) -> None:
        body = format_body(reading, self.host_id)
        try:
            response = await self._client.post(
                self.url,
                content=body.encode("utf-8"),
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Connection": "close",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SinkError(f"Influx write to {self.url} failed: {e}") from e

        logger.debug(f"Influx accepted {reading.kind} reading ({response.status_code})")

    async def aclose(self) -> None:
        await self._client.aclose()
