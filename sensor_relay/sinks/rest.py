"""Authenticated REST sink."""

import logging
from typing import Optional

import httpx

from sensor_relay.errors import SinkError
from sensor_relay.models import Reading

logger = logging.getLogger(__name__)


def build_params(reading: Reading) -> dict:
    """Query-string fields for one reading (time as Unix seconds)."""
    params = {"time": int(reading.time.timestamp())}
    params.update(reading.values())
    return params


class RestSink:
    """POSTs each reading to ``<base_url>/<kind>`` with a bearer token.

    Fields travel in the query string; the request has no body. Any 2xx
    status counts as success.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def write(self, reading: Reading) -> None:
        url = f"{self.base_url}/{reading.kind}"
        try:
            response = await self._client.post(
                url, params=build_params(reading), headers=self._headers
            )
        except httpx.HTTPError as e:
            raise SinkError(f"POST {url} failed: {e}") from e

        if not response.is_success:
            raise SinkError(f"POST {url} returned {response.status_code}: {response.text[:200]}")

        logger.debug(f"REST sink accepted {reading.kind} reading ({response.status_code})")

    async def aclose(self) -> None:
        await self._client.aclose()
