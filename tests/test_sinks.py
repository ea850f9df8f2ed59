"""Tests for the influx, REST and SQL sinks."""

import asyncio
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import httpx
import pytest

from sensor_relay.config import Settings
from sensor_relay.errors import ConfigError, PoolTimeout, SinkError
from sensor_relay.models import Co2Reading, ThermometerReading
from sensor_relay.sinks import open_sink
from sensor_relay.sinks.influx import InfluxLineSink, format_body
from sensor_relay.sinks.rest import RestSink, build_params
from sensor_relay.sinks.sql import ConnectionPool, SqlSink, statement_for, to_fixed_point

T0 = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
T0_UNIX = 1705320000

THERMO = ThermometerReading(time=T0, temperature=21.7, humidity=45.2)
CO2 = Co2Reading(time=T0, temperature=22.5, co2=812)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ============================================================================
# Influx line protocol
# ============================================================================


def test_influx_body_for_thermometer() -> None:
    assert format_body(THERMO) == (
        f"temperature,host=ubik value=21.7 {T0_UNIX}\n"
        f"humidity,host=ubik value=45.2 {T0_UNIX}\n"
    )


def test_influx_body_for_co2_meter() -> None:
    assert format_body(CO2, host_id="lab") == (
        f"co2_temperature,host=lab value=22.5 {T0_UNIX}\n"
        f"co2,host=lab value=812 {T0_UNIX}\n"
    )


def test_influx_write_posts_line_protocol() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    url = "http://127.0.0.1:8086/write?db=temperature&precision=s"

    async def run() -> None:
        sink = InfluxLineSink(url, client=mock_client(handler))
        await sink.write(THERMO)
        await sink.aclose()

    asyncio.run(run())

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == url
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    assert request.content == format_body(THERMO).encode("utf-8")


@pytest.mark.parametrize("status", [400, 404, 500, 503])
def test_influx_error_status_raises_sink_error(status: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="database not found")

    async def run() -> None:
        sink = InfluxLineSink("http://influx.test/write", client=mock_client(handler))
        try:
            await sink.write(THERMO)
        finally:
            await sink.aclose()

    with pytest.raises(SinkError):
        asyncio.run(run())


def test_influx_connection_error_raises_sink_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    async def run() -> None:
        sink = InfluxLineSink("http://influx.test/write", client=mock_client(handler))
        try:
            await sink.write(CO2)
        finally:
            await sink.aclose()

    with pytest.raises(SinkError, match="Connection refused"):
        asyncio.run(run())


def test_influx_sink_recovers_after_failure() -> None:
    statuses = [500, 204]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(statuses.pop(0))

    async def run() -> None:
        sink = InfluxLineSink("http://influx.test/write", client=mock_client(handler))
        with pytest.raises(SinkError):
            await sink.write(THERMO)
        await sink.write(THERMO)
        await sink.aclose()

    asyncio.run(run())
    assert statuses == []


# ============================================================================
# REST
# ============================================================================


def test_rest_params() -> None:
    assert build_params(THERMO) == {"time": T0_UNIX, "temperature": 21.7, "humidity": 45.2}
    assert build_params(CO2) == {"time": T0_UNIX, "temperature": 22.5, "co2": 812}


def test_rest_write_sends_bearer_token_and_query_fields() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201)

    async def run() -> None:
        sink = RestSink("https://example.test/api/readings/", "s3cret", client=mock_client(handler))
        await sink.write(THERMO)
        await sink.write(CO2)
        await sink.aclose()

    asyncio.run(run())

    thermo_request, co2_request = requests
    assert thermo_request.method == "POST"
    assert thermo_request.url.path == "/api/readings/thermometer"
    assert thermo_request.headers["authorization"] == "Bearer s3cret"
    assert thermo_request.url.params["time"] == str(T0_UNIX)
    assert thermo_request.url.params["temperature"] == "21.7"
    assert thermo_request.url.params["humidity"] == "45.2"
    assert thermo_request.content == b""

    assert co2_request.url.path == "/api/readings/co2meter"
    assert co2_request.url.params["co2"] == "812"


@pytest.mark.parametrize("status", [200, 201, 202, 204])
def test_rest_any_2xx_is_success(status: int) -> None:
    async def run() -> None:
        sink = RestSink(
            "https://example.test", "t", client=mock_client(lambda r: httpx.Response(status))
        )
        await sink.write(THERMO)
        await sink.aclose()

    asyncio.run(run())


@pytest.mark.parametrize("status", [301, 401, 403, 422, 500])
def test_rest_non_2xx_raises_sink_error(status: int) -> None:
    async def run() -> None:
        sink = RestSink(
            "https://example.test", "t", client=mock_client(lambda r: httpx.Response(status))
        )
        try:
            await sink.write(THERMO)
        finally:
            await sink.aclose()

    with pytest.raises(SinkError, match=str(status)):
        asyncio.run(run())


# ============================================================================
# SQL
# ============================================================================


@pytest.mark.parametrize(
    "value, expected",
    [(21.7, 2170), (45.2, 4520), (0.125, 13), (-0.125, -13), (-5.5, -550), (0.0, 0)],
)
def test_to_fixed_point(value: float, expected: int) -> None:
    assert to_fixed_point(value) == expected


def test_statement_for_each_reading_kind() -> None:
    sql, params = statement_for(THERMO)
    assert sql.startswith("INSERT INTO thermometer")
    assert params == (T0.isoformat(), 2170, 4520)

    sql, params = statement_for(CO2)
    assert sql.startswith("INSERT INTO co2meter")
    assert params == (T0.isoformat(), 2250, 812)


def test_sql_sink_inserts_rows(tmp_path) -> None:
    database = str(tmp_path / "readings.db")

    async def run() -> None:
        sink = await SqlSink.open(database)
        await sink.write(THERMO)
        await sink.write(CO2)
        await sink.write(ThermometerReading(time=T0, temperature=-3.25, humidity=99.99))
        await sink.aclose()

    asyncio.run(run())

    conn = sqlite3.connect(database)
    try:
        thermo_rows = conn.execute("SELECT time, temperature, humidity FROM thermometer").fetchall()
        co2_rows = conn.execute("SELECT time, temperature, co2 FROM co2meter").fetchall()
    finally:
        conn.close()

    assert thermo_rows == [(T0.isoformat(), 2170, 4520), (T0.isoformat(), -325, 9999)]
    assert co2_rows == [(T0.isoformat(), 2250, 812)]


def test_sql_sink_open_failure_raises_sink_error(tmp_path) -> None:
    database = str(tmp_path / "no-such-dir" / "readings.db")

    with pytest.raises(SinkError):
        asyncio.run(SqlSink.open(database))


def test_sql_insert_failure_raises_sink_error(tmp_path) -> None:
    database = str(tmp_path / "readings.db")

    async def run() -> None:
        sink = await SqlSink.open(database)
        other = sqlite3.connect(database)
        other.execute("DROP TABLE co2meter")
        other.commit()
        other.close()
        try:
            with pytest.raises(SinkError):
                await sink.write(CO2)
            # The connection went back to the pool
            await sink.write(THERMO)
        finally:
            await sink.aclose()

    asyncio.run(run())


def test_pool_of_one_times_out_when_connection_is_held() -> None:
    async def run() -> None:
        pool = ConnectionPool([sqlite3.connect(":memory:")], acquire_timeout_s=0.05)
        assert pool.size == 1
        async with pool.connection():
            with pytest.raises(PoolTimeout):
                async with pool.connection():
                    pass
        async with pool.connection() as conn:
            assert conn.execute("SELECT 1").fetchone() == (1,)
        pool.close()

    asyncio.run(run())


def test_pool_rejects_zero_size() -> None:
    with pytest.raises(ValueError):
        asyncio.run(ConnectionPool.open(lambda: sqlite3.connect(":memory:"), size=0))


# ============================================================================
# Factory
# ============================================================================


def test_open_sink_selects_configured_sink(tmp_path) -> None:
    async def run() -> list:
        sinks = [
            await open_sink(Settings(sink="influx")),
            await open_sink(Settings(sink="rest", rest_url="https://example.test", rest_token="t")),
            await open_sink(Settings(sink="sql", sql_database=str(tmp_path / "r.db"))),
        ]
        for sink in sinks:
            await sink.aclose()
        return [type(sink) for sink in sinks]

    assert asyncio.run(run()) == [InfluxLineSink, RestSink, SqlSink]


def test_sql_writes_do_not_wait_on_default_executor(tmp_path) -> None:
    """Stuck serial threads in the loop's default executor do not stall the sink."""
    database = str(tmp_path / "readings.db")
    release = threading.Event()

    async def run() -> None:
        loop = asyncio.get_running_loop()
        loop.set_default_executor(ThreadPoolExecutor(max_workers=1))
        stuck = loop.run_in_executor(None, release.wait)
        try:
            sink = await SqlSink.open(database)
            await asyncio.wait_for(sink.write(THERMO), timeout=2.0)
            await sink.aclose()
        finally:
            release.set()
            await stuck

    asyncio.run(run())

    conn = sqlite3.connect(database)
    try:
        assert conn.execute("SELECT COUNT(*) FROM thermometer").fetchone() == (1,)
    finally:
        conn.close()


def test_open_sink_rejects_rest_without_credentials() -> None:
    settings = Settings.model_construct(sink="rest", rest_url=None, rest_token=None)

    with pytest.raises(ConfigError):
        asyncio.run(open_sink(settings))
