"""Relational sink backed by SQLite through a single-connection pool.

Temperatures and humidity are stored as fixed-point integers in hundredths
(21.75 -> 2175). CO2 is stored in whole ppm. Times are ISO-8601 UTC text.
"""

import asyncio
import logging
import math
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, List, Optional, Tuple

from sensor_relay.errors import PoolTimeout, SinkError
from sensor_relay.models import Co2Reading, Reading, ThermometerReading

logger = logging.getLogger(__name__)

SCHEMA = (
    "CREATE TABLE IF NOT EXISTS thermometer ("
    "time TEXT NOT NULL, temperature INTEGER NOT NULL, humidity INTEGER NOT NULL)",
    "CREATE TABLE IF NOT EXISTS co2meter ("
    "time TEXT NOT NULL, temperature INTEGER NOT NULL, co2 INTEGER NOT NULL)",
)

INSERT_THERMOMETER = "INSERT INTO thermometer (time, temperature, humidity) VALUES (?, ?, ?)"
INSERT_CO2 = "INSERT INTO co2meter (time, temperature, co2) VALUES (?, ?, ?)"


def to_fixed_point(value: float) -> int:
    """Scale by 100 and round half away from zero."""
    return int(math.copysign(math.floor(abs(value) * 100 + 0.5), value))


def statement_for(reading: Reading) -> Tuple[str, tuple]:
    """SQL and parameters for inserting one reading."""
    time = reading.time.isoformat()
    if isinstance(reading, ThermometerReading):
        return INSERT_THERMOMETER, (
            time,
            to_fixed_point(reading.temperature),
            to_fixed_point(reading.humidity),
        )
    if isinstance(reading, Co2Reading):
        return INSERT_CO2, (time, to_fixed_point(reading.temperature), reading.co2)
    raise TypeError(f"Unsupported reading type: {type(reading).__name__}")


class ConnectionPool:
    """Fixed-size pool of database connections.

    Connections are created up front by :meth:`open`. Waiting longer than
    ``acquire_timeout_s`` for a free connection raises PoolTimeout.

    Statements run on the pool's own threads, one per connection, so a
    stalled default executor never holds up database writes.
    """

    def __init__(
        self,
        connections: List[sqlite3.Connection],
        acquire_timeout_s: float,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self._connections = list(connections)
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(len(self._connections), 1), thread_name_prefix="sql"
        )
        self._idle: "asyncio.Queue[sqlite3.Connection]" = asyncio.Queue()
        for conn in self._connections:
            self._idle.put_nowait(conn)
        self.acquire_timeout_s = acquire_timeout_s

    @classmethod
    async def open(
        cls,
        factory: Callable[[], sqlite3.Connection],
        size: int = 1,
        acquire_timeout_s: float = 5.0,
    ) -> "ConnectionPool":
        """Create ``size`` connections with ``factory``.

        Raises:
            SinkError: If any connection cannot be established
        """
        if size < 1:
            raise ValueError(f"size must be positive, got {size}")

        executor = ThreadPoolExecutor(max_workers=size, thread_name_prefix="sql")
        loop = asyncio.get_running_loop()
        connections = []
        try:
            for _ in range(size):
                connections.append(await loop.run_in_executor(executor, factory))
        except sqlite3.Error as e:
            for conn in connections:
                conn.close()
            executor.shutdown(wait=False)
            raise SinkError(f"Failed to open database connection: {e}") from e

        logger.debug(f"Opened connection pool of {size}")
        return cls(connections, acquire_timeout_s, executor)

    @property
    def size(self) -> int:
        return len(self._connections)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[sqlite3.Connection]:
        """Borrow a connection for the duration of the ``async with`` block."""
        try:
            conn = await asyncio.wait_for(self._idle.get(), timeout=self.acquire_timeout_s)
        except asyncio.TimeoutError:
            raise PoolTimeout(
                f"No database connection available after {self.acquire_timeout_s}s"
            ) from None

        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)

    async def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking database call on the pool's threads."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    def close(self) -> None:
        for conn in self._connections:
            conn.close()
        self._executor.shutdown(wait=False)
        logger.debug("Closed connection pool")


def _execute(conn: sqlite3.Connection, sql: str, params: tuple) -> None:
    with conn:
        conn.execute(sql, params)


class SqlSink:
    """Inserts one row per reading."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @classmethod
    async def open(cls, database: str, acquire_timeout_s: float = 5.0) -> "SqlSink":
        """Open a pool of one connection to ``database`` and create tables.

        Raises:
            SinkError: If the database cannot be opened or initialized
        """

        def connect() -> sqlite3.Connection:
            conn = sqlite3.connect(database, check_same_thread=False)
            with conn:
                for statement in SCHEMA:
                    conn.execute(statement)
            return conn

        pool = await ConnectionPool.open(connect, size=1, acquire_timeout_s=acquire_timeout_s)
        logger.info(f"Opened SQLite database {database}")
        return cls(pool)

    async def write(self, reading: Reading) -> None:
        sql, params = statement_for(reading)
        async with self._pool.connection() as conn:
            try:
                await self._pool.run(_execute, conn, sql, params)
            except sqlite3.Error as e:
                raise SinkError(f"Insert into database failed: {e}") from e

        logger.debug(f"Inserted {reading.kind} row {params}")

    async def aclose(self) -> None:
        self._pool.close()
