"""SQLite store client.

One :class:`HealthDatabase` is created at startup, shared by reference by the
stores and the query service, and closed on shutdown. Every unit of work opens
its own connection inside :meth:`HealthDatabase.transaction`, which commits on
success, rolls back on any exception and always closes the connection.
Blocking sqlite3 calls run in the default executor.
"""

import asyncio
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind

from ..config import DatabaseSettings
from ..metrics import STORE_TRANSACTION_DURATION, STORE_TRANSACTIONS

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS metrics (
    name TEXT NOT NULL,
    source TEXT NOT NULL,
    date TEXT NOT NULL,
    data TEXT NOT NULL,
    PRIMARY KEY (name, source, date)
);
CREATE INDEX IF NOT EXISTS idx_metrics_name_date ON metrics(name, date);

CREATE TABLE IF NOT EXISTS workouts (
    workout_id TEXT NOT NULL PRIMARY KEY,
    name TEXT,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    duration REAL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_workouts_start_time ON workouts(start_time);

CREATE TABLE IF NOT EXISTS routes (
    workout_id TEXT NOT NULL PRIMARY KEY,
    locations TEXT NOT NULL
);
"""


class DatabaseNotConnectedError(RuntimeError):
    """Raised when the store is used before connect() or after close()."""


class HealthDatabase:
    """Transactional access to the SQLite health store."""

    def __init__(self, settings: DatabaseSettings) -> None:
        """Initialize the client without touching the database.

        Args:
            settings: Database path and lock timeout.
        """
        self._db_path = Path(settings.path)
        self._busy_timeout_ms = settings.busy_timeout_ms
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _connect(self) -> sqlite3.Connection:
        """Open a connection with explicit transaction control."""
        conn = sqlite3.connect(
            self._db_path,
            timeout=self._busy_timeout_ms / 1000,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout_ms)}")
        conn.row_factory = sqlite3.Row
        return conn

    async def connect(self) -> None:
        """Create the database file and schema if needed."""
        if self._connected:
            return

        def init_db() -> None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.executescript(SCHEMA)
            finally:
                conn.close()

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, init_db)
        self._connected = True
        logger.info("database_connected", path=str(self._db_path))

    async def close(self) -> None:
        """Stop handing out units of work."""
        if not self._connected:
            return
        self._connected = False
        logger.info("database_closed", path=str(self._db_path))

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside one write transaction.

        The write lock is taken up front so concurrent units of work queue on
        the busy timeout instead of failing on lock upgrade.
        """
        if not self._connected:
            raise DatabaseNotConnectedError("database_not_connected")
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextmanager
    def reader(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection for read-only queries."""
        if not self._connected:
            raise DatabaseNotConnectedError("database_not_connected")
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    async def run_transaction(self, work: Callable[[sqlite3.Connection], T], name: str) -> T:
        """Run ``work`` inside one transaction on the executor.

        Args:
            work: Blocking function receiving the transaction's connection.
            name: Unit of work name for logs and traces.

        Returns:
            Whatever ``work`` returns, after commit.
        """

        def run() -> T:
            with self.transaction() as conn:
                return work(conn)

        loop = asyncio.get_running_loop()
        started = time.monotonic()
        with tracer.start_as_current_span("db.transaction", kind=SpanKind.CLIENT) as span:
            span.set_attribute("db.system", "sqlite")
            span.set_attribute("db.operation", name)
            try:
                result = await loop.run_in_executor(None, run)
            except Exception as e:
                STORE_TRANSACTIONS.labels(result="rollback").inc()
                logger.warning("transaction_rolled_back", unit=name, error=str(e))
                raise
            finally:
                STORE_TRANSACTION_DURATION.observe(time.monotonic() - started)
        STORE_TRANSACTIONS.labels(result="commit").inc()
        return result

    async def run_query(self, work: Callable[[sqlite3.Connection], T]) -> T:
        """Run a blocking read ``work`` on the executor."""

        def run() -> T:
            with self.reader() as conn:
                return work(conn)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, run)
