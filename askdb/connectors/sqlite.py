"""
SQLite Connector

Async-compatible SQLite connector built on the standard sqlite3 module.

sqlite3 is synchronous, so statements run in worker threads via
asyncio.to_thread. SQLite has no server-side pool: every profile uses a
single connection, which also keeps an in-memory database alive between
statements.
"""

import asyncio
import logging
import sqlite3
import time
from typing import Any

from askdb.connectors.base import STANDARD_PROFILE, BaseConnector, PoolProfile, RowSet
from askdb.exceptions import ConnectionError, ExecutionError

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


class SQLiteConnector(BaseConnector):
    """SQLite database connector."""

    def __init__(
        self,
        connection_string: str,
        database: str = MEMORY_DATABASE,
        profile: PoolProfile = STANDARD_PROFILE,
    ):
        super().__init__("sqlite", connection_string, profile)
        self.database = database
        self._conn: sqlite3.Connection | None = None

    @property
    def in_memory(self) -> bool:
        return self.database == MEMORY_DATABASE

    async def connect(self) -> None:
        """Open the database file (or an in-memory database)."""
        if self._connected:
            return
        try:
            self._conn = await asyncio.to_thread(self._open_sync)
            self._connected = True
            logger.info(f"Connected to SQLite database: {self.database}")
        except sqlite3.Error as exc:
            logger.error(f"SQLite connection failed: {exc}")
            raise ConnectionError(
                f"Failed to connect to SQLite: {exc}",
                context={"database": self.database},
            ) from exc

    async def execute(self, query: str) -> RowSet:
        """Execute SQL statement and return rows."""
        if not self._connected or self._conn is None:
            raise ConnectionError("Not connected to database. Call connect() first.")

        start_time = time.perf_counter()
        try:
            rows, columns = await asyncio.to_thread(self._execute_sync, query)
        except sqlite3.Error as exc:
            logger.error(f"SQLite query failed: {exc}\nQuery: {query[:200]}...")
            raise ExecutionError(f"Query execution failed: {exc}", context={"query": query}) from exc

        execution_time_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Query executed in {execution_time_ms:.2f}ms, returned {len(rows)} rows"
        )
        return RowSet(
            rows=rows,
            row_count=len(rows),
            columns=columns,
            execution_time_ms=execution_time_ms,
        )

    async def close(self) -> None:
        """Close the connection."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await asyncio.to_thread(conn.close)
            logger.info(f"Closed SQLite database: {self.database}")
        self._connected = False

    def _open_sync(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.database,
            timeout=self.profile.timeout,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        return conn

    def _execute_sync(self, query: str) -> tuple[list[dict[str, Any]], list[str]]:
        cursor = self._conn.execute(query)
        try:
            if cursor.description is None:
                self._conn.commit()
                return [], []
            columns = [col[0] for col in cursor.description]
            rows = [dict(row) for row in cursor.fetchall()]
            return rows, columns
        finally:
            cursor.close()
