"""
MySQL / MariaDB Connector

Async-compatible connector using mysql-connector-python. MariaDB speaks
the same protocol and shares this connector.

The underlying driver is synchronous, so connection and query operations
are executed in worker threads via asyncio.to_thread.

mysql-connector pools have no public close(). Teardown drops the pool,
disconnects its idle sessions, and leaves connections that are still
running a query to be disconnected by that query once it returns.
"""

import asyncio
import itertools
import logging
import time
from typing import Any

try:
    import mysql.connector
    import mysql.connector.pooling
    from mysql.connector import Error as MySQLError
except ImportError:  # pragma: no cover - dependency guard
    mysql = None
    MySQLError = Exception

from askdb.connectors.base import STANDARD_PROFILE, BaseConnector, PoolProfile, RowSet
from askdb.exceptions import ConnectionError, ExecutionError

logger = logging.getLogger(__name__)

_pool_ids = itertools.count(1)


class MySQLConnector(BaseConnector):
    """MySQL / MariaDB database connector using mysql-connector-python."""

    def __init__(
        self,
        connection_string: str,
        connect_kwargs: dict[str, Any],
        dialect: str = "mysql",
        profile: PoolProfile = STANDARD_PROFILE,
    ) -> None:
        if mysql is None:
            raise ImportError(
                "mysql driver module is not installed. "
                "Install it with: pip install mysql-connector-python"
            )
        super().__init__(dialect, connection_string, profile)
        self.connect_kwargs = connect_kwargs
        self._conn = None
        # pooled connections currently running a query in a worker thread
        self._checked_out: set[Any] = set()

    async def connect(self) -> None:
        """Open the pool, or one dedicated connection for the direct profile."""
        if self._connected:
            return
        try:
            if self.profile.pooled:
                self._pool = await asyncio.to_thread(self._create_pool_sync)
            else:
                self._conn = await asyncio.to_thread(
                    mysql.connector.connect, **self._connection_kwargs()
                )
            self._connected = True
            logger.info(
                f"Connected to {self.dialect} at "
                f"{self.connect_kwargs.get('host')}:{self.connect_kwargs.get('port')}",
                extra={"profile": self.profile.name},
            )
        except MySQLError as exc:
            logger.error(f"MySQL connection failed: {exc}")
            raise ConnectionError(
                f"Failed to connect to MySQL: {exc}",
                context={"profile": self.profile.name},
            ) from exc

    async def execute(self, query: str) -> RowSet:
        """Execute SQL statement and return rows."""
        if not self._connected:
            raise ConnectionError("Not connected to database. Call connect() first.")

        start_time = time.perf_counter()
        try:
            rows, columns = await asyncio.to_thread(self._execute_sync, query)
        except MySQLError as exc:
            logger.error(f"MySQL query failed: {exc}\nQuery: {query[:200]}...")
            raise ExecutionError(f"Query execution failed: {exc}", context={"query": query}) from exc

        execution_time_ms = (time.perf_counter() - start_time) * 1000
        return RowSet(
            rows=rows,
            row_count=len(rows),
            columns=columns,
            execution_time_ms=execution_time_ms,
        )

    async def close(self) -> None:
        """Close the dedicated connection and drop the pool."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await asyncio.to_thread(conn.close)
        if self._pool is not None:
            pool, self._pool = self._pool, None
            if self._checked_out:
                logger.info(
                    f"{len(self._checked_out)} MySQL connection(s) busy at close; "
                    "they disconnect when their query returns",
                    extra={"profile": self.profile.name},
                )
            # idle sessions only; the pool has no public close()
            reset = getattr(pool, "_remove_connections", None)
            if reset is not None:
                await asyncio.to_thread(reset)
        self._connected = False

    def _connection_kwargs(self) -> dict[str, Any]:
        kwargs = {
            "autocommit": True,
            "connection_timeout": int(self.profile.timeout),
        }
        kwargs.update(self.connect_kwargs)
        return kwargs

    def _create_pool_sync(self):
        pool = mysql.connector.pooling.MySQLConnectionPool(
            pool_name=f"askdb_{self.profile.name}_{next(_pool_ids)}",
            pool_size=self.profile.max_size,
            **self._connection_kwargs(),
        )
        # mysql-connector fills the whole pool eagerly; a checkout proves it works
        conn = pool.get_connection()
        conn.close()
        return pool

    def _execute_sync(self, query: str) -> tuple[list[dict[str, Any]], list[str]]:
        pool = self._pool
        if pool is None:
            return self._run_on(self._conn, query)

        conn = pool.get_connection()
        self._checked_out.add(conn)
        try:
            return self._run_on(conn, query)
        finally:
            self._checked_out.discard(conn)
            if self._pool is pool:
                # returns the pooled connection
                conn.close()
            else:
                # close() dropped the pool while this query ran
                conn.disconnect()

    @staticmethod
    def _run_on(conn, query: str) -> tuple[list[dict[str, Any]], list[str]]:
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(query)
            if cursor.with_rows:
                rows = cursor.fetchall()
                columns = [col[0] for col in cursor.description]
                return rows, columns
            return [], []
        finally:
            cursor.close()
