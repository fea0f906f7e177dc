"""
Base Database Connector

Every dialect connector implements the same small async surface, so the
resolver and the assistant never branch on the driver in use.

Subclasses provide:
- connect(): Open the pool (or the single direct connection) for a profile
- execute(): Run a statement and return rows as dicts
- close(): Release the pool or connection (idempotent)
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from askdb.dialects import get_dialect_config

logger = logging.getLogger(__name__)


# ============================================================================
# Data Models
# ============================================================================


class PoolProfile(BaseModel):
    """Pool sizing used by one connection tier."""

    name: str = Field(..., description="standard, restricted or direct")
    min_size: int = Field(..., ge=1)
    max_size: int = Field(..., ge=1)
    timeout: float = Field(..., gt=0, description="Connection acquire timeout in seconds")
    pooled: bool = Field(default=True, description="False opens one dedicated connection")

    model_config = ConfigDict(frozen=True)


STANDARD_PROFILE = PoolProfile(name="standard", min_size=2, max_size=10, timeout=30)
RESTRICTED_PROFILE = PoolProfile(name="restricted", min_size=1, max_size=2, timeout=5)
DIRECT_PROFILE = PoolProfile(name="direct", min_size=1, max_size=1, timeout=5, pooled=False)


class RowSet(BaseModel):
    """Rows returned by a statement."""

    rows: list[dict[str, Any]] = Field(..., description="Result rows")
    row_count: int = Field(..., description="Number of rows returned")
    columns: list[str] = Field(..., description="Column names")
    execution_time_ms: float = Field(..., description="Statement execution time in ms")


_CREDENTIALS = re.compile(r"(://[^:/@]+:)[^@]*@")


def mask_connection_string(connection_string: str) -> str:
    """Hide the password part of a URL for logs."""
    return _CREDENTIALS.sub(r"\1***@", connection_string)


# ============================================================================
# Base Connector
# ============================================================================


class BaseConnector(ABC):
    """
    Connection to one target database under one pool profile.

    The profile decides whether a pool is opened or a single dedicated
    connection is used.

    Usage:
        connector = create_connector("sqlite", "sqlite:///:memory:")
        await connector.connect()
        await connector.ping()

        result = await connector.execute("SELECT 1 AS one")
        print(result.rows)

        await connector.close()
    """

    def __init__(
        self,
        dialect: str,
        connection_string: str,
        profile: PoolProfile = STANDARD_PROFILE,
    ):
        dialect_config = get_dialect_config(dialect)

        self.dialect = dialect
        self.connection_string = connection_string
        self.profile = profile
        self.driver = dialect_config.driver
        self.default_port = dialect_config.port

        self._pool = None
        self._connected = False

        logger.debug(
            f"Initialized {self.__class__.__name__} for {mask_connection_string(connection_string)}",
            extra={"dialect": dialect, "profile": profile.name},
        )

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the pool or the dedicated connection.

        A second call on a connected instance does nothing.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def execute(self, query: str) -> RowSet:
        """
        Execute a SQL statement.

        Raises:
            ExecutionError: If the database rejects the statement
            ConnectionError: If not connected
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Release the pool or connection.

        Calling it twice, or before connect(), is a no-op.
        """
        pass

    async def ping(self) -> None:
        """Liveness check run by the resolver after connect()."""
        await self.execute("SELECT 1")

    @property
    def is_connected(self) -> bool:
        """True between a successful connect() and close()."""
        return self._connected

    @property
    def pooled(self) -> bool:
        return self.profile.pooled

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return (
            f"<{self.__class__.__name__} {mask_connection_string(self.connection_string)} "
            f"[{self.profile.name}] ({status})>"
        )
