"""Connector factory for supported connection strings."""

from urllib.parse import unquote, urlparse

from askdb.connectors.base import STANDARD_PROFILE, BaseConnector, PoolProfile
from askdb.connectors.mysql import MySQLConnector
from askdb.connectors.postgres import PostgresConnector
from askdb.connectors.sqlite import MEMORY_DATABASE, SQLiteConnector
from askdb.dialects import ensure_supported_dialect, get_dialect_config

_SQLITE_PREFIX = "sqlite:///"


def sqlite_database_path(connection_string: str) -> str:
    """
    Map a sqlite URL to the sqlite3 database argument.

    `sqlite:///:memory:` and anything that is not a `sqlite:///` URL map to
    an in-memory database; `sqlite:///<path>` maps to the file path.
    """
    if connection_string == f"{_SQLITE_PREFIX}{MEMORY_DATABASE}":
        return MEMORY_DATABASE
    if connection_string.startswith(_SQLITE_PREFIX):
        path = connection_string[len(_SQLITE_PREFIX):]
        return path or MEMORY_DATABASE
    return MEMORY_DATABASE


def postgres_dsn(connection_string: str) -> str:
    """Normalize SQLAlchemy-style schemes to a DSN asyncpg accepts."""
    for prefix in ("postgresql+asyncpg://", "postgres+asyncpg://"):
        if connection_string.startswith(prefix):
            return "postgresql://" + connection_string[len(prefix):]
    return connection_string


def mysql_connect_kwargs(connection_string: str, dialect: str = "mysql") -> dict:
    """Parse a mysql:// (or mariadb://) URL into mysql-connector keyword arguments."""
    parsed = urlparse(connection_string)
    if not parsed.hostname:
        raise ValueError("Invalid database URL: host is required.")
    kwargs = {
        "host": parsed.hostname,
        "port": parsed.port or get_dialect_config(dialect).port,
        "user": unquote(parsed.username) if parsed.username else "root",
        "password": unquote(parsed.password) if parsed.password else "",
    }
    database = parsed.path.lstrip("/")
    if database:
        kwargs["database"] = database
    return kwargs


def create_connector(
    dialect: str,
    connection_string: str,
    profile: PoolProfile = STANDARD_PROFILE,
) -> BaseConnector:
    """Create a typed connector instance for a dialect and connection string."""
    dialect = ensure_supported_dialect(dialect)

    if dialect == "sqlite":
        return SQLiteConnector(
            connection_string,
            database=sqlite_database_path(connection_string),
            profile=profile,
        )

    if dialect == "postgresql":
        return PostgresConnector(postgres_dsn(connection_string), profile=profile)

    # mysql and mariadb
    return MySQLConnector(
        connection_string,
        connect_kwargs=mysql_connect_kwargs(connection_string, dialect),
        dialect=dialect,
        profile=profile,
    )
