"""
SQL Assistant

Façade that owns the database connector and the generation provider, and
exposes the two entry points used by callers:

- query(question)          -> QueryResult  (flat, single-shot)
- process_query(question)  -> ChainResult  (full staged pipeline)

Lifecycle is explicit: UNINITIALIZED -> READY -> CLOSED. Both entry points
initialize on first use; any call after disconnect() fails fast.

Usage:
    async with SQLAssistant(database_url="sqlite:///shop.db") as assistant:
        result = await assistant.process_query("Which customer spent the most?")
        print(result.formatted_response)
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from askdb.config import Settings, get_settings
from askdb.connectors.base import BaseConnector
from askdb.connectors.resolver import ConnectionResolver
from askdb.detection import DialectDecision, resolve_dialect
from askdb.dialects import (
    DatabaseConfig,
    build_connection_string,
    get_schema_query,
    validate_database_config,
)
from askdb.exceptions import (
    AskDBError,
    ConfigurationError,
    ConnectionError,
    ExecutionError,
    GenerationError,
    LifecycleError,
)
from askdb.llm.base import BaseLLMProvider
from askdb.llm.factory import LLMProviderFactory
from askdb.pipeline.engine import QueryPipeline, get_chain_metrics
from askdb.pipeline.models import (
    ChainMetrics,
    ChainResult,
    ColumnSchema,
    QueryResult,
    SchemaInfo,
    TableSchema,
)
from askdb.prompts import PromptBuilder
from askdb.safety import SafetyValidator, lint_sql_syntax

logger = logging.getLogger(__name__)


class AssistantState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class AssistantOptions(BaseModel):
    """Constructor options. Unset values fall back to Settings."""

    api_key: str | None = Field(None, description="API key for the generation provider")
    database_url: str | None = Field(None, description="Target database connection string")
    dialect: str | None = Field(None, description="Explicit dialect (skips detection)")
    db_config: DatabaseConfig | None = Field(None, description="Structured connection settings")
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    max_results: int | None = Field(None, gt=0)
    provider: Literal["google", "openai", "anthropic"] | None = None


def _is_nullable(value: Any) -> bool:
    if isinstance(value, str):
        return value.upper() == "YES"
    return value is not None and value == 0


def parse_schema_rows(rows: list[Mapping[str, Any]]) -> SchemaInfo:
    """
    Group introspection rows into tables.

    Column keys are matched case-insensitively (MySQL may return
    TABLE_NAME). `sqlite_master` style keys (tbl_name, name, type,
    notnull) are accepted as fallbacks. A column is nullable when its
    nullable value is "YES", 0 or False.
    """
    tables: dict[str, TableSchema] = {}

    for raw_row in rows:
        if not isinstance(raw_row, Mapping):
            continue
        row = {str(key).lower(): value for key, value in raw_row.items()}

        table_name = row.get("table_name") or row.get("tbl_name")
        column_name = row.get("column_name") or row.get("name")
        if not table_name or not column_name:
            continue
        data_type = row.get("data_type") or row.get("type") or ""
        nullable = row["is_nullable"] if "is_nullable" in row else row.get("notnull")

        table = tables.setdefault(str(table_name), TableSchema(name=str(table_name)))
        table.columns.append(
            ColumnSchema(name=str(column_name), type=str(data_type), nullable=_is_nullable(nullable))
        )

    return SchemaInfo(tables=list(tables.values()))


class SQLAssistant:
    """
    Natural-language to SQL assistant.

    Attributes:
        settings: Application settings used for defaults
        max_results: Row limit requested from the generation service
    """

    def __init__(
        self,
        options: AssistantOptions | None = None,
        *,
        llm_provider: BaseLLMProvider | None = None,
        settings: Settings | None = None,
        resolver_factory: Callable[[str], ConnectionResolver] = ConnectionResolver,
        **kwargs: Any,
    ):
        """
        Build the assistant. No I/O happens until initialize().

        Args:
            options: AssistantOptions; alternatively pass its fields as kwargs
            llm_provider: Pre-built generation provider (skips the factory)
            settings: Settings instance (defaults to get_settings())
            resolver_factory: Builds the connection resolver for a dialect

        Raises:
            ConfigurationError: If no API key is configured for the provider
            UnsupportedDialectError: If an explicit dialect is not supported
        """
        if options is None:
            options = AssistantOptions(**kwargs)
        elif kwargs:
            options = options.model_copy(update=kwargs)

        self.settings = settings or get_settings()
        self.max_results = options.max_results or self.settings.assistant.max_results

        self._provider = llm_provider or self._build_provider(options)

        database_url = options.database_url or self.settings.database.url
        self._dialect, self._detection = resolve_dialect(
            options.dialect,
            database_url,
            self.settings.database.environment_snapshot(),
        )

        self._validator = SafetyValidator(self.settings.assistant.max_question_length)
        self._prompts = PromptBuilder(self._dialect)
        self._resolver_factory = resolver_factory
        self._database_url = database_url
        self._db_config = options.db_config or self._db_config_from_settings()

        self._connector: BaseConnector | None = None
        self._connection_method: str | None = None
        self._pipeline: QueryPipeline | None = None
        self._state = AssistantState.UNINITIALIZED
        # concurrent first calls share a single connection attempt
        self._init_lock = asyncio.Lock()

        logger.info(
            f"SQLAssistant created for {self._dialect}",
            extra={"dialect": self._dialect, "provider": self._provider.provider_name},
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> AssistantState:
        return self._state

    @property
    def dialect(self) -> str:
        return self._dialect

    @property
    def detection(self) -> DialectDecision | None:
        """Detector decision, or None when the dialect was given explicitly."""
        return self._detection

    @property
    def connection_method(self) -> str | None:
        return self._connection_method

    @property
    def connector(self) -> BaseConnector | None:
        return self._connector

    @property
    def provider(self) -> BaseLLMProvider:
        return self._provider

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Resolve a connection and move to READY.

        Raises:
            LifecycleError: If not called from UNINITIALIZED
            ConfigurationError: If no connection settings are available
            ConnectionError: If every connection tier failed
        """
        async with self._init_lock:
            await self._open_connection()

    async def _open_connection(self) -> None:
        if self._state is not AssistantState.UNINITIALIZED:
            raise LifecycleError(
                f"Cannot initialize assistant in state {self._state.value}",
                context={"state": self._state.value},
            )

        connection_string = self._connection_string()
        resolver = self._resolver_factory(self._dialect)
        outcome = await resolver.resolve(connection_string)

        if not outcome.success:
            classification = outcome.classification
            diagnostics = "\n".join(outcome.diagnostics) or "No diagnostics available"
            raise ConnectionError(
                f"Failed to connect to database: {outcome.error}\n"
                f"Connection diagnostics:\n{diagnostics}",
                error_type=classification.error_type if classification else "unknown",
                diagnostics=outcome.diagnostics,
                suggestions=classification.suggestions if classification else [],
                context={"dialect": self._dialect},
            )

        if self._state is AssistantState.CLOSED:
            # disconnect() ran while the resolver was connecting
            await outcome.handle.close()
            raise LifecycleError("Assistant is closed", context={"state": self._state.value})

        self._connector = outcome.handle
        self._connection_method = outcome.method
        self._pipeline = QueryPipeline(self, self._dialect, self._validator)
        self._state = AssistantState.READY

        logger.info(
            f"Assistant ready ({self._dialect}, {outcome.method} connection)",
            extra={"dialect": self._dialect, "method": outcome.method},
        )

    async def disconnect(self) -> None:
        """Release the connector and provider. Safe to call more than once."""
        if self._state is AssistantState.CLOSED:
            return

        connector, self._connector = self._connector, None
        self._pipeline = None
        self._state = AssistantState.CLOSED

        try:
            if connector is not None:
                await connector.close()
        finally:
            await self._provider.close()
        logger.info("Assistant disconnected", extra={"dialect": self._dialect})

    async def __aenter__(self) -> "SQLAssistant":
        await self._ensure_ready()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def query(self, question: str) -> QueryResult:
        """
        Answer a question with a flat result.

        Errors raised by validation, generation or execution are returned
        as a failed QueryResult rather than raised.

        Raises:
            LifecycleError: If the assistant is closed
        """
        self._reject_if_closed()
        try:
            await self._ensure_ready()
            self._validator.ensure_question_is_safe(question)

            schema = await self.get_schema_info()
            sql_query = await self.generate_sql_query(question, schema.to_prompt_text())
            data = await self.run_sql(sql_query)
        except AskDBError as e:
            logger.error(f"Query failed: {e.message}", extra={"error_type": type(e).__name__})
            return QueryResult(success=False, error=e.message)

        return QueryResult(success=True, data=data, query=sql_query)

    async def process_query(self, question: str) -> ChainResult:
        """Answer a question through the staged pipeline."""
        await self._ensure_ready()
        return await self._pipeline.execute(question)

    @staticmethod
    def get_chain_metrics(result: ChainResult) -> ChainMetrics:
        return get_chain_metrics(result)

    # ------------------------------------------------------------------
    # Pipeline backend
    # ------------------------------------------------------------------

    async def get_schema_info(self) -> SchemaInfo:
        """Introspect tables and columns of the connected database."""
        connector = self._require_connector()
        try:
            result = await connector.execute(get_schema_query(self._dialect))
        except Exception as e:
            # driver errors (pool timeouts, dropped sockets) are not AskDBErrors
            message = e.message if isinstance(e, AskDBError) else str(e) or type(e).__name__
            logger.error(f"Error fetching schema: {message}")
            raise ExecutionError(
                f"Failed to fetch database schema: {message}",
                context={"dialect": self._dialect},
            ) from e

        schema = parse_schema_rows(result.rows)
        logger.debug(
            f"Schema loaded: {len(schema.tables)} tables",
            extra={"tables": [table.name for table in schema.tables]},
        )
        return schema

    async def generate_sql_query(self, question: str, schema_text: str) -> str:
        """
        Ask the generation service for a query and check it is read-only.

        Raises:
            GenerationError: If the provider fails or returns nothing
            UnauthorizedQueryError: If the statement is not a SELECT
        """
        prompt = self._prompts.build_sql_prompt(question, schema_text, self.max_results)

        logger.info(
            f"Generating SQL query with {self._provider.provider_name}",
            extra={"provider": self._provider.provider_name, "dialect": self._dialect},
        )
        try:
            raw_query = await self._provider.complete(prompt)
        except AskDBError:
            raise
        except Exception as e:
            raise GenerationError(
                f"SQL generation failed: {e}",
                context={"provider": self._provider.provider_name},
            ) from e

        if not raw_query or not raw_query.strip():
            raise GenerationError(
                "The generation service returned an empty response",
                context={"provider": self._provider.provider_name},
            )
        logger.debug(f"Raw generated query: {raw_query}")

        sql_query = self._validator.ensure_sql_is_safe(raw_query)

        for warning in lint_sql_syntax(sql_query, self._dialect):
            logger.warning(f"SQL syntax warning: {warning}", extra={"dialect": self._dialect})

        return sql_query

    async def run_sql(self, sql: str) -> list[dict[str, Any]]:
        """Execute SQL on the owned connector."""
        connector = self._require_connector()
        try:
            result = await connector.execute(sql)
        except AskDBError:
            raise
        except Exception as e:
            raise ExecutionError(f"Query execution failed: {e}", context={"query": sql}) from e
        return result.rows

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_provider(self, options: AssistantOptions) -> BaseLLMProvider:
        provider_name = options.provider or self.settings.llm.default_provider
        updates: dict[str, Any] = {}
        if options.api_key:
            updates[f"{provider_name}_api_key"] = options.api_key
        if options.temperature is not None:
            updates["temperature"] = options.temperature
        llm_settings = self.settings.llm.model_copy(update=updates)
        return LLMProviderFactory.create_provider(provider_name, llm_settings)

    def _db_config_from_settings(self) -> DatabaseConfig | None:
        db = self.settings.database
        if not any([db.host, db.name, db.path, db.user]):
            return None
        return DatabaseConfig(
            user=db.user,
            password=db.password,
            host=db.host,
            port=db.port,
            database=db.name,
            filename=db.path,
        )

    def _connection_string(self) -> str:
        if self._database_url:
            return self._database_url
        if self._db_config is not None:
            validate_database_config(self._dialect, self._db_config)
            return build_connection_string(self._dialect, self._db_config)
        raise ConfigurationError("Either database_url or db_config is required")

    def _reject_if_closed(self) -> None:
        if self._state is AssistantState.CLOSED:
            raise LifecycleError("Assistant is closed", context={"state": self._state.value})

    async def _ensure_ready(self) -> None:
        self._reject_if_closed()
        if self._state is AssistantState.READY:
            return
        async with self._init_lock:
            # another caller may have connected, or closed, while we waited
            self._reject_if_closed()
            if self._state is AssistantState.UNINITIALIZED:
                await self._open_connection()

    def _require_connector(self) -> BaseConnector:
        if self._connector is None:
            raise LifecycleError("Database not initialized", context={"state": self._state.value})
        return self._connector
