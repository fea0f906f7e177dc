"""
AskDB

Natural-language questions over SQL databases (SQLite, PostgreSQL, MySQL,
MariaDB): dialect detection, tiered connection resolution, read-only SQL
safety checks and a staged query pipeline.

Usage:
    from askdb import SQLAssistant

    async with SQLAssistant(database_url="sqlite:///shop.db") as assistant:
        result = await assistant.process_query("How many orders were placed?")
"""

from askdb.assistant import AssistantOptions, AssistantState, SQLAssistant, parse_schema_rows
from askdb.connectors.resolver import ConnectionOutcome, ConnectionResolver
from askdb.detection import DialectDecision, DialectDetector, resolve_dialect
from askdb.dialects import DatabaseConfig, SUPPORTED_DIALECTS
from askdb.exceptions import (
    AskDBError,
    ConfigurationError,
    ConnectionError,
    ExecutionError,
    GenerationError,
    LifecycleError,
    UnauthorizedQueryError,
    UnsupportedDialectError,
    ValidationError,
)
from askdb.pipeline.engine import QueryPipeline, get_chain_metrics
from askdb.pipeline.models import ChainMetrics, ChainResult, PipelineStep, QueryResult, SchemaInfo
from askdb.safety import SafetyValidator, SafetyVerdict

__version__ = "0.1.0"

__all__ = [
    "SQLAssistant",
    "AssistantOptions",
    "AssistantState",
    "parse_schema_rows",
    "ConnectionResolver",
    "ConnectionOutcome",
    "DialectDetector",
    "DialectDecision",
    "resolve_dialect",
    "DatabaseConfig",
    "SUPPORTED_DIALECTS",
    "QueryPipeline",
    "get_chain_metrics",
    "ChainResult",
    "ChainMetrics",
    "PipelineStep",
    "QueryResult",
    "SchemaInfo",
    "SafetyValidator",
    "SafetyVerdict",
    "AskDBError",
    "ValidationError",
    "UnauthorizedQueryError",
    "GenerationError",
    "ConnectionError",
    "ExecutionError",
    "ConfigurationError",
    "UnsupportedDialectError",
    "LifecycleError",
]
