"""Staged query pipeline and its result records."""

from askdb.pipeline.engine import PipelineBackend, QueryPipeline, get_chain_metrics
from askdb.pipeline.formatter import format_response
from askdb.pipeline.models import (
    ChainMetrics,
    ChainResult,
    PipelineStep,
    QueryResult,
    SchemaInfo,
    Stage,
    StageOutcome,
)

__all__ = [
    "QueryPipeline",
    "PipelineBackend",
    "get_chain_metrics",
    "format_response",
    "ChainMetrics",
    "ChainResult",
    "PipelineStep",
    "QueryResult",
    "SchemaInfo",
    "Stage",
    "StageOutcome",
]
