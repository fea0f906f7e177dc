"""
Pipeline Models

Stage identifiers, the per-stage result type and the records returned by
the query pipeline and the assistant.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    VALIDATION = "validation"
    SCHEMA_ANALYSIS = "schema_analysis"
    SQL_GENERATION = "sql_generation"
    RESPONSE_FORMATTING = "response_formatting"
    ERROR_HANDLING = "error_handling"


@dataclass
class StageOutcome:
    """Result from one pipeline stage."""

    stage: Stage
    input: Any
    success: bool
    output: Any = None
    error: str | None = None
    error_type: str | None = None
    duration_ms: int = 0

    def to_step(self) -> "PipelineStep":
        return PipelineStep(
            name=self.stage.value,
            input=self.input,
            output=self.output,
            duration_ms=self.duration_ms,
            success=self.success,
            error=self.error,
        )


class PipelineStep(BaseModel):
    """One attempted stage as reported to callers."""

    name: str = Field(..., description="Stage name")
    input: Any = Field(None, description="Stage input")
    output: Any = Field(None, description="Stage output (None on failure)")
    duration_ms: int = Field(..., ge=0, description="Stage duration in milliseconds")
    success: bool = Field(..., description="Whether the stage succeeded")
    error: str | None = Field(None, description="Error message if the stage failed")


class ChainResult(BaseModel):
    """Complete record of one pipeline run."""

    success: bool
    question: str
    sql_query: str = ""
    raw_data: Any = None
    formatted_response: str = ""
    execution_time_ms: int = Field(..., ge=0)
    steps: list[PipelineStep] = Field(..., min_length=1)
    error: str | None = None
    error_type: str | None = None


class QueryResult(BaseModel):
    """Flattened single-shot result returned by SQLAssistant.query()."""

    success: bool
    data: list[dict[str, Any]] | None = None
    query: str | None = None
    error: str | None = None


class ChainMetrics(BaseModel):
    """Timing summary of a ChainResult."""

    total_time_ms: int
    step_breakdown: dict[str, int]
    success_rate: float = Field(..., description="Percentage of successful steps")
    average_step_time_ms: float


class ColumnSchema(BaseModel):
    name: str
    type: str
    nullable: bool


class TableSchema(BaseModel):
    name: str
    columns: list[ColumnSchema] = Field(default_factory=list)


class SchemaInfo(BaseModel):
    """Tables and columns of the connected database."""

    tables: list[TableSchema] = Field(default_factory=list)

    def to_prompt_text(self) -> str:
        """Compact, one line per table, for the generation prompt."""
        if not self.tables:
            return "No tables found."
        lines = []
        for table in self.tables:
            columns = ", ".join(
                f"{col.name} {col.type}{'' if col.nullable else ' NOT NULL'}"
                for col in table.columns
            )
            lines.append(f"{table.name}({columns})")
        return "\n".join(lines)
