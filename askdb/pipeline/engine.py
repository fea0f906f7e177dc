"""
Query Pipeline Engine

Runs a question through named, timed stages:

    validation -> schema_analysis -> sql_generation -> response_formatting

Every stage goes through `_run_stage`, which returns a StageOutcome instead
of raising. A final aggregation step folds the outcomes into a ChainResult:
a failed validation or sql_generation stage aborts the run and appends a
synthetic `error_handling` step; a failed schema_analysis only degrades the
prompt; a failed response_formatting keeps the run successful with an empty
formatted response.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from askdb.pipeline.formatter import format_response
from askdb.pipeline.models import (
    ChainMetrics,
    ChainResult,
    PipelineStep,
    SchemaInfo,
    Stage,
    StageOutcome,
)
from askdb.safety import SafetyValidator

logger = logging.getLogger(__name__)

SCHEMA_UNAVAILABLE = "Schema unavailable: infer table and column names from the question."

FATAL_STAGES = frozenset({Stage.VALIDATION, Stage.SQL_GENERATION})


class PipelineBackend(Protocol):
    """Operations the pipeline needs from its owner (normally SQLAssistant)."""

    async def get_schema_info(self) -> SchemaInfo: ...

    async def generate_sql_query(self, question: str, schema_text: str) -> str: ...

    async def run_sql(self, sql: str) -> list[dict[str, Any]]: ...


class QueryPipeline:
    """
    Staged question-to-answer pipeline.

    The pipeline keeps no state between runs; it borrows the backend's
    connector and generation provider for the duration of execute().

    Usage:
        pipeline = QueryPipeline(assistant, dialect="sqlite")
        result = await pipeline.execute("Which customer has the highest salary?")
        print(result.formatted_response)
    """

    def __init__(
        self,
        backend: PipelineBackend,
        dialect: str,
        validator: SafetyValidator | None = None,
    ):
        self.backend = backend
        self.dialect = dialect
        self.validator = validator or SafetyValidator()

    async def execute(self, question: str) -> ChainResult:
        """Run every stage in order and aggregate the outcomes."""
        start_time = time.perf_counter()
        outcomes: list[StageOutcome] = []

        validation = await self._run_stage(
            Stage.VALIDATION,
            {"question": question},
            lambda: self._validate(question),
        )
        outcomes.append(validation)

        if validation.success:
            schema = await self._run_stage(
                Stage.SCHEMA_ANALYSIS,
                {"question": question},
                self._analyze_schema,
            )
            outcomes.append(schema)
            schema_text = schema.output["schema_text"] if schema.success else SCHEMA_UNAVAILABLE

            generation = await self._run_stage(
                Stage.SQL_GENERATION,
                {"question": question, "schema_available": schema.success},
                lambda: self._generate_and_run(question, schema_text),
            )
            outcomes.append(generation)

            if generation.success:
                sql_query = generation.output["sql_query"]
                data = generation.output["data"]
                formatting = await self._run_stage(
                    Stage.RESPONSE_FORMATTING,
                    {"question": question, "sql_query": sql_query, "dialect": self.dialect},
                    lambda: self._format(question, sql_query, data),
                )
                outcomes.append(formatting)

        return self._aggregate(question, outcomes, start_time)

    async def _run_stage(
        self,
        stage: Stage,
        stage_input: Any,
        operation: Callable[[], Awaitable[Any]],
    ) -> StageOutcome:
        """Run one stage, timing it and capturing any failure as data."""
        start_time = time.perf_counter()
        try:
            output = await operation()
        except Exception as e:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            logger.warning(
                f"Stage {stage.value} failed: {e}",
                extra={
                    "stage": stage.value,
                    "duration_ms": duration_ms,
                    "error_type": type(e).__name__,
                },
            )
            return StageOutcome(
                stage=stage,
                input=stage_input,
                success=False,
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
                duration_ms=duration_ms,
            )

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(
            f"Stage {stage.value} completed in {duration_ms}ms",
            extra={"stage": stage.value, "duration_ms": duration_ms},
        )
        return StageOutcome(
            stage=stage,
            input=stage_input,
            success=True,
            output=output,
            duration_ms=duration_ms,
        )

    async def _validate(self, question: str) -> dict[str, bool]:
        self.validator.ensure_question_is_safe(question)
        return {"valid": True}

    async def _analyze_schema(self) -> dict[str, Any]:
        schema = await self.backend.get_schema_info()
        return {
            "schema_available": True,
            "table_count": len(schema.tables),
            "schema_text": schema.to_prompt_text(),
        }

    async def _generate_and_run(self, question: str, schema_text: str) -> dict[str, Any]:
        sql_query = await self.backend.generate_sql_query(question, schema_text)
        data = await self.backend.run_sql(sql_query)
        return {"sql_query": sql_query, "data": data}

    async def _format(self, question: str, sql_query: str, data: Any) -> str:
        return format_response(question, sql_query, data, self.dialect)

    def _aggregate(
        self,
        question: str,
        outcomes: list[StageOutcome],
        start_time: float,
    ) -> ChainResult:
        steps = [outcome.to_step() for outcome in outcomes]
        failure = next(
            (o for o in outcomes if not o.success and o.stage in FATAL_STAGES),
            None,
        )

        if failure is not None:
            steps.append(
                PipelineStep(
                    name=Stage.ERROR_HANDLING.value,
                    input={"error": failure.error},
                    output=None,
                    duration_ms=0,
                    success=False,
                    error=failure.error,
                )
            )
            execution_time_ms = int((time.perf_counter() - start_time) * 1000)
            logger.error(
                f"Pipeline failed at {failure.stage.value}: {failure.error}",
                extra={
                    "stage": failure.stage.value,
                    "error_type": failure.error_type,
                    "execution_time_ms": execution_time_ms,
                },
            )
            return ChainResult(
                success=False,
                question=question,
                sql_query="",
                raw_data=None,
                formatted_response="",
                execution_time_ms=execution_time_ms,
                steps=steps,
                error=failure.error,
                error_type=failure.error_type,
            )

        by_stage = {o.stage: o for o in outcomes}
        generation = by_stage[Stage.SQL_GENERATION]
        formatting = by_stage[Stage.RESPONSE_FORMATTING]

        execution_time_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            f"Pipeline completed in {execution_time_ms}ms",
            extra={"execution_time_ms": execution_time_ms, "steps": len(steps)},
        )
        return ChainResult(
            success=True,
            question=question,
            sql_query=generation.output["sql_query"],
            raw_data=generation.output["data"],
            formatted_response=formatting.output if formatting.success else "",
            execution_time_ms=execution_time_ms,
            steps=steps,
        )


def get_chain_metrics(result: ChainResult) -> ChainMetrics:
    """Summarize the timing of a pipeline run."""
    step_count = len(result.steps)
    successful = sum(1 for step in result.steps if step.success)
    return ChainMetrics(
        total_time_ms=result.execution_time_ms,
        step_breakdown={step.name: step.duration_ms for step in result.steps},
        success_rate=successful / step_count * 100,
        average_step_time_ms=result.execution_time_ms / step_count,
    )
