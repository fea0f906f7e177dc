"""
Unit tests for the staged QueryPipeline.

The backend is a stub with AsyncMock operations, so every stage can be
made to succeed or fail independently.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from askdb.exceptions import ExecutionError, GenerationError, UnauthorizedQueryError
from askdb.pipeline import engine as engine_module
from askdb.pipeline.engine import SCHEMA_UNAVAILABLE, QueryPipeline, get_chain_metrics
from askdb.pipeline.models import ColumnSchema, SchemaInfo, TableSchema

USERS_SCHEMA = SchemaInfo(
    tables=[
        TableSchema(
            name="users",
            columns=[
                ColumnSchema(name="id", type="INTEGER", nullable=False),
                ColumnSchema(name="name", type="TEXT", nullable=True),
                ColumnSchema(name="salary", type="INTEGER", nullable=True),
            ],
        )
    ]
)


@pytest.fixture
def backend(sample_users):
    return SimpleNamespace(
        get_schema_info=AsyncMock(return_value=USERS_SCHEMA),
        generate_sql_query=AsyncMock(return_value="SELECT * FROM users LIMIT 100"),
        run_sql=AsyncMock(return_value=sample_users),
    )


@pytest.fixture
def pipeline(backend):
    return QueryPipeline(backend, dialect="sqlite")


class TestSuccessfulRun:
    @pytest.mark.asyncio
    async def test_all_stages_succeed(self, pipeline, backend, sample_users):
        result = await pipeline.execute("Quel client a le plus grand salaire ?")

        assert result.success is True
        assert result.error is None
        assert result.sql_query == "SELECT * FROM users LIMIT 100"
        assert result.raw_data == sample_users
        assert "| 3 | Chloé | 6100 |" in result.formatted_response
        assert [step.name for step in result.steps] == [
            "validation",
            "schema_analysis",
            "sql_generation",
            "response_formatting",
        ]
        assert all(step.success for step in result.steps)
        assert all(step.duration_ms >= 0 for step in result.steps)
        assert result.execution_time_ms >= 0

        schema_text = backend.generate_sql_query.call_args.args[1]
        assert schema_text == "users(id INTEGER NOT NULL, name TEXT, salary INTEGER)"
        backend.run_sql.assert_awaited_once_with("SELECT * FROM users LIMIT 100")

    @pytest.mark.asyncio
    async def test_step_payloads(self, pipeline):
        result = await pipeline.execute("How many users?")

        validation, schema, generation, formatting = result.steps
        assert validation.input == {"question": "How many users?"}
        assert validation.output == {"valid": True}
        assert schema.output["table_count"] == 1
        assert generation.input["schema_available"] is True
        assert generation.output["sql_query"] == "SELECT * FROM users LIMIT 100"
        assert formatting.input["dialect"] == "sqlite"
        assert formatting.output == result.formatted_response


class TestFailures:
    @pytest.mark.asyncio
    async def test_validation_failure_short_circuits(self, pipeline, backend):
        result = await pipeline.execute("   ")

        assert result.success is False
        assert result.error == "The question cannot be empty"
        assert result.error_type == "ValidationError"
        assert result.sql_query == ""
        assert result.formatted_response == ""
        assert [step.name for step in result.steps] == ["validation", "error_handling"]
        assert result.steps[-1].error == result.error
        backend.get_schema_info.assert_not_awaited()
        backend.generate_sql_query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_forbidden_question(self, pipeline):
        result = await pipeline.execute("please DELETE FROM users")

        assert result.success is False
        assert result.error == "The question contains operations that are not authorized"

    @pytest.mark.asyncio
    async def test_unsafe_generated_sql_is_rejected(self, pipeline, backend):
        backend.generate_sql_query.side_effect = UnauthorizedQueryError(
            "Only SELECT queries are allowed"
        )

        result = await pipeline.execute("Clean up the inactive users")

        assert result.success is False
        assert result.error_type == "UnauthorizedQueryError"
        assert result.sql_query == ""
        assert [step.name for step in result.steps] == [
            "validation",
            "schema_analysis",
            "sql_generation",
            "error_handling",
        ]
        backend.run_sql.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generation_service_failure(self, pipeline, backend):
        backend.generate_sql_query.side_effect = GenerationError("SQL generation failed: timeout")

        result = await pipeline.execute("How many users?")

        assert result.success is False
        assert result.error == "SQL generation failed: timeout"

    @pytest.mark.asyncio
    async def test_execution_failure_counts_as_generation_failure(self, pipeline, backend):
        backend.run_sql.side_effect = ExecutionError("Query execution failed: no such table: users")

        result = await pipeline.execute("How many users?")

        assert result.success is False
        assert result.error_type == "ExecutionError"
        assert result.steps[2].name == "sql_generation"
        assert result.steps[2].success is False

    @pytest.mark.asyncio
    async def test_schema_failure_is_not_fatal(self, pipeline, backend):
        backend.get_schema_info.side_effect = ExecutionError("Failed to fetch database schema")

        result = await pipeline.execute("How many users?")

        assert result.success is True
        assert result.steps[1].success is False
        assert backend.generate_sql_query.call_args.args[1] == SCHEMA_UNAVAILABLE
        assert result.steps[2].input["schema_available"] is False

    @pytest.mark.asyncio
    async def test_formatting_failure_keeps_data(self, pipeline, monkeypatch, sample_users):
        def broken_formatter(*args):
            raise ValueError("cannot render")

        monkeypatch.setattr(engine_module, "format_response", broken_formatter)

        result = await pipeline.execute("How many users?")

        assert result.success is True
        assert result.formatted_response == ""
        assert result.raw_data == sample_users
        assert result.steps[-1].name == "response_formatting"
        assert result.steps[-1].error == "cannot render"


class TestMetrics:
    @pytest.mark.asyncio
    async def test_metrics_for_successful_run(self, pipeline):
        result = await pipeline.execute("How many users?")

        metrics = get_chain_metrics(result)

        assert metrics.total_time_ms == result.execution_time_ms
        assert metrics.success_rate == 100.0
        assert set(metrics.step_breakdown) == {
            "validation",
            "schema_analysis",
            "sql_generation",
            "response_formatting",
        }
        assert metrics.average_step_time_ms == result.execution_time_ms / 4

    @pytest.mark.asyncio
    async def test_metrics_for_failed_run(self, pipeline):
        result = await pipeline.execute("")

        metrics = get_chain_metrics(result)

        assert metrics.success_rate == 0.0
        assert set(metrics.step_breakdown) == {"validation", "error_handling"}


class TestTiming:
    @pytest.fixture
    def slow_backend(self, backend, sample_users):
        async def slow_schema():
            await asyncio.sleep(0.02)
            return USERS_SCHEMA

        async def slow_generation(question, schema_text):
            await asyncio.sleep(0.02)
            return "SELECT * FROM users LIMIT 100"

        async def slow_run(sql):
            await asyncio.sleep(0.02)
            return sample_users

        backend.get_schema_info = AsyncMock(side_effect=slow_schema)
        backend.generate_sql_query = AsyncMock(side_effect=slow_generation)
        backend.run_sql = AsyncMock(side_effect=slow_run)
        return backend

    @pytest.mark.asyncio
    async def test_step_durations_fit_within_total(self, slow_backend):
        result = await QueryPipeline(slow_backend, dialect="sqlite").execute("How many users?")

        assert result.success is True
        durations = [step.duration_ms for step in result.steps]
        assert durations[1] >= 15
        assert durations[2] >= 30
        assert sum(durations) <= result.execution_time_ms

    @pytest.mark.asyncio
    async def test_step_durations_fit_within_total_on_failure(self, slow_backend):
        async def failing_run(sql):
            await asyncio.sleep(0.02)
            raise ExecutionError("Query execution failed: connection reset")

        slow_backend.run_sql = AsyncMock(side_effect=failing_run)

        result = await QueryPipeline(slow_backend, dialect="sqlite").execute("How many users?")

        assert result.success is False
        assert result.steps[-1].name == "error_handling"
        assert result.steps[2].duration_ms >= 30
        assert sum(step.duration_ms for step in result.steps) <= result.execution_time_ms
