"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import logging
from typing import Any
from unittest.mock import AsyncMock

import pytest

from askdb.config import Settings, clear_settings_cache
from askdb.connectors.base import STANDARD_PROFILE, BaseConnector, PoolProfile, RowSet
from askdb.llm.base import BaseLLMProvider
from askdb.llm.models import LLMRequest, LLMResponse, LLMUsage

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires a live database and API keys)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (may require external services)"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Capture everything down to DEBUG for every test."""
    caplog.set_level(logging.DEBUG)
    # the CLI raises the askdb logger to ERROR when not verbose
    caplog.set_level(logging.DEBUG, logger="askdb")
    yield


# ============================================================================
# Environment and Configuration
# ============================================================================

_ENV_VARS = (
    "DATABASE_URL",
    "DB_URL",
    "DB_TYPE",
    "DB_DIALECT",
    "DB_USER",
    "DB_PASSWORD",
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_PATH",
    "GOOGLE_API_KEY",
    "LLM_GOOGLE_API_KEY",
    "LLM_OPENAI_API_KEY",
    "LLM_ANTHROPIC_API_KEY",
    "LLM_DEFAULT_PROVIDER",
    "ASSISTANT_MAX_RESULTS",
    "ASSISTANT_MAX_QUESTION_LENGTH",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """
    Ensure a clean environment for each test.

    Runs from an empty directory so no developer .env is read, and clears
    the settings cache before and after.
    """
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ASKDB_ENV_SOURCE", "process")
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def google_api_key(monkeypatch) -> str:
    """Configure a dummy Gemini key."""
    key = "test-google-key-1234567890"
    monkeypatch.setenv("GOOGLE_API_KEY", key)
    return key


@pytest.fixture
def settings(google_api_key) -> Settings:
    """Fresh settings built from the isolated environment."""
    return Settings()


# ============================================================================
# Mock LLM Provider
# ============================================================================


class ScriptedProvider(BaseLLMProvider):
    """Provider that replays canned answers and records prompts."""

    def __init__(self, response: str = "SELECT 1"):
        super().__init__(provider_name="mock")
        self.response = response
        self.error: Exception | None = None
        self.prompts: list[str] = []
        self.close = AsyncMock()

    def set_response(self, response: str) -> None:
        self.response = response

    def set_error(self, error: Exception) -> None:
        self.error = error

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self.prompts.append(request.messages[-1].content)
        if self.error is not None:
            raise self.error
        return LLMResponse(
            content=self.response,
            model="mock-model",
            usage=LLMUsage(prompt_tokens=1, completion_tokens=1, total_tokens=2),
            finish_reason="stop",
            provider="mock",
        )


@pytest.fixture
def mock_llm_provider() -> ScriptedProvider:
    """
    Mock generation provider.

    Usage:
        def test_assistant(mock_llm_provider):
            mock_llm_provider.set_response("SELECT * FROM users")
    """
    return ScriptedProvider()


# ============================================================================
# Fake Database Connector
# ============================================================================


class FakeConnector(BaseConnector):
    """In-process connector with programmable results and failures."""

    def __init__(
        self,
        dialect: str = "sqlite",
        connection_string: str = "sqlite:///:memory:",
        profile: PoolProfile = STANDARD_PROFILE,
        connect_error: Exception | None = None,
        ping_error: Exception | None = None,
    ):
        super().__init__(dialect, connection_string, profile)
        self.connect_error = connect_error
        self.ping_error = ping_error
        self.results: dict[str, list[dict[str, Any]]] = {}
        self.default_rows: list[dict[str, Any]] = []
        self.execute_error: Exception | None = None
        self.executed: list[str] = []
        self.close_calls = 0

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self._connected = True

    async def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error

    async def execute(self, query: str) -> RowSet:
        self.executed.append(query)
        if self.execute_error is not None:
            raise self.execute_error
        for marker, rows in self.results.items():
            if marker in query:
                break
        else:
            rows = self.default_rows
        return RowSet(
            rows=rows,
            row_count=len(rows),
            columns=list(rows[0].keys()) if rows else [],
            execution_time_ms=0.1,
        )

    async def close(self) -> None:
        self.close_calls += 1
        self._connected = False


@pytest.fixture
def fake_connector() -> FakeConnector:
    """
    Fake connector for assistant and resolver tests.

    Usage:
        fake_connector.results["FROM users"] = [{"id": 1}]
    """
    return FakeConnector()


@pytest.fixture
def sample_users() -> list[dict[str, Any]]:
    return [
        {"id": 1, "name": "Alice", "salary": 5200},
        {"id": 2, "name": "Bob", "salary": 4100},
        {"id": 3, "name": "Chloé", "salary": 6100},
    ]


@pytest.fixture
def fake_connector_cls() -> type[FakeConnector]:
    """The FakeConnector class, for tests that build several connectors."""
    return FakeConnector
