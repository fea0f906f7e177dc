"""
Settings for askdb, read from the environment and an optional .env file.

Each concern gets its own settings class with its own variable prefix:
LLM_* for generation, DB_* (plus DATABASE_URL) for the target database,
ASSISTANT_* and LOG_*. `get_settings()` builds the aggregate once.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Required key prefixes; Google keys carry no recognizable prefix
API_KEY_PREFIXES = {
    "openai_api_key": "sk-",
    "anthropic_api_key": "sk-ant-",
}


def _env_config(prefix: str = "", **overrides) -> SettingsConfigDict:
    return SettingsConfigDict(env_prefix=prefix, env_file=".env", extra="ignore", **overrides)


class LLMSettings(BaseSettings):
    """Generation service selection, credentials and sampling parameters."""

    model_config = _env_config("LLM_", populate_by_name=True)

    default_provider: Literal["google", "openai", "anthropic"] = "google"

    google_api_key: str | None = Field(
        None, validation_alias=AliasChoices("LLM_GOOGLE_API_KEY", "GOOGLE_API_KEY")
    )
    google_model: str = "gemini-2.0-flash"
    openai_api_key: str | None = Field(None, min_length=20)
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str | None = Field(None, min_length=20)
    anthropic_model: str = "claude-3-5-haiku-20241022"

    temperature: float = Field(0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(1024, gt=0, le=16000)
    timeout: int = Field(30, gt=0, description="Per-request timeout in seconds")

    @field_validator("openai_api_key", "anthropic_api_key")
    @classmethod
    def check_key_prefix(cls, v: str | None, info: ValidationInfo) -> str | None:
        prefix = API_KEY_PREFIXES[info.field_name]
        if v and not v.startswith(prefix):
            provider = "OpenAI" if info.field_name.startswith("openai") else "Anthropic"
            raise ValueError(f"{provider} API key must start with '{prefix}'")
        return v

    def api_key_for(self, provider: str) -> str | None:
        """Key configured for `provider`, or None for unknown names."""
        return getattr(self, f"{provider}_api_key", None)


class DatabaseSettings(BaseSettings):
    """
    Where the target database lives.

    DATABASE_URL wins when present. DB_TYPE alone is enough for the
    dialect detector, and the DB_USER/DB_HOST/... parts are used by the
    assistant to assemble a URL when no full one is given.
    """

    model_config = _env_config("DB_", populate_by_name=True)

    url: str | None = Field(None, validation_alias=AliasChoices("DATABASE_URL", "DB_URL"))
    dialect: str | None = Field(None, validation_alias=AliasChoices("DB_TYPE", "DB_DIALECT"))
    user: str | None = None
    password: str | None = None
    host: str | None = None
    port: int | None = Field(None, gt=0, le=65535)
    name: str | None = None
    path: str | None = Field(None, description="SQLite file")

    @field_validator("url", "dialect", mode="before")
    @classmethod
    def blank_as_missing(cls, v):
        return v or None

    def environment_snapshot(self) -> dict[str, str]:
        """The variables DialectDetector.detect_from_env() looks at."""
        pairs = (("DATABASE_URL", self.url), ("DB_TYPE", self.dialect))
        return {name: value for name, value in pairs if value}


class AssistantSettings(BaseSettings):
    model_config = _env_config("ASSISTANT_")

    max_results: int = Field(100, gt=0, le=10000, description="Row limit given to the prompt")
    max_question_length: int = Field(1000, gt=0)


class LoggingSettings(BaseSettings):
    """Root logger setup for the CLI."""

    model_config = _env_config("LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file: Path | None = Field(None, description="Also log to this file when set")

    def configure(self) -> None:
        """Replace the root logger's handlers according to these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]
        if self.file is not None:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=logging.getLevelName(self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,
        )


class Settings(BaseSettings):
    """
    Aggregate settings.

    Example:
        >>> settings = get_settings()
        >>> settings.llm.default_provider
        'google'
    """

    model_config = _env_config(env_file_encoding="utf-8", case_sensitive=False)

    environment: Literal["development", "staging", "production"] = "development"
    app_name: str = "AskDB"

    llm: LLMSettings = Field(default_factory=LLMSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    assistant: AssistantSettings = Field(default_factory=AssistantSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def model_post_init(self, __context) -> None:
        logging.getLogger(__name__).debug(
            f"{self.app_name} settings loaded ({self.environment})",
            extra={
                "environment": self.environment,
                "llm_provider": self.llm.default_provider,
                "max_results": self.assistant.max_results,
            },
        )


def _load_dotenv_file() -> None:
    # ASKDB_ENV_SOURCE=environment skips the .env file entirely
    if os.getenv("ASKDB_ENV_SOURCE", "dotenv").lower() not in {"dotenv", "envfile", "file"}:
        return
    dotenv_path = Path.cwd() / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path, override=False)


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    _load_dotenv_file()
    return Settings()


def clear_settings_cache() -> None:
    """Forget cached settings so the next get_settings() rereads the environment."""
    get_settings.cache_clear()
