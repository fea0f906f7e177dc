"""
AskDB Exceptions

Error taxonomy shared by the detector, resolver, pipeline and assistant.

Validation and safety errors are deterministic for a given input and are
never retried. Connection errors are retried only across the fixed
resolver tiers and then surfaced with their diagnostics.
"""

from typing import Any


class AskDBError(Exception):
    """
    Base exception for all AskDB errors.

    Attributes:
        message: Human-readable error description
        context: Additional context for debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class ValidationError(AskDBError):
    """The question is empty, too long, or contains a forbidden operation."""


class UnauthorizedQueryError(AskDBError):
    """The generated statement is not a read-only SELECT."""


class GenerationError(AskDBError):
    """The generation service failed or returned unusable output."""


class ConnectionError(AskDBError):
    """
    Every connection tier failed.

    Attributes:
        error_type: connectivity, authentication, database_not_found,
            driver_missing or unknown
        diagnostics: Ordered trail of every attempted tier
        suggestions: Advisory remediation hints
    """

    def __init__(
        self,
        message: str,
        error_type: str = "unknown",
        diagnostics: list[str] | None = None,
        suggestions: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.error_type = error_type
        self.diagnostics = diagnostics or []
        self.suggestions = suggestions or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "error_type": self.error_type,
                "diagnostics": self.diagnostics,
                "suggestions": self.suggestions,
            }
        )
        return data


class ExecutionError(AskDBError):
    """The database rejected the query."""


class ConfigurationError(AskDBError):
    """Missing credential, missing connection configuration, or bad setting."""


class UnsupportedDialectError(ConfigurationError):
    """The requested dialect is not one of sqlite, postgresql, mysql, mariadb."""

    def __init__(self, dialect: str):
        super().__init__(
            f"Unsupported database dialect: {dialect}",
            context={"dialect": dialect},
        )
        self.dialect = dialect


class LifecycleError(AskDBError):
    """A public entry point was called in the wrong assistant state."""
