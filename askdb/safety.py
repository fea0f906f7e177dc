"""
Safety Validator

Rule-based checks applied before anything reaches the database:
- Question checks: empty, too long, write/DDL operations
- Generated SQL check: only SELECT statements are executed
- Dialect linter: non-blocking warnings for dialect-specific anti-patterns

NO LLM calls - pure rule-based validation for speed and determinism.
"""

import logging
import re

import sqlparse
from pydantic import BaseModel, Field

from askdb.exceptions import UnauthorizedQueryError, ValidationError

logger = logging.getLogger(__name__)

MAX_QUESTION_LENGTH = 1000

FORBIDDEN_OPERATION_PATTERNS = [
    r"drop\s+table",
    r"delete\s+from",
    r"update\s+.*set",
    r"insert\s+into",
    r"alter\s+table",
    r"create\s+table",
    r"truncate",
]

_CODE_FENCE = re.compile(r"```(?:sql)?", re.IGNORECASE)


class SafetyVerdict(BaseModel):
    """Outcome of a safety check."""

    valid: bool = Field(..., description="Whether the input passed")
    reason: str | None = Field(None, description="Why it was rejected")


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers and surrounding whitespace."""
    return _CODE_FENCE.sub("", text or "").strip()


class SafetyValidator:
    """
    Question and SQL safety checks.

    Checks run in a fixed order and stop at the first failure; a single
    forbidden-operation match is enough to reject a question.
    """

    def __init__(self, max_question_length: int = MAX_QUESTION_LENGTH):
        self.max_question_length = max_question_length
        self._forbidden = [re.compile(p, re.IGNORECASE) for p in FORBIDDEN_OPERATION_PATTERNS]

    def validate_question(self, text: str | None) -> SafetyVerdict:
        if not text or not text.strip():
            return SafetyVerdict(valid=False, reason="The question cannot be empty")

        if len(text) > self.max_question_length:
            return SafetyVerdict(
                valid=False,
                reason=f"The question is too long (maximum {self.max_question_length} characters)",
            )

        for pattern in self._forbidden:
            if pattern.search(text):
                logger.warning(
                    "Question rejected: forbidden operation",
                    extra={"pattern": pattern.pattern},
                )
                return SafetyVerdict(
                    valid=False,
                    reason="The question contains operations that are not authorized",
                )

        return SafetyVerdict(valid=True)

    def validate_generated_sql(self, sql: str | None) -> SafetyVerdict:
        cleaned = strip_code_fences(sql or "")
        if not cleaned.lower().startswith("select"):
            return SafetyVerdict(valid=False, reason="Only SELECT queries are allowed")
        return SafetyVerdict(valid=True)

    def ensure_question_is_safe(self, text: str | None) -> None:
        """Raise ValidationError when the question fails validation."""
        verdict = self.validate_question(text)
        if not verdict.valid:
            raise ValidationError(verdict.reason or "Validation failed")

    def ensure_sql_is_safe(self, sql: str | None) -> str:
        """
        Return the cleaned SQL, or raise UnauthorizedQueryError.

        Args:
            sql: Raw generated SQL (code fences allowed)

        Returns:
            SQL with fences and surrounding whitespace removed
        """
        verdict = self.validate_generated_sql(sql)
        if not verdict.valid:
            raise UnauthorizedQueryError(
                verdict.reason or "Only SELECT queries are allowed",
                context={"sql": (sql or "")[:200]},
            )
        return strip_code_fences(sql or "")


def lint_sql_syntax(sql: str, dialect: str) -> list[str]:
    """
    Flag dialect-specific anti-patterns.

    Findings are warnings only; they never block execution.

    Args:
        sql: Cleaned SQL statement
        dialect: Target dialect

    Returns:
        List of warning messages (empty when nothing was found)
    """
    warnings: list[str] = []
    upper_sql = sql.upper()

    if "SELECT" not in upper_sql:
        warnings.append("Query should contain SELECT")

    statements = [s for s in sqlparse.split(sql) if s.strip()]
    if len(statements) > 1:
        warnings.append(f"{len(statements)} statements found, only the first is expected")

    if dialect == "sqlite" and re.search(r"\bILIKE\b", upper_sql):
        warnings.append("SQLite does not support ILIKE, use LIKE")
    elif dialect == "mysql" and re.search(r"\bSERIAL\b", upper_sql):
        warnings.append("MySQL uses AUTO_INCREMENT instead of SERIAL")

    return warnings
