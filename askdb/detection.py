"""
Dialect Detector

Infers the target SQL dialect from a connection string or an environment
snapshot. Detection is a pure function: an ordered rule table is evaluated
top to bottom and the first matching rule wins, so earlier rules strictly
dominate later ones.

Usage:
    decision = DialectDetector.detect_from_uri("postgresql://u:p@db:5432/app")
    decision.detected_dialect   # "postgresql"
    decision.confidence         # 1.0
    decision.reasoning          # ['Keyword "postgresql/postgres" found in URI']
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from askdb.dialects import (
    ensure_supported_dialect,
    is_supported_dialect,
    supported_dialects,
    uri_examples,
)

logger = logging.getLogger(__name__)


class DialectDecision(BaseModel):
    """Confidence-scored dialect inference with its reasoning trail."""

    detected_dialect: str = Field(..., description="Inferred dialect")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Certainty in [0, 1]")
    source_uri: str = Field(default="", description="URI the decision was made from")
    reasoning: list[str] = Field(default_factory=list, description="Ordered reasons")

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class DetectionRule:
    """One row of the detection table."""

    kind: str
    pattern: re.Pattern[str]
    dialect: str
    confidence: float
    reason: str

    def matches(self, uri: str) -> bool:
        return self.pattern.search(uri) is not None


def _keyword(pattern: str, dialect: str, confidence: float, reason: str) -> DetectionRule:
    return DetectionRule("keyword", re.compile(pattern, re.IGNORECASE), dialect, confidence, reason)


def _scheme(prefix: str, dialect: str, reason: str) -> DetectionRule:
    return DetectionRule("scheme", re.compile(rf"^{re.escape(prefix)}"), dialect, 0.95, reason)


def _port(port: int, dialect: str, reason: str) -> DetectionRule:
    return DetectionRule("port", re.compile(rf":{port}"), dialect, 0.8, f"{reason} ({port})")


DETECTION_RULES: tuple[DetectionRule, ...] = (
    _keyword(r"sqlite", "sqlite", 1.0, 'Keyword "sqlite" found in URI'),
    _keyword(r"postgres", "postgresql", 1.0, 'Keyword "postgresql/postgres" found in URI'),
    _keyword(r"^(?!.*mariadb).*mysql", "mysql", 0.9, 'Keyword "mysql" found in URI (without mariadb)'),
    _keyword(r"mariadb", "mariadb", 1.0, 'Keyword "mariadb" found in URI'),
    _scheme("mysql://", "mysql", "MySQL URI scheme detected"),
    _scheme("postgresql://", "postgresql", "PostgreSQL URI scheme detected"),
    _scheme("sqlite://", "sqlite", "SQLite URI scheme detected"),
    _port(5432, "postgresql", "PostgreSQL port detected"),
    _port(3306, "mysql", "MySQL/MariaDB port detected"),
)

FALLBACK_DIALECT = "sqlite"
FALLBACK_CONFIDENCE = 0.1


class DialectDetector:
    """Heuristic dialect detection from URIs and environment snapshots."""

    rules: tuple[DetectionRule, ...] = DETECTION_RULES

    @classmethod
    def detect_from_uri(cls, uri: Any) -> DialectDecision:
        """
        Detect the dialect of a connection string.

        Args:
            uri: Connection string (anything else is treated as invalid)

        Returns:
            DialectDecision; invalid or empty input falls back to sqlite
            with confidence 0, no matching rule falls back to sqlite with
            confidence 0.1
        """
        if not uri or not isinstance(uri, str):
            return DialectDecision(
                detected_dialect=FALLBACK_DIALECT,
                confidence=0.0,
                source_uri=uri if isinstance(uri, str) else "",
                reasoning=["Invalid or missing URI, falling back to SQLite"],
            )

        for rule in cls.rules:
            if rule.matches(uri):
                return DialectDecision(
                    detected_dialect=rule.dialect,
                    confidence=rule.confidence,
                    source_uri=uri,
                    reasoning=[rule.reason],
                )

        return DialectDecision(
            detected_dialect=FALLBACK_DIALECT,
            confidence=FALLBACK_CONFIDENCE,
            source_uri=uri,
            reasoning=["No known pattern matched, falling back to SQLite"],
        )

    @classmethod
    def detect_from_env(cls, environ: Mapping[str, str]) -> DialectDecision:
        """
        Detect the dialect from an environment snapshot.

        DATABASE_URL wins over DB_TYPE; with neither, falls back to sqlite.

        Raises:
            UnsupportedDialectError: If DB_TYPE names an unknown dialect
        """
        database_url = environ.get("DATABASE_URL")
        if database_url:
            return cls.detect_from_uri(database_url)

        db_type = environ.get("DB_TYPE")
        if db_type:
            dialect = ensure_supported_dialect(db_type)
            return DialectDecision(
                detected_dialect=dialect,
                confidence=0.9,
                source_uri="",
                reasoning=[f"Dialect set via DB_TYPE: {db_type}"],
            )

        return DialectDecision(
            detected_dialect=FALLBACK_DIALECT,
            confidence=FALLBACK_CONFIDENCE,
            source_uri="",
            reasoning=["No database configuration found, falling back to SQLite"],
        )

    is_supported = staticmethod(is_supported_dialect)
    supported_dialects = staticmethod(supported_dialects)
    uri_examples = staticmethod(uri_examples)


def resolve_dialect(
    explicit: str | None,
    database_url: str | None,
    environ: Mapping[str, str] | None = None,
) -> tuple[str, DialectDecision | None]:
    """
    Pick the dialect for an assistant.

    An explicit dialect bypasses detection but must be supported. Otherwise
    the URL is inspected, then the environment snapshot.

    Returns:
        (dialect, decision) where decision is None for explicit dialects

    Raises:
        UnsupportedDialectError: If the explicit dialect is unknown
    """
    if explicit:
        return ensure_supported_dialect(explicit), None

    if database_url:
        decision = DialectDetector.detect_from_uri(database_url)
        source = "uri"
    else:
        decision = DialectDetector.detect_from_env(environ or {})
        source = "environment"

    logger.info(
        f"Detected dialect {decision.detected_dialect} from {source} "
        f"(confidence: {decision.confidence * 100:.1f}%)",
        extra={
            "dialect": decision.detected_dialect,
            "confidence": decision.confidence,
            "reasoning": decision.reasoning,
        },
    )
    return decision.detected_dialect, decision
