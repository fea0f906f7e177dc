"""Database connectors and the three-tier connection resolver."""

from askdb.connectors.base import (
    DIRECT_PROFILE,
    RESTRICTED_PROFILE,
    STANDARD_PROFILE,
    BaseConnector,
    PoolProfile,
    RowSet,
)
from askdb.connectors.factory import create_connector
from askdb.connectors.resolver import (
    ConnectionDiagnostics,
    ConnectionOutcome,
    ConnectionResolver,
    ResolutionTrail,
    TierAttempt,
    classify_connection_error,
    is_permission_error,
)

__all__ = [
    "BaseConnector",
    "PoolProfile",
    "RowSet",
    "STANDARD_PROFILE",
    "RESTRICTED_PROFILE",
    "DIRECT_PROFILE",
    "create_connector",
    "ConnectionResolver",
    "ConnectionOutcome",
    "ConnectionDiagnostics",
    "ResolutionTrail",
    "TierAttempt",
    "classify_connection_error",
    "is_permission_error",
]
