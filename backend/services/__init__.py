"""
Services layer for the fingerprint trust service.
"""

from .errors import (
    ConflictError,
    InternalError,
    InvalidOperationError,
    NotFoundError,
    PermissionDeniedError,
    TrustCoreError,
)
from .metrics import InMemoryMetricsSink, MetricsSink, NullMetricsSink
from .ip_trust import TrustPolicy
from .identity_ledger import IdentityLedger
from .credential_manager import CredentialManager, ValidationResult

__all__ = [
    "ConflictError",
    "InternalError",
    "InvalidOperationError",
    "NotFoundError",
    "PermissionDeniedError",
    "TrustCoreError",
    "InMemoryMetricsSink",
    "MetricsSink",
    "NullMetricsSink",
    "TrustPolicy",
    "IdentityLedger",
    "CredentialManager",
    "ValidationResult",
]
