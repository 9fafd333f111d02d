"""
Repository layer for database operations.
"""

from .identity import IdentityRepository
from .credential import CredentialRepository
from .role_audit import RoleAuditRepository

__all__ = [
    "IdentityRepository",
    "CredentialRepository",
    "RoleAuditRepository",
]
