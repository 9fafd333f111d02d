"""
Data models for the fingerprint trust service.
"""

from .identity import AddressObservation, Identity, IpProvenance
from .credential import Credential
from .role import Permission, Role, RoleOperation
from .role_audit import RoleAuditEntry

__all__ = [
    "AddressObservation",
    "Identity",
    "IpProvenance",
    "Credential",
    "Permission",
    "Role",
    "RoleOperation",
    "RoleAuditEntry",
]
