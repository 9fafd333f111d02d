"""
RoleAuditEntry model - history of role grants and removals.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .identity import PyObjectId, UtcDatetime, utc_now
from .role import Role, RoleOperation


class RoleAuditEntry(BaseModel):
    """One successful role mutation, recorded after the fact."""

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    target_identity_id: PyObjectId
    caller_identity_id: PyObjectId
    role: Role
    operation: RoleOperation
    roles_after: List[Role] = Field(default_factory=list)
    recorded_at: UtcDatetime = Field(default_factory=utc_now)

    class Config:
        populate_by_name = True
        use_enum_values = True
