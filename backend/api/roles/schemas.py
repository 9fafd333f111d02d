"""Role API schemas."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class RoleChangeRequest(BaseModel):
    """Request schema for granting or removing a role."""

    fingerprint_id: str = Field(..., description="Identity whose roles change")
    role: str = Field(..., description="Role name")


class RoleChangeResponse(BaseModel):
    """Response schema for a role change."""

    fingerprint_id: str
    roles: List[str]
    highest_role: str


class RoleInfo(BaseModel):
    """One role of the role table."""

    name: str
    rank: int
    permissions: List[str]


class AvailableRolesResponse(BaseModel):
    """Response schema for the role table."""

    roles: List[RoleInfo]


class RoleHistoryEntry(BaseModel):
    """One recorded role change."""

    role: str
    operation: str
    caller_fingerprint_id: str
    roles_after: List[str]
    recorded_at: datetime


class RoleHistoryResponse(BaseModel):
    """Response schema for an identity's role history, newest first."""

    fingerprint_id: str
    entries: List[RoleHistoryEntry]
