"""
Role API router - grant and remove roles, read role history.
"""

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_caller, get_identity_ledger
from api.roles.schemas import (
    AvailableRolesResponse,
    RoleChangeRequest,
    RoleChangeResponse,
    RoleHistoryEntry,
    RoleHistoryResponse,
    RoleInfo,
)
from models.identity import Identity
from models.role import ROLE_PERMISSIONS, ROLE_RANKS, RoleOperation
from services.identity_ledger import IdentityLedger
from services.role_authorizer import available_roles, highest_role

router = APIRouter(
    prefix="/roles",
    tags=["roles"],
)


async def _change_role(
    request: RoleChangeRequest,
    operation: RoleOperation,
    caller: Identity,
    ledger: IdentityLedger,
) -> RoleChangeResponse:
    identity = await ledger.mutate_roles(request.fingerprint_id, caller, request.role, operation)
    return RoleChangeResponse(
        fingerprint_id=identity.id,
        roles=list(identity.roles),
        highest_role=highest_role(identity.roles).value,
    )


@router.get("/available", response_model=AvailableRolesResponse)
async def list_available_roles():
    """
    List every role with its rank and permissions, lowest rank first.
    """
    return AvailableRolesResponse(
        roles=[
            RoleInfo(
                name=role.value,
                rank=ROLE_RANKS[role],
                permissions=sorted(permission.value for permission in ROLE_PERMISSIONS[role]),
            )
            for role in available_roles()
        ]
    )


@router.post("/assign", response_model=RoleChangeResponse)
async def assign_role(
    request: RoleChangeRequest,
    caller: Identity = Depends(get_caller),
    ledger: IdentityLedger = Depends(get_identity_ledger),
):
    """
    Grant a role to another identity.

    The caller's highest role must outrank the granted role, unless the
    caller is an admin.
    """
    return await _change_role(request, RoleOperation.ADD, caller, ledger)


@router.post("/remove", response_model=RoleChangeResponse)
async def remove_role(
    request: RoleChangeRequest,
    caller: Identity = Depends(get_caller),
    ledger: IdentityLedger = Depends(get_identity_ledger),
):
    """
    Remove a role from another identity. The base role cannot be removed.
    """
    return await _change_role(request, RoleOperation.REMOVE, caller, ledger)


@router.get("/history/{fingerprint_id}", response_model=RoleHistoryResponse)
async def get_role_history(
    fingerprint_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    caller: Identity = Depends(get_caller),
    ledger: IdentityLedger = Depends(get_identity_ledger),
):
    """
    Role changes recorded for an identity, newest first.

    Callers may read their own history; other identities need read:advanced.
    """
    entries = await ledger.role_history(fingerprint_id, caller, skip=skip, limit=limit)
    return RoleHistoryResponse(
        fingerprint_id=fingerprint_id,
        entries=[
            RoleHistoryEntry(
                role=entry.role,
                operation=entry.operation,
                caller_fingerprint_id=entry.caller_identity_id,
                roles_after=list(entry.roles_after),
                recorded_at=entry.recorded_at,
            )
            for entry in entries
        ],
    )
