"""
Tag API router.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_caller, get_identity_ledger
from api.tags.schemas import TagUpdateRequest, TagUpdateResponse
from models.identity import Identity
from services.identity_ledger import IdentityLedger

router = APIRouter(
    prefix="/tags",
    tags=["tags"],
)


@router.post("/update", response_model=TagUpdateResponse)
async def update_tags(
    request: TagUpdateRequest,
    caller: Identity = Depends(get_caller),
    ledger: IdentityLedger = Depends(get_identity_ledger),
):
    """
    Merge tags into the caller's own identity. Existing tags are overwritten.
    """
    await ledger.verify_ownership(request.fingerprint_id, caller.id)
    identity = await ledger.mutate_tags(request.fingerprint_id, request.tags)

    return TagUpdateResponse(fingerprint_id=identity.id, tags=identity.tags)
