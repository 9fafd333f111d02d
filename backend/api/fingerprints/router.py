"""
Fingerprint API router - registration and identity reads.
"""

from fastapi import APIRouter, Depends

from api.dependencies import (
    get_caller,
    get_client_address,
    get_credential_manager,
    get_identity_ledger,
)
from api.fingerprints.schemas import (
    IdentityResponse,
    MetadataUpdateRequest,
    RegisterRequest,
    RegisterResponse,
    TouchResponse,
)
from models.identity import Identity
from services.credential_manager import CredentialManager
from services.identity_ledger import IdentityLedger

router = APIRouter(
    prefix="/fingerprints",
    tags=["fingerprints"],
)


@router.post("/register", response_model=RegisterResponse)
async def register_fingerprint(
    request: RegisterRequest,
    address: str = Depends(get_client_address),
    ledger: IdentityLedger = Depends(get_identity_ledger),
    manager: CredentialManager = Depends(get_credential_manager),
):
    """
    Register a fingerprint.

    Public endpoint. Always creates a new identity and issues its first API key.
    """
    identity = await ledger.register(request.fingerprint, address, request.metadata)
    credential = await manager.issue(identity.id)

    return RegisterResponse(
        identity=IdentityResponse.from_identity(identity),
        api_key=credential.secret,
    )


@router.get("/{fingerprint_id}", response_model=TouchResponse)
async def get_fingerprint(
    fingerprint_id: str,
    address: str = Depends(get_client_address),
    caller: Identity = Depends(get_caller),
    ledger: IdentityLedger = Depends(get_identity_ledger),
):
    """
    Get the caller's own identity.

    Every read records the client address and evaluates it for suspicion.
    """
    await ledger.verify_ownership(fingerprint_id, caller.id)
    identity, is_suspicious = await ledger.touch_and_evaluate_trust(fingerprint_id, address)

    return TouchResponse(
        identity=IdentityResponse.from_identity(identity),
        is_suspicious=is_suspicious,
    )


@router.patch("/{fingerprint_id}/metadata", response_model=IdentityResponse)
async def update_fingerprint_metadata(
    fingerprint_id: str,
    request: MetadataUpdateRequest,
    caller: Identity = Depends(get_caller),
    ledger: IdentityLedger = Depends(get_identity_ledger),
):
    """
    Merge metadata into the caller's own identity.
    """
    await ledger.verify_ownership(fingerprint_id, caller.id)
    identity = await ledger.update_metadata(fingerprint_id, request.metadata)

    return IdentityResponse.from_identity(identity)
