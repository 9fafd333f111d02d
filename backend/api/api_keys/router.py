"""
API key router - validate, rotate and revoke keys.
"""

from fastapi import APIRouter, Depends, Header

from api.api_keys.schemas import ApiKeyRequest, IssuedKeyResponse, RevokeResponse, ValidateResponse
from api.dependencies import get_caller, get_credential_manager
from models.identity import Identity
from services.credential_manager import CredentialManager

router = APIRouter(
    prefix="/api-keys",
    tags=["api-keys"],
)


@router.post("/validate", response_model=ValidateResponse)
async def validate_api_key(
    request: ApiKeyRequest,
    manager: CredentialManager = Depends(get_credential_manager),
):
    """
    Check whether a key is active. Public endpoint.
    """
    result = await manager.validate(request.api_key)

    return ValidateResponse(
        is_valid=result.valid,
        needs_refresh=result.needs_refresh,
        fingerprint_id=result.identity_id,
    )


@router.post("/rotate", response_model=IssuedKeyResponse)
async def rotate_api_key(
    x_api_key: str = Header(..., description="Key being replaced"),
    manager: CredentialManager = Depends(get_credential_manager),
):
    """
    Replace the presented key with a fresh one. The old key stops working.
    """
    credential = await manager.rotate(x_api_key)

    return IssuedKeyResponse(
        api_key=credential.secret,
        fingerprint_id=credential.owner_identity_id,
        issued_at=credential.issued_at,
    )


@router.post("/revoke", response_model=RevokeResponse)
async def revoke_api_key(
    request: ApiKeyRequest,
    caller: Identity = Depends(get_caller),
    manager: CredentialManager = Depends(get_credential_manager),
):
    """
    Revoke one of the caller's own keys.
    """
    await manager.revoke(request.api_key, caller.id)

    return RevokeResponse(success=True, message="API key revoked")
