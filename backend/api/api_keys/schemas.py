"""API key schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ApiKeyRequest(BaseModel):
    """Request schema carrying an API key in the body."""

    api_key: str = Field(..., min_length=1)


class ValidateResponse(BaseModel):
    """Response schema for key validation."""

    is_valid: bool
    needs_refresh: bool
    fingerprint_id: Optional[str] = None


class IssuedKeyResponse(BaseModel):
    """Response schema for a newly issued key."""

    api_key: str
    fingerprint_id: str
    issued_at: datetime


class RevokeResponse(BaseModel):
    """Response schema for key revocation."""

    success: bool
    message: str
