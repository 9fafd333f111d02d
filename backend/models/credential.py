"""
Credential model - API keys bound to an identity.
"""

from typing import Optional

from pydantic import BaseModel, Field

from .identity import PyObjectId, UtcDatetime, utc_now


class Credential(BaseModel):
    """
    Bearer API key. At most one credential per identity is active;
    the identity itself holds no reference back to its credentials.
    """

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    owner_identity_id: PyObjectId = Field(..., description="Identity reference")
    secret: str = Field(..., description="Opaque bearer token")
    active: bool = Field(default=True)
    issued_at: UtcDatetime = Field(default_factory=utc_now)
    revoked_at: Optional[UtcDatetime] = Field(default=None)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "owner_identity_id": "507f1f77bcf86cd799439011",
                "secret": "q3v9Xb0d2J8mH1kP6sT4wY7zA5cE0gR2uN8iL3oQ1fM",
                "active": True,
                "issued_at": "2024-01-10T12:00:00Z",
                "revoked_at": None,
            }
        }
