"""Fingerprint API schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from models.identity import Identity


class RegisterRequest(BaseModel):
    """Request schema for fingerprint registration."""

    fingerprint: str = Field(..., min_length=1, description="Client fingerprint value")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MetadataUpdateRequest(BaseModel):
    """Request schema for merging metadata into an identity."""

    metadata: Dict[str, Any]


class IpProvenanceResponse(BaseModel):
    """IP provenance in its map form."""

    addresses_seen: List[str]
    frequency_by_address: Dict[str, int]
    last_seen_at: Dict[str, datetime]
    primary_address: Optional[str]
    suspicious_addresses: List[str]


class IdentityResponse(BaseModel):
    """Response schema for an identity."""

    id: str
    fingerprint: str
    roles: List[str]
    tags: Dict[str, Union[bool, int, float]]
    created_at: datetime
    last_visited_at: Optional[datetime]
    ip_provenance: IpProvenanceResponse
    metadata: Dict[str, Any]

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        provenance = identity.ip_provenance
        return cls(
            id=identity.id,
            fingerprint=identity.fingerprint,
            roles=list(identity.roles),
            tags=identity.tags,
            created_at=identity.created_at,
            last_visited_at=identity.last_visited_at,
            ip_provenance=IpProvenanceResponse(
                addresses_seen=provenance.addresses_seen,
                frequency_by_address=provenance.frequency_by_address,
                last_seen_at=provenance.last_seen_at,
                primary_address=provenance.primary_address,
                suspicious_addresses=provenance.suspicious_addresses,
            ),
            metadata=identity.metadata,
        )


class RegisterResponse(BaseModel):
    """Response schema for registration - the identity and its first API key."""

    identity: IdentityResponse
    api_key: str


class TouchResponse(BaseModel):
    """Response schema for an identity read that records the client address."""

    identity: IdentityResponse
    is_suspicious: bool
