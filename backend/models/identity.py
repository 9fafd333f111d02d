"""
Identity model - one trust record per fingerprint registration.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field

from .role import BASE_ROLE, Role


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    # BSON datetimes come back naive unless the client is tz_aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ObjectIds are carried as strings and converted at the repository boundary
PyObjectId = Annotated[str, BeforeValidator(str)]
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
TagValue = Union[bool, int, float]


class AddressObservation(BaseModel):
    """Frequency and recency of one network address for an identity."""

    address: str
    frequency: int = Field(default=0, ge=0)
    first_seen_at: UtcDatetime = Field(default_factory=utc_now)
    last_seen_at: UtcDatetime = Field(default_factory=utc_now)


class IpProvenance(BaseModel):
    """
    Addresses an identity has presented.

    Stored as a list of observations in first-seen order rather than maps keyed
    by address, since IPv4 addresses contain dots and MongoDB treats dotted
    keys as paths. The map views below are derived from the list.
    """

    observations: List[AddressObservation] = Field(default_factory=list)
    primary_address: Optional[str] = Field(default=None)
    suspicious_addresses: List[str] = Field(default_factory=list)

    @property
    def addresses_seen(self) -> List[str]:
        return [observation.address for observation in self.observations]

    @property
    def frequency_by_address(self) -> Dict[str, int]:
        return {observation.address: observation.frequency for observation in self.observations}

    @property
    def last_seen_at(self) -> Dict[str, datetime]:
        return {observation.address: observation.last_seen_at for observation in self.observations}

    def observation_for(self, address: str) -> Optional[AddressObservation]:
        for observation in self.observations:
            if observation.address == address:
                return observation
        return None


class Identity(BaseModel):
    """
    Anonymous visitor identity keyed by a generated id.
    The fingerprint value is opaque client input and is not unique.
    """

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    fingerprint: str = Field(..., description="Client-supplied fingerprint value")
    roles: List[Role] = Field(default_factory=lambda: [BASE_ROLE.value])
    tags: Dict[str, TagValue] = Field(default_factory=dict)
    created_at: UtcDatetime = Field(default_factory=utc_now)
    last_visited_at: Optional[UtcDatetime] = Field(default=None)
    ip_provenance: IpProvenance = Field(default_factory=IpProvenance)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    version: int = Field(default=0, ge=0, description="Bumped on every ledger write")

    class Config:
        populate_by_name = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "fingerprint": "a1b2c3d4e5f6",
                "roles": ["user", "agent-field"],
                "tags": {"puzzle_solved": True, "visits": 12},
                "created_at": "2024-01-10T12:00:00Z",
                "ip_provenance": {
                    "observations": [
                        {
                            "address": "203.0.113.7",
                            "frequency": 12,
                            "first_seen_at": "2024-01-10T12:00:00Z",
                            "last_seen_at": "2024-01-12T08:30:00Z",
                        }
                    ],
                    "primary_address": "203.0.113.7",
                    "suspicious_addresses": [],
                },
                "metadata": {"userAgent": "Mozilla/5.0"},
                "version": 12,
            }
        }

    def has_role(self, role: Role) -> bool:
        return role in self.roles
