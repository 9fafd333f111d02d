"""
IP provenance bookkeeping and the new-address trust heuristic.

A freshly registered identity is expected to show a few addresses while its
home address settles (NAT changes, mobile networks). Once the identity has
both an established primary address and has aged past its grace window, a
never-seen address is flagged as suspicious.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from models.identity import AddressObservation, IpProvenance


@dataclass(frozen=True)
class TrustPolicy:
    """Thresholds for flagging new addresses."""

    suspicious_threshold: int = 10
    suspicious_window: timedelta = timedelta(hours=24)


def seed_provenance(address: str, now: datetime) -> IpProvenance:
    """Provenance of a new identity: one observation, which is also primary."""
    return IpProvenance(
        observations=[
            AddressObservation(address=address, frequency=1, first_seen_at=now, last_seen_at=now)
        ],
        primary_address=address,
    )


def elect_primary(observations: List[AddressObservation]) -> Optional[str]:
    """
    Address with the highest frequency.

    Observations are in first-seen order and only a strictly greater count
    displaces the leader, so the earliest address wins a tie.
    """
    primary: Optional[AddressObservation] = None
    for observation in observations:
        if primary is None or observation.frequency > primary.frequency:
            primary = observation
    return primary.address if primary else None


def record_observation(
    provenance: IpProvenance,
    address: str,
    now: datetime,
    created_at: datetime,
    policy: TrustPolicy,
) -> Tuple[IpProvenance, bool]:
    """
    Apply one touch from an address.

    Args:
        provenance: Current provenance; left unmodified
        address: Address the identity presented
        now: Instant of the touch
        created_at: Registration instant of the identity
        policy: Threshold and grace window

    Returns:
        (updated provenance, whether this touch was flagged suspicious)
    """
    updated = provenance.model_copy(deep=True)

    observation = updated.observation_for(address)
    first_time = observation is None
    if first_time:
        observation = AddressObservation(address=address, first_seen_at=now, last_seen_at=now)
        updated.observations.append(observation)

    observation.frequency += 1
    observation.last_seen_at = now
    updated.primary_address = elect_primary(updated.observations)

    if not first_time:
        return updated, False

    established = updated.frequency_by_address[updated.primary_address] >= policy.suspicious_threshold
    within_grace_period = now - created_at <= policy.suspicious_window
    if established and not within_grace_period:
        updated.suspicious_addresses.append(address)
        return updated, True

    return updated, False
