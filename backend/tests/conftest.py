"""Shared fixtures: in-memory MongoDB, a controllable clock, wired services."""

from datetime import datetime, timedelta, timezone
from typing import Iterable

import mongomock
import pytest
from bson import ObjectId

from models.identity import Identity
from services.credential_manager import CredentialManager
from services.identity_ledger import IdentityLedger
from services.ip_trust import TrustPolicy
from services.metrics import InMemoryMetricsSink


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def inline_transaction(database, callback):
    """mongomock has no sessions; run the transaction body directly."""
    return callback(None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def database():
    client = mongomock.MongoClient()
    yield client["fingerprint_trust_test"]
    client.close()


@pytest.fixture
def metrics() -> InMemoryMetricsSink:
    return InMemoryMetricsSink()


@pytest.fixture
def policy() -> TrustPolicy:
    return TrustPolicy(suspicious_threshold=10, suspicious_window=timedelta(hours=24))


@pytest.fixture
def ledger(database, policy, metrics, clock) -> IdentityLedger:
    return IdentityLedger(database, policy=policy, metrics=metrics, clock=clock)


@pytest.fixture
def manager(database, ledger, metrics, clock) -> CredentialManager:
    return CredentialManager(
        database,
        ledger,
        metrics=metrics,
        clock=clock,
        transaction_runner=inline_transaction,
    )


@pytest.fixture
def make_identity(ledger, database):
    """Register an identity and give it roles directly in the store."""

    async def _make(
        roles: Iterable[str] = ("user",),
        fingerprint: str = "fp-test",
        address: str = "10.0.0.1",
    ) -> Identity:
        identity = await ledger.register(fingerprint, address)
        if list(roles) != ["user"]:
            database["identities"].update_one(
                {"_id": ObjectId(identity.id)}, {"$set": {"roles": list(roles)}}
            )
        return await ledger.get(identity.id)

    return _make
