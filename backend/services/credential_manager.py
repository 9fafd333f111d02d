"""
Credential lifecycle - issue, validate, rotate and revoke API keys.
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from pymongo.client_session import ClientSession
from pymongo.database import Database

from database import run_in_transaction
from models.credential import Credential
from models.identity import Identity, utc_now
from repositories.credential import CredentialRepository
from services.errors import NotFoundError, PermissionDeniedError, translate_store_errors
from services.identity_ledger import IdentityLedger
from services.metrics import MetricsSink, NullMetricsSink

logger = logging.getLogger(__name__)

SECRET_BYTES = 32

TransactionRunner = Callable[[Database, Callable[[ClientSession], Credential]], Credential]


def generate_secret() -> str:
    """URL-safe random bearer token."""
    return secrets.token_urlsafe(SECRET_BYTES)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a presented secret."""

    valid: bool
    identity_id: Optional[str] = None

    @property
    def needs_refresh(self) -> bool:
        return not self.valid


class CredentialManager:
    """Issues and checks API keys, one active key per identity."""

    def __init__(
        self,
        database: Database,
        ledger: IdentityLedger,
        metrics: Optional[MetricsSink] = None,
        clock: Callable[[], datetime] = utc_now,
        transaction_runner: TransactionRunner = run_in_transaction,
    ):
        """
        Initialize credential manager.

        Args:
            database: MongoDB database instance
            ledger: Identity ledger, consulted only for existence
            metrics: Event sink (discards events if not given)
            clock: Source of the current instant
            transaction_runner: Runs a callback inside a multi-document transaction
        """
        self.database = database
        self.repository = CredentialRepository(database)
        self.ledger = ledger
        self.metrics = metrics or NullMetricsSink()
        self.clock = clock
        self.transaction_runner = transaction_runner

    async def issue(self, identity_id: str) -> Credential:
        """
        Issue a new API key, deactivating any key the identity already holds.

        Deactivation and creation commit together in one transaction.

        Raises:
            NotFoundError: identity absent
            ConflictError: a concurrent issue for the same identity won
        """
        identity = await self.ledger.get(identity_id)

        credential = Credential(
            owner_identity_id=identity.id,
            secret=generate_secret(),
            active=True,
            issued_at=self.clock(),
        )

        def _replace(session: ClientSession) -> Credential:
            return self.repository.replace_active(credential, session=session)

        with translate_store_errors("issuing credential"):
            created = await asyncio.to_thread(self.transaction_runner, self.database, _replace)

        logger.info("Issued credential %s for identity %s", created.id, identity.id)
        self.metrics.increment("credential.issued")
        return created

    async def validate(self, secret: str) -> ValidationResult:
        """A secret is valid iff it exists and is active."""
        with translate_store_errors("validating credential"):
            credential = await self.repository.find_by_secret(secret)

        if credential is None or not credential.active:
            self.metrics.increment("credential.validated", valid="false")
            return ValidationResult(valid=False)

        self.metrics.increment("credential.validated", valid="true")
        return ValidationResult(valid=True, identity_id=credential.owner_identity_id)

    async def get_active(self, identity_id: str) -> Optional[Credential]:
        """Active credential of an identity, if it has one."""
        with translate_store_errors("loading credential"):
            return await self.repository.find_active_for_owner(identity_id)

    async def resolve_caller(self, secret: str) -> Identity:
        """
        Identity behind a presented secret.

        Raises:
            PermissionDeniedError: unknown or inactive secret
            NotFoundError: the owning identity no longer exists
        """
        result = await self.validate(secret)
        if not result.valid:
            raise PermissionDeniedError("Invalid or inactive API key")
        return await self.ledger.get(result.identity_id)

    async def rotate(self, secret: str) -> Credential:
        """
        Replace a valid secret with a fresh one for the same identity.

        Raises:
            PermissionDeniedError: the presented secret is unknown or inactive
        """
        result = await self.validate(secret)
        if not result.valid:
            raise PermissionDeniedError("Invalid or inactive API key")
        return await self.issue(result.identity_id)

    async def revoke(self, secret: str, caller_identity_id: str) -> Credential:
        """
        Deactivate a credential owned by the caller.

        Revoking an already inactive credential leaves it unchanged.

        Raises:
            NotFoundError: no credential matches the secret
            PermissionDeniedError: the caller does not own it
        """
        with translate_store_errors("loading credential"):
            credential = await self.repository.find_by_secret(secret)
        if credential is None:
            raise NotFoundError("API key not found")

        if credential.owner_identity_id != caller_identity_id:
            raise PermissionDeniedError("Insufficient permissions")

        if not credential.active:
            return credential

        with translate_store_errors("revoking credential"):
            revoked = await self.repository.deactivate(credential.id, self.clock())
        if revoked is None:
            raise NotFoundError("API key not found")

        logger.info("Revoked credential %s for identity %s", credential.id, caller_identity_id)
        self.metrics.increment("credential.revoked")
        return revoked
