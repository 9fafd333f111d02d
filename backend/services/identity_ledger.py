"""
Identity ledger - registration, IP trust touches, role and tag mutation.

Every read-modify-write goes through a compare-and-set on the identity's
version, so concurrent touches of one identity never drop an update.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from pymongo.database import Database
from pymongo.errors import PyMongoError

import env
from models.identity import Identity, utc_now
from models.role import BASE_ROLE, TOP_ROLE, Permission, Role, RoleOperation
from models.role_audit import RoleAuditEntry
from repositories.base import to_object_id
from repositories.identity import IdentityRepository
from repositories.role_audit import RoleAuditRepository
from services.errors import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    PermissionDeniedError,
    translate_store_errors,
)
from services.ip_trust import TrustPolicy, record_observation, seed_provenance
from services.metrics import MetricsSink, NullMetricsSink
from services.role_authorizer import can_manage, has_permission, parse_role

logger = logging.getLogger(__name__)

R = TypeVar("R")
Mutation = Callable[[Identity], Tuple[Dict[str, Any], R]]


def deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Merge overlay into a copy of base, recursing into nested dicts."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class IdentityLedger:
    """Owns identity records and every change made to them."""

    def __init__(
        self,
        database: Database,
        policy: Optional[TrustPolicy] = None,
        metrics: Optional[MetricsSink] = None,
        clock: Callable[[], datetime] = utc_now,
        max_retries: int = env.TRANSACTION_MAX_RETRIES,
    ):
        """
        Initialize identity ledger.

        Args:
            database: MongoDB database instance
            policy: Trust heuristic thresholds (defaults from env)
            metrics: Event sink (discards events if not given)
            clock: Source of the current instant
            max_retries: Compare-and-set attempts before raising ConflictError
        """
        self.repository = IdentityRepository(database)
        self.audit_repository = RoleAuditRepository(database)
        self.policy = policy or TrustPolicy(
            suspicious_threshold=env.SUSPICIOUS_THRESHOLD,
            suspicious_window=timedelta(hours=env.SUSPICIOUS_WINDOW_HOURS),
        )
        self.metrics = metrics or NullMetricsSink()
        self.clock = clock
        self.max_retries = max_retries

    async def register(
        self,
        fingerprint: str,
        observed_address: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Identity:
        """
        Create a new identity.

        Registrations are not deduplicated by fingerprint: each call creates
        an unrelated identity with its own trust history.

        Args:
            fingerprint: Client fingerprint value
            observed_address: Address the registration came from
            metadata: Opaque client data

        Returns:
            Created identity
        """
        now = self.clock()
        identity = Identity(
            fingerprint=fingerprint,
            roles=[BASE_ROLE.value],
            created_at=now,
            last_visited_at=now,
            ip_provenance=seed_provenance(observed_address, now),
            metadata=metadata or {},
        )

        with translate_store_errors("registering identity"):
            created = await self.repository.create(identity)

        logger.info("Registered identity %s", created.id)
        self.metrics.increment("identity.registered")
        return created

    async def get(self, identity_id: str) -> Identity:
        """
        Fetch an identity.

        Raises:
            NotFoundError: if absent or the id is malformed
        """
        with translate_store_errors("loading identity"):
            identity = await self.repository.find_by_id(identity_id)
        if identity is None:
            raise NotFoundError(f"Identity {identity_id} not found")
        return identity

    async def find_by_fingerprint(self, fingerprint: str) -> Optional[Identity]:
        """Most recent identity registered with this fingerprint, if any."""
        with translate_store_errors("loading identity"):
            return await self.repository.find_by_fingerprint(fingerprint)

    async def verify_ownership(self, identity_id: str, caller_id: Optional[str]) -> Identity:
        """
        Check the identity exists and belongs to the caller.

        Raises:
            NotFoundError: if the identity is absent
            PermissionDeniedError: if the caller is someone else
        """
        identity = await self.get(identity_id)
        if caller_id != identity.id:
            raise PermissionDeniedError("Insufficient permissions")
        return identity

    async def touch_and_evaluate_trust(
        self, identity_id: str, observed_address: str
    ) -> Tuple[Identity, bool]:
        """
        Record a visit from an address and evaluate it for suspicion.

        Args:
            identity_id: Identity ID
            observed_address: Address the request came from

        Returns:
            (updated identity, whether this touch was flagged suspicious)
        """
        def _touch(identity: Identity) -> Tuple[Dict[str, Any], bool]:
            now = self.clock()
            provenance, suspicious = record_observation(
                identity.ip_provenance,
                observed_address,
                now=now,
                created_at=identity.created_at,
                policy=self.policy,
            )
            return {"ip_provenance": provenance.model_dump(), "last_visited_at": now}, suspicious

        identity, suspicious = await self._apply(identity_id, _touch, "updating identity")

        self.metrics.increment("identity.touched")
        if suspicious:
            logger.info("Flagged new address as suspicious for identity %s", identity_id)
            self.metrics.increment("identity.suspicious_address")
        return identity, suspicious

    async def mutate_roles(
        self,
        target_id: str,
        caller: Identity,
        role: str | Role,
        operation: str | RoleOperation,
    ) -> Identity:
        """
        Grant or remove a role.

        Args:
            target_id: Identity whose roles change
            caller: Identity performing the change, with its current roles
            role: Role to grant or remove
            operation: add or remove

        Returns:
            Updated identity

        Raises:
            InvalidOperationError: removing the base role, or unknown role/operation
            PermissionDeniedError: self-modification by a non-top role, or the
                caller's rank does not cover the role
            NotFoundError: target identity absent
        """
        role = parse_role(role)
        try:
            operation = RoleOperation(operation)
        except ValueError:
            raise InvalidOperationError(f"Unknown role operation '{operation}'") from None

        if operation is RoleOperation.REMOVE and role == BASE_ROLE:
            raise InvalidOperationError(f"Cannot remove the {BASE_ROLE.value} role")

        if to_object_id(target_id) == to_object_id(caller.id) and not caller.has_role(TOP_ROLE):
            raise PermissionDeniedError("Cannot modify your own roles")

        if not can_manage(caller.roles, role):
            raise PermissionDeniedError(f"Insufficient rank to manage role '{role.value}'")

        def _mutate(identity: Identity) -> Tuple[Dict[str, Any], None]:
            roles = [r for r in identity.roles if r != role.value]
            if operation is RoleOperation.ADD:
                roles.append(role.value)
            if BASE_ROLE.value not in roles:
                roles.insert(0, BASE_ROLE.value)
            return {"roles": roles}, None

        identity, _ = await self._apply(target_id, _mutate, "updating roles")

        logger.info(
            "Identity %s %s role %s on identity %s",
            caller.id,
            "granted" if operation is RoleOperation.ADD else "removed",
            role.value,
            target_id,
        )
        self.metrics.increment("identity.roles_mutated", operation=operation.value)
        await self._record_role_audit(identity, caller, role, operation)
        return identity

    async def role_history(
        self, target_id: str, caller: Identity, skip: int = 0, limit: int = 100
    ) -> List[RoleAuditEntry]:
        """
        Role changes recorded for an identity, newest first.

        Callers may read their own history; reading anyone else's needs
        the read:advanced permission.

        Raises:
            PermissionDeniedError: caller lacks read:advanced for another identity
            NotFoundError: target identity absent
        """
        identity = await self.get(target_id)
        if identity.id != caller.id and not has_permission(caller.roles, Permission.READ_ADVANCED):
            raise PermissionDeniedError("Insufficient permission to read role history")

        with translate_store_errors("loading role history"):
            return await self.audit_repository.find_for_target(identity.id, skip=skip, limit=limit)

    async def mutate_tags(self, target_id: str, tags: Dict[str, Any]) -> Identity:
        """
        Merge tags into an identity; existing keys are overwritten.

        Raises:
            InvalidOperationError: a value is not a number or boolean
            NotFoundError: identity absent
        """
        for name, value in tags.items():
            if not isinstance(value, (bool, int, float)):
                raise InvalidOperationError(f"Tag '{name}' must be a number or boolean")

        def _merge(identity: Identity) -> Tuple[Dict[str, Any], None]:
            return {"tags": {**identity.tags, **tags}}, None

        identity, _ = await self._apply(target_id, _merge, "updating tags")
        return identity

    async def update_metadata(self, identity_id: str, metadata: Dict[str, Any]) -> Identity:
        """Merge metadata into an identity, recursing into nested maps."""
        def _merge(identity: Identity) -> Tuple[Dict[str, Any], None]:
            return {"metadata": deep_merge(identity.metadata, metadata)}, None

        identity, _ = await self._apply(identity_id, _merge, "updating metadata")
        return identity

    async def _apply(
        self, identity_id: str, mutation: Mutation, action: str
    ) -> Tuple[Identity, R]:
        """
        Read an identity, compute changes, and write them if nobody else wrote first.

        On a lost race the identity is re-read and the mutation recomputed.
        """
        for attempt in range(1, self.max_retries + 1):
            current = await self.get(identity_id)
            changes, result = mutation(current)

            with translate_store_errors(action):
                updated = await self.repository.compare_and_set(
                    identity_id, current.version, changes
                )
            if updated is not None:
                return updated, result

            logger.warning(
                "Version conflict on identity %s (attempt %d/%d)",
                identity_id,
                attempt,
                self.max_retries,
            )
            self.metrics.increment("store.conflict", collection="identities")

        raise ConflictError(f"Concurrent update while {action}, retry the request")

    async def _record_role_audit(
        self, identity: Identity, caller: Identity, role: Role, operation: RoleOperation
    ) -> None:
        # Best-effort: the role change is already committed
        entry = RoleAuditEntry(
            target_identity_id=identity.id,
            caller_identity_id=caller.id,
            role=role,
            operation=operation,
            roles_after=identity.roles,
            recorded_at=self.clock(),
        )
        try:
            await self.audit_repository.create(entry)
        except PyMongoError:
            logger.warning("Failed to record role audit for identity %s", identity.id, exc_info=True)
