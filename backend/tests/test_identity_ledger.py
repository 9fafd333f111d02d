"""Tests for the identity ledger."""

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from models.role import RoleOperation
from services.errors import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    PermissionDeniedError,
)
from services.identity_ledger import IdentityLedger, deep_merge

MISSING_ID = "507f1f77bcf86cd799439011"


@pytest.mark.asyncio
async def test_register_seeds_identity(ledger: IdentityLedger, clock, metrics) -> None:
    identity = await ledger.register("fp-1", "1.1.1.1", {"userAgent": "Mozilla/5.0"})

    assert identity.id is not None
    assert identity.roles == ["user"]
    assert identity.tags == {}
    assert identity.created_at == clock.now
    assert identity.metadata == {"userAgent": "Mozilla/5.0"}
    assert identity.ip_provenance.primary_address == "1.1.1.1"
    assert identity.ip_provenance.frequency_by_address == {"1.1.1.1": 1}
    assert metrics.count("identity.registered") == 1

    stored = await ledger.get(identity.id)
    assert stored.fingerprint == "fp-1"
    assert stored.created_at == clock.now


@pytest.mark.asyncio
async def test_register_does_not_deduplicate_fingerprints(ledger: IdentityLedger, clock) -> None:
    first = await ledger.register("same-fp", "1.1.1.1")
    clock.advance(minutes=5)
    second = await ledger.register("same-fp", "2.2.2.2")

    assert first.id != second.id
    latest = await ledger.find_by_fingerprint("same-fp")
    assert latest.id == second.id
    assert await ledger.find_by_fingerprint("other-fp") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("identity_id", [MISSING_ID, "not-an-object-id"])
async def test_get_and_touch_missing_identity(ledger: IdentityLedger, identity_id: str) -> None:
    with pytest.raises(NotFoundError):
        await ledger.get(identity_id)
    with pytest.raises(NotFoundError):
        await ledger.touch_and_evaluate_trust(identity_id, "1.1.1.1")


@pytest.mark.asyncio
async def test_touch_flags_new_address_on_aged_established_identity(
    ledger: IdentityLedger, clock, metrics
) -> None:
    identity = await ledger.register("fp-a", "1.1.1.1")
    for _ in range(9):
        identity, suspicious = await ledger.touch_and_evaluate_trust(identity.id, "1.1.1.1")
        assert suspicious is False
    assert identity.ip_provenance.frequency_by_address["1.1.1.1"] == 10

    clock.advance(hours=25)
    identity, suspicious = await ledger.touch_and_evaluate_trust(identity.id, "2.2.2.2")

    assert suspicious is True
    assert identity.ip_provenance.suspicious_addresses == ["2.2.2.2"]
    assert identity.ip_provenance.primary_address == "1.1.1.1"
    assert identity.last_visited_at == clock.now
    assert metrics.count("identity.suspicious_address") == 1

    identity, suspicious = await ledger.touch_and_evaluate_trust(identity.id, "2.2.2.2")
    assert suspicious is False
    assert identity.ip_provenance.suspicious_addresses == ["2.2.2.2"]


@pytest.mark.asyncio
async def test_touch_within_grace_period_is_not_suspicious(ledger: IdentityLedger, clock) -> None:
    identity = await ledger.register("fp-b", "1.1.1.1")
    for _ in range(20):
        identity, _ = await ledger.touch_and_evaluate_trust(identity.id, "1.1.1.1")

    clock.advance(hours=23)
    identity, suspicious = await ledger.touch_and_evaluate_trust(identity.id, "9.9.9.9")

    assert suspicious is False
    assert identity.ip_provenance.suspicious_addresses == []


@pytest.mark.asyncio
async def test_touch_tracks_primary_address(ledger: IdentityLedger) -> None:
    identity = await ledger.register("fp-c", "1.1.1.1")
    identity, _ = await ledger.touch_and_evaluate_trust(identity.id, "2.2.2.2")
    assert identity.ip_provenance.primary_address == "1.1.1.1"

    identity, _ = await ledger.touch_and_evaluate_trust(identity.id, "2.2.2.2")
    assert identity.ip_provenance.primary_address == "2.2.2.2"
    assert identity.ip_provenance.addresses_seen == ["1.1.1.1", "2.2.2.2"]


@pytest.mark.asyncio
async def test_concurrent_touch_is_not_lost(
    ledger: IdentityLedger, database, policy, clock, metrics, monkeypatch
) -> None:
    identity = await ledger.register("fp-race", "1.1.1.1")
    rival = IdentityLedger(database, policy=policy, clock=clock)
    original = ledger.repository.compare_and_set
    calls = {"count": 0}

    async def racing_compare_and_set(entity_id, expected_version, update_dict):
        calls["count"] += 1
        if calls["count"] == 1:
            # Another request touches the identity between our read and write
            await rival.touch_and_evaluate_trust(identity.id, "2.2.2.2")
        return await original(entity_id, expected_version, update_dict)

    monkeypatch.setattr(ledger.repository, "compare_and_set", racing_compare_and_set)

    updated, _ = await ledger.touch_and_evaluate_trust(identity.id, "1.1.1.1")

    assert calls["count"] == 2
    assert updated.ip_provenance.frequency_by_address == {"1.1.1.1": 2, "2.2.2.2": 1}
    assert metrics.count("store.conflict") == 1


@pytest.mark.asyncio
async def test_persistent_conflict_raises(ledger: IdentityLedger, metrics, monkeypatch) -> None:
    identity = await ledger.register("fp-conflict", "1.1.1.1")

    async def always_stale(entity_id, expected_version, update_dict):
        return None

    monkeypatch.setattr(ledger.repository, "compare_and_set", always_stale)

    with pytest.raises(ConflictError):
        await ledger.touch_and_evaluate_trust(identity.id, "1.1.1.1")
    assert metrics.count("store.conflict") == ledger.max_retries


@pytest.mark.asyncio
async def test_admin_grants_and_removes_roles(ledger: IdentityLedger, make_identity, database) -> None:
    admin = await make_identity(roles=["user", "admin"], fingerprint="fp-admin")
    target = await make_identity(fingerprint="fp-target")

    granted = await ledger.mutate_roles(target.id, admin, "agent-senior", RoleOperation.ADD)
    assert granted.roles == ["user", "agent-senior"]

    removed = await ledger.mutate_roles(target.id, admin, "agent-senior", "remove")
    assert removed.roles == ["user"]

    audit = list(database["role_audit"].find({"target_identity_id": target.id}))
    assert [entry["operation"] for entry in audit] == ["add", "remove"]
    assert audit[0]["caller_identity_id"] == admin.id
    assert audit[0]["roles_after"] == ["user", "agent-senior"]


@pytest.mark.asyncio
async def test_granting_held_role_does_not_duplicate(ledger: IdentityLedger, make_identity) -> None:
    admin = await make_identity(roles=["user", "admin"], fingerprint="fp-admin")
    target = await make_identity(roles=["user", "agent-field"])

    updated = await ledger.mutate_roles(target.id, admin, "agent-field", "add")

    assert updated.roles == ["user", "agent-field"]


@pytest.mark.asyncio
async def test_field_agent_cannot_grant_senior_agent(ledger: IdentityLedger, make_identity) -> None:
    field_agent = await make_identity(roles=["user", "agent-field"], fingerprint="fp-field")
    target = await make_identity(fingerprint="fp-target")

    with pytest.raises(PermissionDeniedError):
        await ledger.mutate_roles(target.id, field_agent, "agent-senior", "add")
    with pytest.raises(PermissionDeniedError):
        await ledger.mutate_roles(target.id, field_agent, "agent-field", "add")

    updated = await ledger.mutate_roles(target.id, field_agent, "agent-initiate", "add")
    assert updated.roles == ["user", "agent-initiate"]


@pytest.mark.asyncio
async def test_self_modification_requires_top_role(ledger: IdentityLedger, make_identity) -> None:
    master = await make_identity(roles=["user", "agent-master"], fingerprint="fp-master")
    admin = await make_identity(roles=["user", "admin"], fingerprint="fp-admin")

    with pytest.raises(PermissionDeniedError):
        await ledger.mutate_roles(master.id, master, "agent-initiate", "add")

    updated = await ledger.mutate_roles(admin.id, admin, "agent-field", "add")
    assert "agent-field" in updated.roles


@pytest.mark.asyncio
async def test_self_modification_guard_ignores_id_spelling(
    ledger: IdentityLedger, make_identity
) -> None:
    senior = await make_identity(roles=["user", "agent-senior"], fingerprint="fp-senior")

    for spelling in (senior.id, senior.id.upper()):
        with pytest.raises(PermissionDeniedError):
            await ledger.mutate_roles(spelling, senior, "agent-field", "add")

    assert (await ledger.get(senior.id)).roles == ["user", "agent-senior"]


@pytest.mark.asyncio
async def test_base_role_cannot_be_removed(ledger: IdentityLedger, make_identity) -> None:
    admin = await make_identity(roles=["user", "admin"], fingerprint="fp-admin")
    target = await make_identity()

    with pytest.raises(InvalidOperationError):
        await ledger.mutate_roles(target.id, admin, "user", "remove")


@pytest.mark.asyncio
async def test_base_role_survives_any_mutation_sequence(ledger: IdentityLedger, make_identity) -> None:
    admin = await make_identity(roles=["user", "admin"], fingerprint="fp-admin")
    target = await make_identity(roles=["agent-field"])
    steps = [
        ("agent-senior", "add"),
        ("agent-field", "remove"),
        ("admin", "add"),
        ("agent-senior", "remove"),
        ("admin", "remove"),
        ("agent-initiate", "remove"),
        ("user", "add"),
    ]

    for role, operation in steps:
        target = await ledger.mutate_roles(target.id, admin, role, operation)
        assert "user" in target.roles

    assert target.roles == ["user"]


@pytest.mark.asyncio
async def test_mutate_roles_rejects_unknowns(ledger: IdentityLedger, make_identity) -> None:
    admin = await make_identity(roles=["user", "admin"], fingerprint="fp-admin")
    target = await make_identity()

    with pytest.raises(InvalidOperationError):
        await ledger.mutate_roles(target.id, admin, "overlord", "add")
    with pytest.raises(InvalidOperationError):
        await ledger.mutate_roles(target.id, admin, "agent-field", "promote")
    with pytest.raises(NotFoundError):
        await ledger.mutate_roles(MISSING_ID, admin, "agent-field", "add")


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_role_change(
    ledger: IdentityLedger, make_identity, monkeypatch
) -> None:
    admin = await make_identity(roles=["user", "admin"], fingerprint="fp-admin")
    target = await make_identity()

    async def broken_create(entry):
        raise PyMongoError("audit store down")

    monkeypatch.setattr(ledger.audit_repository, "create", broken_create)

    updated = await ledger.mutate_roles(target.id, admin, "agent-initiate", "add")

    assert updated.roles == ["user", "agent-initiate"]


@pytest.mark.asyncio
async def test_role_history_newest_first(ledger: IdentityLedger, make_identity, clock) -> None:
    admin = await make_identity(roles=["user", "admin"], fingerprint="fp-admin")
    target = await make_identity(fingerprint="fp-target")
    await ledger.mutate_roles(target.id, admin, "agent-initiate", "add")
    clock.advance(minutes=1)
    await ledger.mutate_roles(target.id, admin, "agent-field", "add")

    history = await ledger.role_history(target.id, target)

    assert [entry.role for entry in history] == ["agent-field", "agent-initiate"]
    assert history[0].caller_identity_id == admin.id
    assert history[0].roles_after == ["user", "agent-initiate", "agent-field"]
    assert history[0].recorded_at == clock.now
    assert await ledger.role_history(admin.id, admin) == []


@pytest.mark.asyncio
async def test_role_history_of_others_needs_advanced_read(
    ledger: IdentityLedger, make_identity
) -> None:
    admin = await make_identity(roles=["user", "admin"], fingerprint="fp-admin")
    initiate = await make_identity(roles=["user", "agent-initiate"], fingerprint="fp-initiate")
    field_agent = await make_identity(roles=["user", "agent-field"], fingerprint="fp-field")
    target = await make_identity(fingerprint="fp-target")
    await ledger.mutate_roles(target.id, admin, "agent-initiate", "add")

    with pytest.raises(PermissionDeniedError):
        await ledger.role_history(target.id, initiate)

    assert len(await ledger.role_history(target.id, field_agent)) == 1
    assert len(await ledger.role_history(target.id.upper(), target)) == 1
    with pytest.raises(NotFoundError):
        await ledger.role_history(MISSING_ID, admin)


@pytest.mark.asyncio
async def test_mutate_tags_merges(ledger: IdentityLedger) -> None:
    identity = await ledger.register("fp-tags", "1.1.1.1")

    identity = await ledger.mutate_tags(identity.id, {"visits": 3, "it": True})
    identity = await ledger.mutate_tags(identity.id, {"visits": 4, "score": 0.5})

    assert identity.tags == {"visits": 4, "it": True, "score": 0.5}


@pytest.mark.asyncio
async def test_mutate_tags_validation(ledger: IdentityLedger) -> None:
    identity = await ledger.register("fp-tags", "1.1.1.1")

    with pytest.raises(InvalidOperationError):
        await ledger.mutate_tags(identity.id, {"nickname": "neo"})
    with pytest.raises(NotFoundError):
        await ledger.mutate_tags(MISSING_ID, {"visits": 1})


@pytest.mark.asyncio
async def test_update_metadata_merges_nested_maps(ledger: IdentityLedger, database) -> None:
    identity = await ledger.register(
        "fp-meta", "1.1.1.1", {"device": {"os": "linux", "screen": "1080p"}, "lang": "en"}
    )

    updated = await ledger.update_metadata(identity.id, {"device": {"os": "android"}, "tz": "UTC"})

    assert updated.metadata == {
        "device": {"os": "android", "screen": "1080p"},
        "lang": "en",
        "tz": "UTC",
    }
    stored = database["identities"].find_one({"_id": ObjectId(identity.id)})
    assert stored["version"] == 1


@pytest.mark.asyncio
async def test_verify_ownership(ledger: IdentityLedger, make_identity) -> None:
    owner = await make_identity(fingerprint="fp-owner")
    other = await make_identity(fingerprint="fp-other")

    assert (await ledger.verify_ownership(owner.id, owner.id)).id == owner.id
    with pytest.raises(PermissionDeniedError):
        await ledger.verify_ownership(owner.id, other.id)
    with pytest.raises(NotFoundError):
        await ledger.verify_ownership(MISSING_ID, owner.id)


def test_deep_merge_does_not_mutate_inputs() -> None:
    base = {"a": {"b": 1}}
    merged = deep_merge(base, {"a": {"c": 2}})

    assert merged == {"a": {"b": 1, "c": 2}}
    assert base == {"a": {"b": 1}}
