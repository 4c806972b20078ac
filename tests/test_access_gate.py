from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from conftest import ADMIN_ID, JWT_SECRET, SUPER_ADMIN_ID, USER_ID, make_token
from compliance_pipeline.auth.access_gate import (
    ADMIN_ROLES,
    AccessGate,
    extract_bearer_token,
    is_authorized,
)
from compliance_pipeline.auth.context import Identity
from compliance_pipeline.auth.identity_provider import (
    IdentityValidationError,
    JWTIdentityProvider,
)
from compliance_pipeline.domain import Role
from compliance_pipeline.errors import ForbiddenError, UnauthenticatedError
from compliance_pipeline.store.sqlite import SqliteEventStore


@pytest.mark.parametrize(
    ("role", "expected"),
    [(Role.USER, False), (Role.ADMIN, True), (Role.SUPER_ADMIN, True)],
)
def test_is_authorized_for_admin_roles(role: Role, expected: bool) -> None:
    assert is_authorized(role, ADMIN_ROLES) is expected


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc", "abc"),
        ("bearer   abc ", "abc"),
        ("Basic abc", None),
        ("Bearer ", None),
        (None, None),
        ("", None),
    ],
)
def test_extract_bearer_token(header: str | None, expected: str | None) -> None:
    assert extract_bearer_token(header) == expected


@pytest.fixture
def gate(seeded_store: SqliteEventStore) -> AccessGate:
    return AccessGate(JWTIdentityProvider(JWT_SECRET), seeded_store)


@pytest.mark.asyncio
async def test_resolve_identity_from_valid_token(gate: AccessGate) -> None:
    token = make_token(USER_ID, email="user@example.com")

    identity = await gate.resolve_identity(f"Bearer {token}")

    assert identity.user_id == USER_ID
    assert identity.email == "user@example.com"
    assert identity.access_token == token


@pytest.mark.asyncio
async def test_resolve_identity_missing_credential(gate: AccessGate) -> None:
    with pytest.raises(UnauthenticatedError) as exc_info:
        await gate.resolve_identity(None)
    assert exc_info.value.code == "missing_token"


@pytest.mark.asyncio
async def test_resolve_identity_rejected_credential(gate: AccessGate) -> None:
    with pytest.raises(UnauthenticatedError) as exc_info:
        await gate.resolve_identity("Bearer garbage")
    assert exc_info.value.message == "Unauthorized"
    assert exc_info.value.code == "invalid_token"


@pytest.mark.asyncio
async def test_resolve_identity_maps_provider_outage_to_unauthenticated(
    seeded_store: SqliteEventStore,
) -> None:
    provider = AsyncMock()
    provider.verify.side_effect = IdentityValidationError("down", "provider_unavailable")

    with pytest.raises(UnauthenticatedError) as exc_info:
        await AccessGate(provider, seeded_store).resolve_identity("Bearer tok")
    assert exc_info.value.code == "provider_unavailable"


@pytest.mark.parametrize("user_id", [ADMIN_ID, SUPER_ADMIN_ID])
def test_require_role_allows_admins(gate: AccessGate, user_id: str) -> None:
    profile = gate.require_role(Identity(user_id=user_id), ADMIN_ROLES)
    assert profile.id == user_id


@pytest.mark.parametrize("user_id", [USER_ID, "no-profile"])
def test_require_role_forbids_others(gate: AccessGate, user_id: str) -> None:
    with pytest.raises(ForbiddenError):
        gate.require_role(Identity(user_id=user_id), ADMIN_ROLES)


def test_require_role_sees_role_changes_immediately(
    gate: AccessGate, seeded_store: SqliteEventStore
) -> None:
    identity = Identity(user_id=USER_ID)
    with pytest.raises(ForbiddenError):
        gate.require_role(identity, ADMIN_ROLES)

    seeded_store.execute("UPDATE profiles SET role = 'admin' WHERE id = ?", (USER_ID,))
    assert gate.require_role(identity, ADMIN_ROLES).role is Role.ADMIN

    seeded_store.execute("UPDATE profiles SET role = 'user' WHERE id = ?", (USER_ID,))
    with pytest.raises(ForbiddenError):
        gate.require_role(identity, ADMIN_ROLES)
