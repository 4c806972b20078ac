"""Caller identity resolution and role checks."""

from __future__ import annotations

import logging
from collections.abc import Collection

from compliance_pipeline.auth.context import Identity
from compliance_pipeline.auth.identity_provider import IdentityProvider, IdentityValidationError
from compliance_pipeline.domain.models import Profile, Role
from compliance_pipeline.errors import ForbiddenError, UnauthenticatedError
from compliance_pipeline.store.base import EventStore

logger = logging.getLogger(__name__)

ADMIN_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.SUPER_ADMIN})

_BEARER_PREFIX = "bearer "


def is_authorized(role: Role, required: Collection[Role]) -> bool:
    return role in required


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.lower().startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None


class AccessGate:
    """
    Resolve the caller and enforce role membership.

    Role checks always re-read the profile so role changes apply to the very
    next request.
    """

    def __init__(self, provider: IdentityProvider, store: EventStore) -> None:
        self._provider = provider
        self._store = store

    async def resolve_identity(self, authorization: str | None) -> Identity:
        token = extract_bearer_token(authorization)
        if token is None:
            raise UnauthenticatedError("Authorization required", "missing_token")

        try:
            principal = await self._provider.verify(token)
        except IdentityValidationError as exc:
            logger.warning("Credential rejected: %s (%s)", exc, exc.code)
            raise UnauthenticatedError("Unauthorized", exc.code) from exc

        return Identity(
            user_id=principal.user_id,
            email=principal.email,
            issuer=principal.issuer,
            token_expiry=principal.expiry,
            access_token=token,
            raw_claims=principal.raw_claims,
        )

    def require_role(self, identity: Identity, allowed: Collection[Role]) -> Profile:
        profile = self._store.get_profile(identity.user_id)
        if profile is None or not is_authorized(profile.role, allowed):
            logger.warning(
                "Role check failed for user %s (role=%s)",
                identity.user_id,
                profile.role.value if profile else None,
            )
            raise ForbiddenError("Access restricted to administrators")
        return profile
