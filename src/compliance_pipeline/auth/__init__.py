"""Authentication and role-based access control."""

from compliance_pipeline.auth.access_gate import (
    ADMIN_ROLES,
    AccessGate,
    extract_bearer_token,
    is_authorized,
)
from compliance_pipeline.auth.context import (
    Identity,
    get_current_identity,
    reset_current_identity,
    set_current_identity,
)
from compliance_pipeline.auth.identity_provider import (
    IdentityProvider,
    IdentityValidationError,
    JWTIdentityProvider,
    RemoteIdentityProvider,
    VerifiedPrincipal,
)

__all__ = [
    "ADMIN_ROLES",
    "AccessGate",
    "Identity",
    "IdentityProvider",
    "IdentityValidationError",
    "JWTIdentityProvider",
    "RemoteIdentityProvider",
    "VerifiedPrincipal",
    "extract_bearer_token",
    "get_current_identity",
    "is_authorized",
    "reset_current_identity",
    "set_current_identity",
]
