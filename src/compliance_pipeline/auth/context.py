"""Request-scoped identity context."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class Identity:
    """
    Verified principal for one request.

    SECURITY: access_token is kept for downstream calls but MUST NEVER be logged.
    The role is deliberately absent: it is re-read from the profile store on
    every authorization check.
    """

    user_id: str
    email: str | None = None
    issuer: str = ""
    token_expiry: datetime | None = None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    access_token: str | None = field(default=None, repr=False)
    raw_claims: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw_claims", MappingProxyType(dict(self.raw_claims)))

    def __repr__(self) -> str:
        return (
            f"Identity("
            f"user_id={self.user_id!r}, "
            f"email={self.email!r}, "
            f"issuer={self.issuer!r}, "
            f"request_id={self.request_id!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


_current_identity: ContextVar[Identity | None] = ContextVar(
    "current_identity",
    default=None,
)


def set_current_identity(identity: Identity) -> Token[Identity | None]:
    """Set identity and return reset token."""
    return _current_identity.set(identity)


def reset_current_identity(token: Token[Identity | None]) -> None:
    _current_identity.reset(token)


def get_current_identity() -> Identity:
    """Get identity or raise RuntimeError."""
    identity = _current_identity.get()
    if identity is None:
        raise RuntimeError("No identity set for this request")
    return identity
