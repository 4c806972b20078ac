"""Bearer credential verification against the identity provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx
import jwt

logger = logging.getLogger(__name__)


class IdentityValidationError(Exception):
    """Credential rejected, with a machine-readable code."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class VerifiedPrincipal:
    user_id: str
    email: str | None
    issuer: str
    expiry: datetime | None
    raw_claims: dict[str, Any] = field(default_factory=dict)


class IdentityProvider(Protocol):
    async def verify(self, token: str) -> VerifiedPrincipal: ...


class JWTIdentityProvider:
    """Verify HS256 access tokens signed with the project JWT secret."""

    def __init__(
        self,
        secret: str,
        audience: str = "authenticated",
        algorithms: tuple[str, ...] = ("HS256",),
        leeway_seconds: int = 30,
    ) -> None:
        if not secret:
            raise ValueError("A JWT secret is required")
        if any(alg.lower() == "none" for alg in algorithms):
            raise ValueError("Algorithm 'none' is not allowed")
        self._secret = secret
        self._audience = audience
        self._algorithms = list(algorithms)
        self._leeway = leeway_seconds

    async def verify(self, token: str) -> VerifiedPrincipal:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=self._algorithms,
                audience=self._audience,
                leeway=self._leeway,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise IdentityValidationError("Token expired", "token_expired") from exc
        except jwt.InvalidAudienceError as exc:
            raise IdentityValidationError("Invalid audience", "invalid_audience") from exc
        except jwt.PyJWTError as exc:
            raise IdentityValidationError(f"Invalid token: {exc}", "invalid_token") from exc

        exp = claims.get("exp")
        return VerifiedPrincipal(
            user_id=str(claims["sub"]),
            email=claims.get("email"),
            issuer=str(claims.get("iss", "")),
            expiry=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
            raw_claims=claims,
        )


class RemoteIdentityProvider:
    """Exchange the bearer token at ``<base_url>/auth/v1/user``."""

    USER_PATH = "/auth/v1/user"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}{self.USER_PATH}"
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._transport = transport

    async def verify(self, token: str) -> VerifiedPrincipal:
        headers = {"Authorization": f"Bearer {token}", "apikey": self._api_key}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.get(self._url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Identity provider request failed: %s", exc)
            raise IdentityValidationError(
                "Identity provider unavailable", "provider_unavailable"
            ) from exc

        if resp.status_code != 200:
            logger.info("Identity provider rejected token (status=%s)", resp.status_code)
            raise IdentityValidationError("Token rejected", "invalid_token")

        try:
            user = resp.json()
        except ValueError as exc:
            raise IdentityValidationError(
                "Malformed identity provider response", "invalid_response"
            ) from exc
        if not isinstance(user, dict) or not user.get("id"):
            raise IdentityValidationError(
                "Malformed identity provider response", "invalid_response"
            )

        return VerifiedPrincipal(
            user_id=str(user["id"]),
            email=user.get("email"),
            issuer=self._url,
            expiry=None,
            raw_claims=user,
        )
