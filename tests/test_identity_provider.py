"""Tests for bearer token verification."""

from __future__ import annotations

import httpx
import pytest

from conftest import JWT_SECRET, make_token
from compliance_pipeline.auth.identity_provider import (
    IdentityValidationError,
    JWTIdentityProvider,
    RemoteIdentityProvider,
)


class TestJWTIdentityProvider:
    @pytest.mark.asyncio
    async def test_valid_token(self) -> None:
        provider = JWTIdentityProvider(JWT_SECRET)

        principal = await provider.verify(make_token("u1", email="u1@example.com"))

        assert principal.user_id == "u1"
        assert principal.email == "u1@example.com"
        assert principal.expiry is not None
        assert principal.raw_claims["aud"] == "authenticated"

    @pytest.mark.asyncio
    async def test_expired_token(self) -> None:
        provider = JWTIdentityProvider(JWT_SECRET, leeway_seconds=0)

        with pytest.raises(IdentityValidationError) as exc_info:
            await provider.verify(make_token("u1", expires_in=-60))
        assert exc_info.value.code == "token_expired"

    @pytest.mark.asyncio
    async def test_wrong_audience(self) -> None:
        provider = JWTIdentityProvider(JWT_SECRET)

        with pytest.raises(IdentityValidationError) as exc_info:
            await provider.verify(make_token("u1", audience="anon"))
        assert exc_info.value.code == "invalid_audience"

    @pytest.mark.asyncio
    async def test_wrong_signature(self) -> None:
        provider = JWTIdentityProvider(JWT_SECRET)
        token = make_token("u1", secret="another-secret-that-is-long-enough-xx")

        with pytest.raises(IdentityValidationError) as exc_info:
            await provider.verify(token)
        assert exc_info.value.code == "invalid_token"

    @pytest.mark.asyncio
    async def test_garbage_token(self) -> None:
        with pytest.raises(IdentityValidationError):
            await JWTIdentityProvider(JWT_SECRET).verify("not-a-jwt")

    def test_rejects_empty_secret_and_none_algorithm(self) -> None:
        with pytest.raises(ValueError):
            JWTIdentityProvider("")
        with pytest.raises(ValueError, match="none"):
            JWTIdentityProvider(JWT_SECRET, algorithms=("none",))


def _remote(handler) -> RemoteIdentityProvider:
    return RemoteIdentityProvider(
        "https://project.example.test/",
        "anon-key",
        transport=httpx.MockTransport(handler),
    )


class TestRemoteIdentityProvider:
    @pytest.mark.asyncio
    async def test_valid_token(self) -> None:
        seen: dict[str, httpx.Request] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"id": "u1", "email": "u1@example.com"})

        principal = await _remote(handler).verify("tok")

        assert principal.user_id == "u1"
        assert principal.email == "u1@example.com"
        request = seen["request"]
        assert str(request.url) == "https://project.example.test/auth/v1/user"
        assert request.headers["authorization"] == "Bearer tok"
        assert request.headers["apikey"] == "anon-key"

    @pytest.mark.asyncio
    async def test_rejected_token(self) -> None:
        provider = _remote(lambda request: httpx.Response(401, json={"msg": "bad jwt"}))

        with pytest.raises(IdentityValidationError) as exc_info:
            await provider.verify("tok")
        assert exc_info.value.code == "invalid_token"

    @pytest.mark.asyncio
    async def test_provider_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(IdentityValidationError) as exc_info:
            await _remote(handler).verify("tok")
        assert exc_info.value.code == "provider_unavailable"

    @pytest.mark.asyncio
    async def test_response_without_user_id(self) -> None:
        provider = _remote(lambda request: httpx.Response(200, json={"email": "x@example.com"}))

        with pytest.raises(IdentityValidationError) as exc_info:
            await provider.verify("tok")
        assert exc_info.value.code == "invalid_response"
