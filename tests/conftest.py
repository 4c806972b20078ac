from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from collections.abc import Iterator

import jwt
import pytest
from starlette.testclient import TestClient

from compliance_pipeline.app import AppContext, build_app_context
from compliance_pipeline.config import AuthSettings, Settings
from compliance_pipeline.store.sqlite import SqliteEventStore
from compliance_pipeline.transport.http_server import create_http_app

JWT_SECRET = "unit-test-jwt-secret-0123456789abcdef"
JWT_AUDIENCE = "authenticated"

ADMIN_ID = "admin-1"
SUPER_ADMIN_ID = "super-admin-1"
USER_ID = "user-1"


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)


def seed_profile(
    store: SqliteEventStore,
    user_id: str,
    role: str,
    email: str | None = None,
) -> None:
    store.execute(
        "INSERT INTO profiles (id, role, email, empresa_id, nome) VALUES (?, ?, ?, ?, ?)",
        (user_id, role, email, "empresa-1", user_id),
    )


def seed_legal_document(
    store: SqliteEventStore,
    document_type: str,
    version: str = "1.0",
    is_active: bool = True,
    created_at: str = "2024-01-01T00:00:00.000000+00:00",
) -> str:
    doc_id = str(uuid.uuid4())
    store.execute(
        """
        INSERT INTO legal_documents (
            id, document_type, title, version, content, is_active, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            doc_id,
            document_type,
            document_type.replace("_", " ").title(),
            version,
            f"{document_type} v{version}",
            int(is_active),
            created_at,
        ),
    )
    return doc_id


def make_token(
    sub: str,
    *,
    secret: str = JWT_SECRET,
    audience: str = JWT_AUDIENCE,
    expires_in: int = 3600,
    **claims: object,
) -> str:
    payload: dict[str, object] = {
        "sub": sub,
        "aud": audience,
        "iss": "https://auth.example.test/auth/v1",
        "exp": int(time.time()) + expires_in,
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(sub: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub)}"}


@pytest.fixture
def store() -> Iterator[SqliteEventStore]:
    event_store = SqliteEventStore(":memory:")
    yield event_store
    event_store.close()


@pytest.fixture
def seeded_store(store: SqliteEventStore) -> SqliteEventStore:
    seed_profile(store, ADMIN_ID, "admin", "Admin@Example.com")
    seed_profile(store, SUPER_ADMIN_ID, "super_admin", "root@example.com")
    seed_profile(store, USER_ID, "user", "user@example.com")
    return store


@pytest.fixture
def settings() -> Settings:
    return Settings(auth=AuthSettings(jwt_secret=JWT_SECRET))


@pytest.fixture
def app_context(settings: Settings, seeded_store: SqliteEventStore) -> AppContext:
    return build_app_context(settings, store=seeded_store)


@pytest.fixture
def client(app_context: AppContext) -> Iterator[TestClient]:
    with TestClient(create_http_app(app_context)) as test_client:
        yield test_client
