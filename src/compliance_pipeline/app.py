"""Application context assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from compliance_pipeline.audit.logger import AuditLogger
from compliance_pipeline.auth.access_gate import AccessGate
from compliance_pipeline.auth.identity_provider import (
    IdentityProvider,
    JWTIdentityProvider,
    RemoteIdentityProvider,
)
from compliance_pipeline.compliance.manager import ComplianceRequestManager
from compliance_pipeline.config import AuthSettings, CorsSettings, Settings, load_settings
from compliance_pipeline.security.alerts import AlertDispatcher
from compliance_pipeline.security.bruteforce import BruteForceAggregator
from compliance_pipeline.security.ingestor import EventIngestor
from compliance_pipeline.security.monitor import SecurityMonitor
from compliance_pipeline.store.base import EventStore
from compliance_pipeline.store.sqlite import SqliteEventStore
from compliance_pipeline.transport.cors import CorsPolicy, load_cors_policy

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Application-wide dependency container.

    Built once at startup; every collaborator shares the same store.
    """

    settings: Settings
    store: EventStore
    access_gate: AccessGate
    audit: AuditLogger
    ingestor: EventIngestor
    bruteforce: BruteForceAggregator
    monitor: SecurityMonitor
    compliance: ComplianceRequestManager
    cors: CorsPolicy


def build_identity_provider(auth: AuthSettings) -> IdentityProvider:
    if auth.provider == "remote":
        if not auth.identity_url or not auth.identity_api_key:
            raise RuntimeError("IDENTITY_URL and IDENTITY_API_KEY are required for remote auth")
        return RemoteIdentityProvider(
            auth.identity_url,
            auth.identity_api_key,
            timeout_seconds=auth.request_timeout_seconds,
        )
    if not auth.jwt_secret:
        raise RuntimeError("AUTH_JWT_SECRET is required for jwt auth")
    return JWTIdentityProvider(
        auth.jwt_secret,
        audience=auth.jwt_audience,
        algorithms=auth.jwt_algorithms,
    )


def build_cors_policy(cors: CorsSettings) -> CorsPolicy:
    if cors.policy_path:
        logger.info("Loading CORS policy from: %s", cors.policy_path)
        return load_cors_policy(cors.policy_path)
    return CorsPolicy(allowed_origins=cors.allowed_origins)


def build_app_context(
    settings: Settings,
    store: EventStore | None = None,
    identity_provider: IdentityProvider | None = None,
) -> AppContext:
    """Wire every service around one store.

    ``store`` and ``identity_provider`` default to the configured SQLite file
    and identity provider.
    """
    if store is None:
        store = SqliteEventStore(settings.storage.sqlite_path, wal=settings.storage.sqlite_wal)
    if identity_provider is None:
        identity_provider = build_identity_provider(settings.auth)

    audit = AuditLogger(store)
    dispatcher = AlertDispatcher(store)
    return AppContext(
        settings=settings,
        store=store,
        access_gate=AccessGate(identity_provider, store),
        audit=audit,
        ingestor=EventIngestor(store, dispatcher),
        bruteforce=BruteForceAggregator(store),
        monitor=SecurityMonitor(store),
        compliance=ComplianceRequestManager(store, audit),
        cors=build_cors_policy(settings.cors),
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the process-wide application context."""
    return build_app_context(load_settings())
