"""Repository interface for the pipeline's persistent records."""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol

from compliance_pipeline.audit.models import AuditLogEntry
from compliance_pipeline.domain.models import (
    ConsentRecord,
    DataRequest,
    LegalDocument,
    PrivacySettings,
    Profile,
    Role,
    SecurityAlert,
    SecurityEvent,
    Severity,
    SourceCount,
)


class EventStore(Protocol):
    """Typed operations over the backing store.

    Implementations raise ``compliance_pipeline.errors.StoreError`` for any
    driver-level failure.
    """

    def transaction(self) -> AbstractContextManager[Any]:
        """Group writes so they commit together or not at all."""
        ...

    # Security events and alerts

    def insert_event(self, event: SecurityEvent) -> None: ...

    def list_events(
        self,
        *,
        severities: Iterable[Severity] | None = None,
        event_types: Iterable[str] | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SecurityEvent]: ...

    def count_events_by_source(
        self,
        event_type: str,
        since: datetime,
        min_count: int,
        limit: int | None = None,
    ) -> list[SourceCount]: ...

    def insert_alert(self, alert: SecurityAlert) -> None: ...

    def list_alerts(self) -> list[SecurityAlert]: ...

    # Profiles (read-only)

    def get_profile(self, user_id: str) -> Profile | None: ...

    def list_profiles_by_role(self, roles: Iterable[Role]) -> list[Profile]: ...

    # Consent and privacy

    def insert_consent(self, record: ConsentRecord) -> None: ...

    def list_consents(self, user_id: str) -> list[ConsentRecord]: ...

    def get_consent_status(self, user_id: str) -> list[ConsentRecord]: ...

    def get_privacy_settings(self, user_id: str) -> PrivacySettings | None: ...

    def upsert_privacy_settings(self, settings: PrivacySettings) -> None: ...

    # Data-subject requests

    def create_export_request(self, user_id: str) -> DataRequest: ...

    def create_deletion_request(
        self,
        user_id: str,
        deletion_type: str,
        justification: str | None,
    ) -> DataRequest: ...

    # Audit trail

    def insert_audit_entry(self, entry: AuditLogEntry) -> None: ...

    def list_audit_entries(self, actor_id: str | None = None) -> list[AuditLogEntry]: ...

    # Legal documents (read-only)

    def list_legal_documents(self, active_only: bool = True) -> list[LegalDocument]: ...
