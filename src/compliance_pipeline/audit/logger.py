"""Audit trail writer for state-changing operations."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from compliance_pipeline.audit.models import AuditLogEntry
from compliance_pipeline.utils.masking import redact_sensitive_fields
from compliance_pipeline.utils.time import utc_now

if TYPE_CHECKING:
    from compliance_pipeline.store.base import EventStore

logger = logging.getLogger(__name__)


class AuditLogger:
    """Appends immutable audit entries through the event store.

    A store failure propagates as ``StoreError``. Callers that pair a mutation
    with its audit entry run both inside ``EventStore.transaction()`` so the
    mutation is rolled back when the audit write fails.
    """

    def __init__(self, store: EventStore) -> None:
        self._store = store

    def record(
        self,
        actor_id: str,
        action_name: str,
        target_type: str,
        target_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
        company_id: str | None = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=str(uuid.uuid4()),
            actor_id=actor_id,
            company_id=company_id,
            action_name=action_name,
            target_type=target_type,
            target_id=target_id,
            metadata=dict(metadata or {}),
            created_at=utc_now(),
        )
        self._store.insert_audit_entry(entry)
        logger.info(
            "AUDIT actor=%s action=%s target_type=%s target_id=%s metadata=%s",
            actor_id,
            action_name,
            target_type,
            target_id,
            redact_sensitive_fields(entry.metadata),
        )
        return entry
