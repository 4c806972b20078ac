"""LGPD data-subject operations: consent, privacy settings, export and deletion."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from compliance_pipeline.audit.logger import AuditLogger
from compliance_pipeline.domain.models import (
    DEFAULT_DELETION_TYPE,
    ConsentRecord,
    DataRequest,
    LegalDocument,
    PrivacySettings,
)
from compliance_pipeline.domain.schemas import (
    ConsentUpdateIn,
    DeletionRequestIn,
    PrivacySettingsPatch,
    validate_payload,
)
from compliance_pipeline.errors import ValidationError
from compliance_pipeline.store.base import EventStore
from compliance_pipeline.utils.time import utc_now

logger = logging.getLogger(__name__)


class ComplianceRequestManager:
    """
    Data-subject rights operations for an authenticated user.

    Every mutation runs with its audit entry inside one store transaction, so
    an audit failure rolls the mutation back and the operation fails.
    """

    def __init__(self, store: EventStore, audit: AuditLogger) -> None:
        self._store = store
        self._audit = audit

    # ------------------------------------------------------------------
    # Consent

    def get_consent_status(self, user_id: str) -> list[ConsentRecord]:
        return self._store.get_consent_status(user_id)

    def update_consent(
        self,
        user_id: str,
        payload: Mapping[str, Any],
        ip_address: str,
        user_agent: str,
    ) -> ConsentRecord:
        data = validate_payload(ConsentUpdateIn, payload, "Invalid consent data", detailed=False)

        record = ConsentRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            consent_type=data.consent_type,
            version=data.version,
            consent_given=data.consent_given,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=utc_now(),
        )
        with self._store.transaction():
            self._store.insert_consent(record)
            self._audit.record(
                actor_id=user_id,
                action_name="consent_updated",
                target_type="privacy_consents",
                metadata={
                    "consent_type": data.consent_type,
                    "consent_given": data.consent_given,
                    "version": data.version,
                },
            )
        return record

    # ------------------------------------------------------------------
    # Data-subject requests

    def create_export_request(self, user_id: str) -> DataRequest:
        with self._store.transaction():
            request = self._store.create_export_request(user_id)
            self._audit.record(
                actor_id=user_id,
                action_name="data_export_requested",
                target_type="data_export_requests",
                target_id=request.id,
                metadata={"request_id": request.id, "reused": request.reused},
            )
        logger.info("Export request %s registered for user %s", request.id, user_id)
        return request

    def create_deletion_request(
        self,
        user_id: str,
        deletion_type: str | None = DEFAULT_DELETION_TYPE,
        justification: str | None = None,
    ) -> DataRequest:
        data = validate_payload(
            DeletionRequestIn,
            {"deletion_type": deletion_type, "justification": justification},
            "Invalid deletion request",
        )

        with self._store.transaction():
            request = self._store.create_deletion_request(
                user_id, data.deletion_type, data.justification
            )
            self._audit.record(
                actor_id=user_id,
                action_name="data_deletion_requested",
                target_type="data_deletion_requests",
                target_id=request.id,
                metadata={
                    "deletion_type": request.deletion_type,
                    "justification": request.justification,
                    "reused": request.reused,
                },
            )
        logger.info("Deletion request %s registered for user %s", request.id, user_id)
        return request

    # ------------------------------------------------------------------
    # Privacy settings

    def get_privacy_settings(self, user_id: str) -> PrivacySettings:
        stored = self._store.get_privacy_settings(user_id)
        return stored if stored is not None else PrivacySettings.defaults(user_id)

    def update_privacy_settings(
        self,
        user_id: str,
        changes: Mapping[str, Any],
    ) -> PrivacySettings:
        patch = validate_payload(PrivacySettingsPatch, changes, "Invalid privacy settings")
        applied = patch.changes()
        if not applied:
            raise ValidationError("No privacy settings supplied")

        with self._store.transaction():
            current = self.get_privacy_settings(user_id)
            updated = current.merged(applied, updated_at=utc_now())
            self._store.upsert_privacy_settings(updated)
            self._audit.record(
                actor_id=user_id,
                action_name="privacy_settings_updated",
                target_type="privacy_settings",
                target_id=user_id,
                metadata=applied,
            )
        return updated

    # ------------------------------------------------------------------
    # Legal documents

    def get_legal_documents(self) -> list[LegalDocument]:
        return self._store.list_legal_documents(active_only=True)
