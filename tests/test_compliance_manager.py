from __future__ import annotations

from unittest.mock import patch

import pytest

from conftest import USER_ID, seed_legal_document
from compliance_pipeline.audit import AuditLogger
from compliance_pipeline.compliance import ComplianceRequestManager
from compliance_pipeline.errors import StoreError, ValidationError
from compliance_pipeline.store.sqlite import SqliteEventStore


@pytest.fixture
def manager(seeded_store: SqliteEventStore) -> ComplianceRequestManager:
    return ComplianceRequestManager(seeded_store, AuditLogger(seeded_store))


def _consent(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "consent_type": "marketing",
        "consent_given": True,
        "version": "1.0",
    }
    payload.update(overrides)
    return payload


class TestConsent:
    def test_update_appends_and_audits(
        self, manager: ComplianceRequestManager, seeded_store: SqliteEventStore
    ) -> None:
        manager.update_consent(USER_ID, _consent(), "1.2.3.4", "ua")
        manager.update_consent(USER_ID, _consent(consent_given=False), "1.2.3.4", "ua")

        history = seeded_store.list_consents(USER_ID)
        assert [r.consent_given for r in history] == [True, False]
        assert history[0].ip_address == "1.2.3.4"

        audit = seeded_store.list_audit_entries(USER_ID)
        assert [e.action_name for e in audit] == ["consent_updated", "consent_updated"]
        assert audit[1].target_type == "privacy_consents"
        assert audit[1].metadata == {
            "consent_type": "marketing",
            "consent_given": False,
            "version": "1.0",
        }

        [status] = manager.get_consent_status(USER_ID)
        assert status.consent_given is False

    @pytest.mark.parametrize(
        "payload",
        [
            {"consent_given": True, "version": "1.0"},
            {"consent_type": "marketing", "version": "1.0"},
            {"consent_type": "marketing", "consent_given": None, "version": "1.0"},
            {"consent_type": "marketing", "consent_given": True},
            {"consent_type": "", "consent_given": True, "version": "1.0"},
            {"consent_type": "marketing", "consent_given": "yes", "version": "1.0"},
        ],
    )
    def test_invalid_consent_rejected(
        self,
        manager: ComplianceRequestManager,
        seeded_store: SqliteEventStore,
        payload: dict[str, object],
    ) -> None:
        with pytest.raises(ValidationError):
            manager.update_consent(USER_ID, payload, "1.2.3.4", "ua")

        assert seeded_store.list_consents(USER_ID) == []
        assert seeded_store.list_audit_entries(USER_ID) == []

    def test_audit_failure_rolls_back_consent(
        self, manager: ComplianceRequestManager, seeded_store: SqliteEventStore
    ) -> None:
        with patch.object(
            seeded_store,
            "insert_audit_entry",
            side_effect=StoreError("Failed to write to store"),
        ):
            with pytest.raises(StoreError):
                manager.update_consent(USER_ID, _consent(), "1.2.3.4", "ua")

        assert seeded_store.list_consents(USER_ID) == []


class TestDataRequests:
    def test_export_request_is_pending_and_audited(
        self, manager: ComplianceRequestManager, seeded_store: SqliteEventStore
    ) -> None:
        request = manager.create_export_request(USER_ID)

        assert request.status == "pending"
        [entry] = seeded_store.list_audit_entries(USER_ID)
        assert entry.action_name == "data_export_requested"
        assert entry.target_type == "data_export_requests"
        assert entry.target_id == request.id
        assert entry.metadata == {"request_id": request.id, "reused": False}

    def test_duplicate_export_returns_same_request(
        self, manager: ComplianceRequestManager
    ) -> None:
        assert manager.create_export_request(USER_ID).id == manager.create_export_request(USER_ID).id

    def test_reused_request_is_marked_in_audit_trail(
        self, manager: ComplianceRequestManager, seeded_store: SqliteEventStore
    ) -> None:
        first = manager.create_export_request(USER_ID)
        again = manager.create_export_request(USER_ID)
        deletion = manager.create_deletion_request(USER_ID, "anonymization", None)
        deletion_again = manager.create_deletion_request(USER_ID, "full_deletion", None)

        assert again.id == first.id
        assert deletion_again.id == deletion.id
        entries = seeded_store.list_audit_entries(USER_ID)
        assert [e.metadata["reused"] for e in entries] == [False, True, False, True]
        assert entries[-1].metadata["deletion_type"] == "anonymization"

    def test_export_audit_failure_rolls_back_request(
        self, manager: ComplianceRequestManager, seeded_store: SqliteEventStore
    ) -> None:
        with patch.object(
            seeded_store, "insert_audit_entry", side_effect=StoreError("Failed to write to store")
        ):
            with pytest.raises(StoreError):
                manager.create_export_request(USER_ID)

        assert seeded_store.fetch_all("SELECT * FROM data_export_requests") == []

    def test_deletion_request_defaults_to_full_deletion(
        self, manager: ComplianceRequestManager, seeded_store: SqliteEventStore
    ) -> None:
        request = manager.create_deletion_request(USER_ID, None, "no longer a customer")

        assert request.deletion_type == "full_deletion"
        [entry] = seeded_store.list_audit_entries(USER_ID)
        assert entry.action_name == "data_deletion_requested"
        assert entry.metadata == {
            "deletion_type": "full_deletion",
            "justification": "no longer a customer",
            "reused": False,
        }

    @pytest.mark.parametrize(
        ("deletion_type", "justification"),
        [
            ("purge_everything", None),
            (7, None),
            ("anonymization", 42),
            ("anonymization", "x" * 2001),
        ],
    )
    def test_invalid_deletion_request_rejected(
        self,
        manager: ComplianceRequestManager,
        seeded_store: SqliteEventStore,
        deletion_type: str,
        justification: object,
    ) -> None:
        with pytest.raises(ValidationError):
            manager.create_deletion_request(USER_ID, deletion_type, justification)  # type: ignore[arg-type]

        assert seeded_store.list_audit_entries(USER_ID) == []


class TestPrivacySettings:
    def test_defaults_when_nothing_stored(self, manager: ComplianceRequestManager) -> None:
        settings = manager.get_privacy_settings(USER_ID)

        assert settings.to_dict() == {
            "marketing_emails": True,
            "analytics_tracking": True,
            "chat_data_retention": True,
            "personalized_ads": True,
            "data_sharing": False,
        }

    def test_partial_update_merges_and_audits(
        self, manager: ComplianceRequestManager, seeded_store: SqliteEventStore
    ) -> None:
        manager.update_privacy_settings(USER_ID, {"data_sharing": True})
        updated = manager.update_privacy_settings(USER_ID, {"marketing_emails": False})

        assert updated.data_sharing is True
        assert updated.marketing_emails is False
        assert manager.get_privacy_settings(USER_ID).to_dict()["marketing_emails"] is False

        entries = seeded_store.list_audit_entries(USER_ID)
        assert [e.action_name for e in entries] == [
            "privacy_settings_updated",
            "privacy_settings_updated",
        ]
        assert entries[-1].metadata == {"marketing_emails": False}
        assert entries[-1].target_id == USER_ID

    @pytest.mark.parametrize(
        "changes",
        [
            {},
            {"user_id": "someone-else"},
            {"data_sharing": "true"},
            {"data_sharing": 1},
            {"data_sharing": None},
            {"theme": True},
        ],
    )
    def test_invalid_changes_rejected(
        self,
        manager: ComplianceRequestManager,
        seeded_store: SqliteEventStore,
        changes: dict[str, object],
    ) -> None:
        with pytest.raises(ValidationError):
            manager.update_privacy_settings(USER_ID, changes)

        assert seeded_store.get_privacy_settings(USER_ID) is None


def test_legal_documents_are_active_only(
    manager: ComplianceRequestManager, seeded_store: SqliteEventStore
) -> None:
    active = seed_legal_document(seeded_store, "terms_of_use", "3.0")
    seed_legal_document(seeded_store, "terms_of_use", "2.0", is_active=False)

    assert [d.id for d in manager.get_legal_documents()] == [active]
