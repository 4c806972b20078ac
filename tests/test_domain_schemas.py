from __future__ import annotations

import pytest

from compliance_pipeline.domain import PRIVACY_SETTING_FIELDS, Severity
from compliance_pipeline.domain.schemas import (
    ConsentUpdateIn,
    DeletionRequestIn,
    PrivacySettingsPatch,
    SecurityEventIn,
    validate_payload,
)
from compliance_pipeline.errors import ValidationError


def test_security_event_ignores_transport_fields() -> None:
    data = SecurityEventIn.model_validate(
        {
            "event_type": "brute_force_attempt",
            "severity": " HIGH ",
            "description": "Failed login",
            "source_ip": "9.9.9.9",
            "user_agent": "spoofed",
            "user_id": "",
        }
    )

    assert data.severity is Severity.HIGH
    assert data.user_id is None
    assert data.metadata is None
    assert "source_ip" not in data.model_dump()


def test_validation_error_names_the_fields() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_payload(SecurityEventIn, {"severity": "urgent"}, "Invalid security event data")

    message = exc_info.value.message
    assert message.startswith("Invalid security event data: ")
    assert "event_type" in message
    assert "description" in message
    assert "severity" in message
    assert exc_info.value.status_code == 400


def test_validation_error_without_detail() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_payload(
            ConsentUpdateIn,
            {"consent_type": "marketing", "version": "1.0"},
            "Invalid consent data",
            detailed=False,
        )

    assert exc_info.value.message == "Invalid consent data"


def test_consent_given_false_is_accepted() -> None:
    data = ConsentUpdateIn.model_validate(
        {"consent_type": "marketing", "consent_given": False, "version": 2}
    )

    assert data.consent_given is False
    assert data.version == "2"


@pytest.mark.parametrize("consent_given", [None, "true", 1])
def test_consent_given_must_be_a_boolean(consent_given: object) -> None:
    with pytest.raises(ValidationError):
        validate_payload(
            ConsentUpdateIn,
            {"consent_type": "marketing", "consent_given": consent_given, "version": "1"},
            "Invalid consent data",
        )


@pytest.mark.parametrize("deletion_type", [None, ""])
def test_deletion_type_defaults(deletion_type: object) -> None:
    data = DeletionRequestIn.model_validate({"deletion_type": deletion_type})

    assert data.deletion_type == "full_deletion"
    assert data.justification is None


def test_privacy_patch_fields_match_settings() -> None:
    assert set(PrivacySettingsPatch.model_fields) == set(PRIVACY_SETTING_FIELDS)


def test_privacy_patch_keeps_only_sent_fields() -> None:
    patch = PrivacySettingsPatch.model_validate({"data_sharing": False})

    assert patch.changes() == {"data_sharing": False}
