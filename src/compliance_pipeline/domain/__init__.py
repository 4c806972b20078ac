"""Domain records."""

from compliance_pipeline.domain.models import (
    ALERTING_SEVERITIES,
    BRUTE_FORCE_EVENT_TYPE,
    DEFAULT_DELETION_TYPE,
    DELETION_TYPES,
    PRIVACY_SETTING_FIELDS,
    SUSPICIOUS_EVENT_TYPES,
    AlertStatus,
    ConsentRecord,
    DataRequest,
    LegalDocument,
    Metadata,
    PrivacySettings,
    Profile,
    RequestKind,
    Role,
    SecurityAlert,
    SecurityEvent,
    Severity,
    SourceCount,
)

__all__ = [
    "ALERTING_SEVERITIES",
    "BRUTE_FORCE_EVENT_TYPE",
    "DEFAULT_DELETION_TYPE",
    "DELETION_TYPES",
    "PRIVACY_SETTING_FIELDS",
    "SUSPICIOUS_EVENT_TYPES",
    "AlertStatus",
    "ConsentRecord",
    "DataRequest",
    "LegalDocument",
    "Metadata",
    "PrivacySettings",
    "Profile",
    "RequestKind",
    "Role",
    "SecurityAlert",
    "SecurityEvent",
    "Severity",
    "SourceCount",
]
