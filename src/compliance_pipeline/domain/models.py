"""Domain records for security events and data-subject requests."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Opaque, schema-less payload passed through verbatim.
Metadata = dict[str, Any]

BRUTE_FORCE_EVENT_TYPE = "brute_force_attempt"

SUSPICIOUS_EVENT_TYPES: tuple[str, ...] = (
    "multiple_failed_logins",
    "suspicious_login_location",
    "unusual_access_time",
    "api_rate_limit_exceeded",
    "permission_denied_attempt",
)


class Severity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def is_alerting(self) -> bool:
        return self in (Severity.HIGH, Severity.CRITICAL)

    @classmethod
    def parse(cls, value: object) -> "Severity | None":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


ALERTING_SEVERITIES: tuple[Severity, ...] = (Severity.HIGH, Severity.CRITICAL)


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def from_stored(cls, value: str | None) -> "Role":
        """Map a stored role string to a Role; unknown values get least privilege."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.USER


class AlertStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class RequestKind(str, enum.Enum):
    EXPORT = "export"
    DELETION = "deletion"


DELETION_TYPES: frozenset[str] = frozenset({"full_deletion", "partial_deletion", "anonymization"})
DEFAULT_DELETION_TYPE = "full_deletion"


@dataclass(frozen=True)
class SecurityEvent:
    id: str
    event_type: str
    severity: Severity
    description: str
    source_ip: str
    user_agent: str
    created_at: datetime
    user_id: str | None = None
    company_id: str | None = None
    metadata: Metadata = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "severity": self.severity.value,
            "description": self.description,
            "source_ip": self.source_ip,
            "user_agent": self.user_agent,
            "user_id": self.user_id,
            "company_id": self.company_id,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class SecurityAlert:
    id: str
    recipients: tuple[str, ...]
    event_data: Metadata
    status: AlertStatus
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "recipients": list(self.recipients),
            "event_data": self.event_data,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Profile:
    id: str
    role: Role
    email: str | None = None
    empresa_id: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class ConsentRecord:
    id: str
    user_id: str
    consent_type: str
    version: str
    consent_given: bool
    ip_address: str
    user_agent: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "consent_type": self.consent_type,
            "version": self.version,
            "consent_given": self.consent_given,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": self.created_at.isoformat(),
        }


PRIVACY_SETTING_FIELDS: tuple[str, ...] = (
    "marketing_emails",
    "analytics_tracking",
    "chat_data_retention",
    "personalized_ads",
    "data_sharing",
)


@dataclass
class PrivacySettings:
    user_id: str
    marketing_emails: bool = True
    analytics_tracking: bool = True
    chat_data_retention: bool = True
    personalized_ads: bool = True
    data_sharing: bool = False
    updated_at: datetime | None = None

    @classmethod
    def defaults(cls, user_id: str) -> "PrivacySettings":
        return cls(user_id=user_id)

    def merged(self, changes: dict[str, bool], updated_at: datetime) -> "PrivacySettings":
        values = {name: getattr(self, name) for name in PRIVACY_SETTING_FIELDS}
        values.update(changes)
        return PrivacySettings(user_id=self.user_id, updated_at=updated_at, **values)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {name: getattr(self, name) for name in PRIVACY_SETTING_FIELDS}
        if self.updated_at is not None:
            data["user_id"] = self.user_id
            data["updated_at"] = self.updated_at.isoformat()
        return data


@dataclass(frozen=True)
class DataRequest:
    """A data export or deletion request awaiting an external worker.

    ``reused`` is set when the store handed back a request that was already
    pending instead of creating a new one.
    """

    id: str
    kind: RequestKind
    user_id: str
    status: str
    created_at: datetime
    deletion_type: str | None = None
    justification: str | None = None
    reused: bool = field(default=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "user_id": self.user_id,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }
        if self.kind is RequestKind.DELETION:
            data["deletion_type"] = self.deletion_type
            data["justification"] = self.justification
        return data


@dataclass(frozen=True)
class LegalDocument:
    id: str
    document_type: str
    title: str
    version: str
    content: str
    is_active: bool
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "title": self.title,
            "version": self.version,
            "content": self.content,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class SourceCount:
    """Per-IP tally of events of one type inside a window."""

    ip: str
    attempts: int
    last_seen: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"ip": self.ip, "attempts": self.attempts}
