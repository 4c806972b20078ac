"""Request payload schemas."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from compliance_pipeline.domain.models import (
    DEFAULT_DELETION_TYPE,
    DELETION_TYPES,
    PRIVACY_SETTING_FIELDS,
    Severity,
)
from compliance_pipeline.errors import ValidationError

MAX_JUSTIFICATION_LENGTH = 2000

ModelT = TypeVar("ModelT", bound=BaseModel)


def _describe_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "body"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def validate_payload(
    model: type[ModelT],
    payload: Mapping[str, Any],
    message: str,
    *,
    detailed: bool = True,
) -> ModelT:
    """Validate *payload* against *model*, raising the pipeline ``ValidationError``."""
    try:
        return model.model_validate(dict(payload))
    except PydanticValidationError as exc:
        if detailed:
            raise ValidationError(f"{message}: {_describe_errors(exc)}") from exc
        raise ValidationError(message) from exc


class SecurityEventIn(BaseModel):
    # source_ip and user_agent come from the transport, never the body.
    model_config = ConfigDict(extra="ignore")

    event_type: StrictStr = Field(min_length=1)
    severity: Severity
    description: StrictStr = Field(min_length=1)
    user_id: StrictStr | None = None
    company_id: StrictStr | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def _parse_severity(cls, v: Any) -> Severity:
        severity = Severity.parse(v)
        if severity is None:
            raise ValueError("must be one of: " + ", ".join(s.value for s in Severity))
        return severity

    @field_validator("user_id", "company_id", mode="after")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        return v or None


class ConsentUpdateIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    consent_type: StrictStr = Field(min_length=1)
    version: str = Field(min_length=1)
    # Required and strict: False is a valid answer, absent or null is not.
    consent_given: StrictBool

    @field_validator("version", mode="before")
    @classmethod
    def _version_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class DeletionRequestIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    deletion_type: StrictStr = DEFAULT_DELETION_TYPE
    justification: StrictStr | None = Field(default=None, max_length=MAX_JUSTIFICATION_LENGTH)

    @field_validator("deletion_type", mode="before")
    @classmethod
    def _default_deletion_type(cls, v: Any) -> Any:
        return v or DEFAULT_DELETION_TYPE

    @field_validator("deletion_type", mode="after")
    @classmethod
    def _known_deletion_type(cls, v: str) -> str:
        if v not in DELETION_TYPES:
            raise ValueError("must be one of: " + ", ".join(sorted(DELETION_TYPES)))
        return v


class PrivacySettingsPatch(BaseModel):
    """Partial privacy settings update; only explicitly sent fields apply."""

    model_config = ConfigDict(extra="forbid")

    marketing_emails: StrictBool | None = None
    analytics_tracking: StrictBool | None = None
    chat_data_retention: StrictBool | None = None
    personalized_ads: StrictBool | None = None
    data_sharing: StrictBool | None = None

    @field_validator(*PRIVACY_SETTING_FIELDS, mode="before")
    @classmethod
    def _reject_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("must be a boolean")
        return v

    def changes(self) -> dict[str, bool]:
        return self.model_dump(exclude_unset=True)
