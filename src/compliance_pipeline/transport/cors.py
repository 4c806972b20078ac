"""CORS and hardening headers attached to every pipeline response."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from compliance_pipeline.config import DEFAULT_ALLOWED_ORIGINS

DEFAULT_ALLOWED_HEADERS: tuple[str, ...] = (
    "authorization",
    "x-client-info",
    "apikey",
    "content-type",
)
DEFAULT_ALLOWED_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "OPTIONS")

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@dataclass(frozen=True)
class CorsPolicy:
    """
    Fixed CORS contract.

    The request origin is echoed back only when it is allow-listed; any other
    origin (or none) gets the first allow-listed origin, which browsers will
    then refuse to match.
    """

    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    allowed_headers: tuple[str, ...] = DEFAULT_ALLOWED_HEADERS
    allowed_methods: tuple[str, ...] = DEFAULT_ALLOWED_METHODS
    max_age_seconds: int = 86400

    def __post_init__(self) -> None:
        if not self.allowed_origins:
            raise ValueError("CorsPolicy requires at least one allowed origin")

    def is_allowed(self, origin: str | None) -> bool:
        return origin is not None and origin in self.allowed_origins

    def headers_for(self, origin: str | None) -> dict[str, str]:
        allow_origin = origin if self.is_allowed(origin) else self.allowed_origins[0]
        headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Headers": ", ".join(self.allowed_headers),
            "Access-Control-Allow-Methods": ", ".join(self.allowed_methods),
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Max-Age": str(self.max_age_seconds),
        }
        headers.update(SECURITY_HEADERS)
        return headers


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def _substitute_env_vars(value: str) -> str:
    """Substitute ${VAR} and $VAR patterns with environment variables."""

    def replace(match: re.Match[str]) -> str:
        var_name = match.group(1) or match.group(2)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_PATTERN.sub(replace, value)


def _string_list(v: Any) -> Any:
    if v is None:
        return v
    if isinstance(v, str):
        items = _substitute_env_vars(v).split(",")
    elif isinstance(v, list):
        items = [_substitute_env_vars(str(item)) for item in v]
    else:
        return v
    return [item.strip() for item in items if item.strip()]


class CorsPolicyFile(BaseModel):
    """On-disk CORS policy; keys left out keep the built-in defaults."""

    allowed_origins: tuple[str, ...] | None = None
    allowed_headers: tuple[str, ...] | None = None
    allowed_methods: tuple[str, ...] | None = None
    max_age_seconds: int | None = Field(default=None, ge=0)

    @field_validator("allowed_origins", "allowed_headers", "allowed_methods", mode="before")
    @classmethod
    def _validate_lists(cls, v: Any) -> Any:
        return _string_list(v)

    @field_validator("allowed_methods", mode="after")
    @classmethod
    def _upper_methods(cls, v: tuple[str, ...] | None) -> tuple[str, ...] | None:
        return tuple(method.upper() for method in v) if v is not None else None

    @classmethod
    def from_yaml(cls, data: dict[str, object]) -> "CorsPolicyFile":
        return cls.model_validate(data)

    def to_policy(self) -> CorsPolicy:
        return CorsPolicy(**self.model_dump(exclude_none=True))


def load_cors_policy(config_path: str | Path) -> CorsPolicy:
    """Load a CORS policy from YAML.

    Recognised keys: ``allowed_origins``, ``allowed_headers``,
    ``allowed_methods`` and ``max_age_seconds``. Lists may also be given as
    comma-separated strings.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"CORS policy file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("CORS policy file must contain a mapping")

    return CorsPolicyFile.from_yaml(data).to_policy()
