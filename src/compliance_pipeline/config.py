"""Configuration management for the compliance pipeline service."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_ORIGINS: tuple[str, ...] = (
    "https://dashboardmbk.com.br",
    "https://www.dashboardmbk.com.br",
    "http://localhost:8080",
    "http://localhost:5173",
)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class StorageSettings(BaseModel):
    sqlite_path: str = Field(default="./data/compliance.sqlite")
    sqlite_wal: bool = Field(default=True)


class AuthSettings(BaseModel):
    """Identity provider settings.

    Two providers are supported:
    - jwt: verify HS256 access tokens locally with the project JWT secret
    - remote: exchange the bearer token at ``<identity_url>/auth/v1/user``
    """

    provider: Literal["jwt", "remote"] = Field(default="jwt")
    jwt_secret: str | None = Field(default=None, repr=False)
    jwt_audience: str = Field(default="authenticated")
    jwt_algorithms: tuple[str, ...] = Field(default=("HS256",))
    identity_url: str | None = Field(default=None)
    identity_api_key: str | None = Field(default=None, repr=False)
    request_timeout_seconds: float = Field(default=10.0, gt=0, le=120)

    @field_validator("identity_url")
    @classmethod
    def _strip_identity_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip().rstrip("/")
        return stripped or None


class MonitorSettings(BaseModel):
    bruteforce_window_hours: int = Field(default=24, ge=1, le=24 * 30)
    bruteforce_threshold: int = Field(default=5, ge=1)
    bruteforce_attempts_limit: int = Field(default=50, ge=1, le=1000)
    suspicious_ips_limit: int = Field(default=100, ge=1, le=1000)
    alerts_limit: int = Field(default=100, ge=1, le=1000)
    suspicious_window_days: int = Field(default=7, ge=1, le=365)
    suspicious_activities_limit: int = Field(default=100, ge=1, le=1000)


class CorsSettings(BaseModel):
    allowed_origins: tuple[str, ...] = Field(default=DEFAULT_ALLOWED_ORIGINS)
    policy_path: str | None = Field(default=None)

    @field_validator("allowed_origins")
    @classmethod
    def _require_origin(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("at least one allowed origin is required")
        return value


class ServerSettings(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1024, le=65535)
    trust_forwarded_headers: bool = Field(default=True)
    max_body_size_kb: int = Field(default=256, ge=1)
    max_header_size_kb: int = Field(default=8, ge=1)


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    cors: CorsSettings = Field(default_factory=CorsSettings)


ENV_KEYS = {
    "host": "PIPELINE_HOST",
    "port": "PIPELINE_PORT",
    "trust_forwarded_headers": "HTTP_TRUST_FORWARDED_HEADERS",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "sqlite_path": "SQLITE_PATH",
    "auth_provider": "AUTH_PROVIDER",
    "jwt_secret": "AUTH_JWT_SECRET",
    "jwt_audience": "AUTH_JWT_AUDIENCE",
    "identity_url": "IDENTITY_URL",
    "identity_api_key": "IDENTITY_API_KEY",
    "allowed_origins": "HTTP_ALLOWED_ORIGINS",
    "cors_policy_path": "CORS_POLICY_PATH",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})
_IN_MEMORY_DB = ":memory:"


def _split_csv_preserve_case(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    if path == _IN_MEMORY_DB:
        return path
    candidate = Path(path)
    root = _project_root().resolve()
    if candidate.is_absolute():
        resolved = candidate.resolve()
    else:
        resolved = (root / candidate).resolve()
    if not resolved.is_relative_to(root):
        raise ValueError(f"Path traversal detected: '{path}' resolves outside project root")
    return str(resolved)


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def validate_required_env(required: list[str]) -> None:
    """Raise if any of the given environment variables is unset or empty."""
    missing = [name for name in required if not os.getenv(name)]
    if missing:
        raise RuntimeError(f"Missing environment variables: {', '.join(missing)}")


def _required_env_for(provider: str) -> list[str]:
    if provider == "remote":
        return [ENV_KEYS["identity_url"], ENV_KEYS["identity_api_key"]]
    return [ENV_KEYS["jwt_secret"]]


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])
    origins = _split_csv_preserve_case(os.getenv(ENV_KEYS["allowed_origins"]))
    policy_path_env = os.getenv(ENV_KEYS["cors_policy_path"])
    provider = os.getenv(ENV_KEYS["auth_provider"], AuthSettings().provider).strip().lower()

    settings_data: dict[str, object] = {
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
            "trust_forwarded_headers": _env_bool(
                ENV_KEYS["trust_forwarded_headers"],
                ServerSettings().trust_forwarded_headers,
            ),
            "max_body_size_kb": _env_int(
                "HTTP_MAX_BODY_SIZE_KB", ServerSettings().max_body_size_kb
            ),
            "max_header_size_kb": _env_int(
                "HTTP_MAX_HEADER_SIZE_KB", ServerSettings().max_header_size_kb
            ),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "storage": {
            "sqlite_path": _resolve_path(
                os.getenv(ENV_KEYS["sqlite_path"], StorageSettings().sqlite_path)
            ),
            "sqlite_wal": _env_bool("SQLITE_WAL", StorageSettings().sqlite_wal),
        },
        "auth": {
            "provider": provider,
            "jwt_secret": os.getenv(ENV_KEYS["jwt_secret"]),
            "jwt_audience": os.getenv(ENV_KEYS["jwt_audience"], AuthSettings().jwt_audience),
            "identity_url": os.getenv(ENV_KEYS["identity_url"]),
            "identity_api_key": os.getenv(ENV_KEYS["identity_api_key"]),
            "request_timeout_seconds": _env_float(
                "AUTH_REQUEST_TIMEOUT_SECONDS",
                AuthSettings().request_timeout_seconds,
            ),
        },
        "monitor": {
            "bruteforce_window_hours": _env_int(
                "BRUTEFORCE_WINDOW_HOURS", MonitorSettings().bruteforce_window_hours
            ),
            "bruteforce_threshold": _env_int(
                "BRUTEFORCE_THRESHOLD", MonitorSettings().bruteforce_threshold
            ),
            "bruteforce_attempts_limit": _env_int(
                "BRUTEFORCE_ATTEMPTS_LIMIT", MonitorSettings().bruteforce_attempts_limit
            ),
            "suspicious_ips_limit": _env_int(
                "SUSPICIOUS_IPS_LIMIT", MonitorSettings().suspicious_ips_limit
            ),
            "alerts_limit": _env_int("SECURITY_ALERTS_LIMIT", MonitorSettings().alerts_limit),
            "suspicious_window_days": _env_int(
                "SUSPICIOUS_WINDOW_DAYS", MonitorSettings().suspicious_window_days
            ),
            "suspicious_activities_limit": _env_int(
                "SUSPICIOUS_ACTIVITIES_LIMIT", MonitorSettings().suspicious_activities_limit
            ),
        },
        "cors": {
            "allowed_origins": tuple(origins) if origins else DEFAULT_ALLOWED_ORIGINS,
            "policy_path": _resolve_path(policy_path_env) if policy_path_env else None,
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    validate_required_env(_required_env_for(settings.auth.provider))

    if settings.storage.sqlite_path != _IN_MEMORY_DB:
        Path(settings.storage.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return settings
