"""Sensitive-field masking for log output.

``redact_sensitive_fields`` walks dicts/lists and replaces values whose keys
contain a known marker. ``mask_sensitive_text`` applies the same idea to
free-form strings such as exception messages.
"""

from __future__ import annotations

import re
from functools import lru_cache

_MAX_REDACT_DEPTH = 20

# Substring match, case-insensitive.
SENSITIVE_KEY_MARKERS: tuple[str, ...] = (
    "password",
    "secret",
    "token",
    "apikey",
    "api_key",
    "credential",
    "authorization",
    "service_role",
)


def redact_sensitive_fields(
    value: object,
    *,
    mask: str = "***",
    depth: int = 0,
    max_depth: int = _MAX_REDACT_DEPTH,
) -> object:
    """Recursively replace sensitive values in dicts/lists."""
    if depth >= max_depth:
        return mask
    if isinstance(value, dict):
        redacted: dict[str, object] = {}
        for key, val in value.items():
            if any(marker in str(key).lower() for marker in SENSITIVE_KEY_MARKERS):
                redacted[key] = mask
            else:
                redacted[key] = redact_sensitive_fields(
                    val, mask=mask, depth=depth + 1, max_depth=max_depth,
                )
        return redacted
    if isinstance(value, list):
        return [
            redact_sensitive_fields(item, mask=mask, depth=depth + 1, max_depth=max_depth)
            for item in value
        ]
    return value


@lru_cache(maxsize=64)
def _mask_pattern(marker: str) -> re.Pattern[str]:
    return re.compile(
        rf'(["\']?\w*{re.escape(marker)}\w*["\']?\s*[:=]\s*)["\']?[^"\'\s,]*["\']?',
        re.IGNORECASE,
    )


def mask_sensitive_text(message: str, mask: str = "***MASKED***") -> str:
    """Mask ``key=value`` / ``key: value`` pairs whose key looks sensitive."""
    masked = re.sub(r"(?i)bearer\s+[\w\-.~+/=]+", f"Bearer {mask}", message)
    for marker in SENSITIVE_KEY_MARKERS:
        masked = _mask_pattern(marker).sub(rf"\g<1>{mask}", masked)
    return masked
