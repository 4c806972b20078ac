"""Input sanitizers shared by the HTTP handlers."""

from __future__ import annotations

import re

_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")
_MARKUP_CHAR_RE = re.compile(r"[<>\"'&]")


def sanitize_log_value(value: str) -> str:
    """Replace control characters (newlines, tabs, etc.) to prevent log injection."""
    return _CONTROL_CHAR_RE.sub("_", value)


def sanitize_ip(value: str) -> str:
    """Keep printable ASCII only."""
    return "".join(c for c in value if 0x20 <= ord(c) < 0x7F)


def sanitize_input(value: str) -> str:
    """Strip characters that could be interpreted as markup."""
    return _MARKUP_CHAR_RE.sub("", value).strip()
