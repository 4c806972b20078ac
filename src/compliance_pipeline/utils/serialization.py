"""JSON serialization utilities."""

from __future__ import annotations

import datetime
import enum
import json


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime.date, datetime.datetime)):
        return obj.isoformat()
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return str(obj)


def dumps(payload: object) -> str:
    return json.dumps(payload, default=json_default, ensure_ascii=False)


def loads_object(raw: str | None) -> dict[str, object]:
    """Decode a stored JSON object column, tolerating NULL."""
    if not raw:
        return {}
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError("Expected a JSON object")
    return value
