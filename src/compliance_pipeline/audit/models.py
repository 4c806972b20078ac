"""Data model for audit trail entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class AuditLogEntry:
    id: str
    actor_id: str
    action_name: str
    target_type: str
    created_at: datetime
    company_id: str | None = None
    target_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "company_id": self.company_id,
            "action_name": self.action_name,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }
