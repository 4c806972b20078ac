"""Read-side queries for the security dashboard."""

from __future__ import annotations

from datetime import datetime

from compliance_pipeline.domain.models import (
    ALERTING_SEVERITIES,
    SUSPICIOUS_EVENT_TYPES,
    SecurityEvent,
)
from compliance_pipeline.store.base import EventStore
from compliance_pipeline.utils.time import hours_ago


class SecurityMonitor:
    def __init__(self, store: EventStore) -> None:
        self._store = store

    def list_alerts(self, limit: int = 100) -> list[SecurityEvent]:
        """Most recent high and critical events."""
        return self._store.list_events(severities=ALERTING_SEVERITIES, limit=limit)

    def list_suspicious_activities(
        self,
        window_days: int = 7,
        limit: int = 100,
        now: datetime | None = None,
    ) -> list[SecurityEvent]:
        return self._store.list_events(
            event_types=SUSPICIOUS_EVENT_TYPES,
            since=hours_ago(window_days * 24, now),
            limit=limit,
        )
