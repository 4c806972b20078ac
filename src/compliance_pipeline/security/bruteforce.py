"""Brute-force detection by grouping failed-auth events per source IP."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from compliance_pipeline.domain.models import BRUTE_FORCE_EVENT_TYPE, SecurityEvent, SourceCount
from compliance_pipeline.store.base import EventStore
from compliance_pipeline.utils.time import hours_ago

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 24
DEFAULT_THRESHOLD = 5
DEFAULT_ATTEMPTS_LIMIT = 50
DEFAULT_SUSPICIOUS_LIMIT = 100


def group_by_source(events: Iterable[SecurityEvent], threshold: int) -> list[SourceCount]:
    """Count events per ``source_ip`` and keep groups with ``count >= threshold``.

    Ordered by count descending, then most recent event descending. This is the
    reference grouping; ``EventStore.count_events_by_source`` must agree with it.
    """
    counts: dict[str, int] = {}
    last_seen: dict[str, datetime] = {}
    for event in events:
        counts[event.source_ip] = counts.get(event.source_ip, 0) + 1
        seen = last_seen.get(event.source_ip)
        if seen is None or event.created_at > seen:
            last_seen[event.source_ip] = event.created_at

    groups = [
        SourceCount(ip=ip, attempts=count, last_seen=last_seen[ip])
        for ip, count in counts.items()
        if count >= threshold
    ]
    groups.sort(key=lambda g: (g.attempts, g.last_seen), reverse=True)
    return groups


class BruteForceAggregator:
    """Read-time aggregation over raw brute-force events; nothing is cached."""

    def __init__(self, store: EventStore, event_type: str = BRUTE_FORCE_EVENT_TYPE) -> None:
        self._store = store
        self._event_type = event_type

    def list_attempts(
        self,
        window_hours: int = DEFAULT_WINDOW_HOURS,
        limit: int = DEFAULT_ATTEMPTS_LIMIT,
        now: datetime | None = None,
    ) -> list[SecurityEvent]:
        return self._store.list_events(
            event_types=[self._event_type],
            since=hours_ago(window_hours, now),
            limit=limit,
        )

    def list_suspicious(
        self,
        window_hours: int = DEFAULT_WINDOW_HOURS,
        threshold: int = DEFAULT_THRESHOLD,
        limit: int = DEFAULT_SUSPICIOUS_LIMIT,
        now: datetime | None = None,
    ) -> list[SourceCount]:
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        suspicious = self._store.count_events_by_source(
            self._event_type,
            since=hours_ago(window_hours, now),
            min_count=threshold,
            limit=limit,
        )
        if suspicious:
            logger.warning(
                "%d source(s) at or above %d %s events in %dh",
                len(suspicious),
                threshold,
                self._event_type,
                window_hours,
            )
        return suspicious
