"""Pending alert materialization for high-severity events."""

from __future__ import annotations

import logging
import uuid

from compliance_pipeline.auth.access_gate import ADMIN_ROLES
from compliance_pipeline.domain.models import AlertStatus, SecurityAlert, SecurityEvent
from compliance_pipeline.store.base import EventStore
from compliance_pipeline.utils.time import utc_now

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """
    Best-effort alerting.

    Writes one ``pending`` SecurityAlert addressed to every administrator.
    Delivery is owned by an external worker. Failures are logged and never
    reach the caller.
    """

    def __init__(self, store: EventStore) -> None:
        self._store = store

    def dispatch(self, event: SecurityEvent, source_ip: str) -> SecurityAlert | None:
        try:
            return self._dispatch(event, source_ip)
        except Exception:
            logger.exception(
                "Error sending security alert for event %s (%s)", event.id, event.event_type
            )
            return None

    def _dispatch(self, event: SecurityEvent, source_ip: str) -> SecurityAlert | None:
        admins = self._store.list_profiles_by_role(ADMIN_ROLES)
        recipients = tuple(p.email.strip() for p in admins if p.email and p.email.strip())
        if not recipients:
            logger.info("No administrator recipients for event %s; alert skipped", event.id)
            return None

        now = utc_now()
        alert = SecurityAlert(
            id=str(uuid.uuid4()),
            recipients=recipients,
            event_data={
                "event_type": event.event_type,
                "severity": event.severity.value,
                "description": event.description,
                "source_ip": source_ip,
                "timestamp": now.isoformat(),
            },
            status=AlertStatus.PENDING,
            created_at=now,
        )
        self._store.insert_alert(alert)
        logger.warning(
            "Security alert %s queued for %d recipient(s): %s severity=%s",
            alert.id,
            len(recipients),
            event.event_type,
            event.severity.value,
        )
        return alert
