"""Validation and recording of inbound security events."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from compliance_pipeline.domain.models import SecurityEvent
from compliance_pipeline.domain.schemas import SecurityEventIn, validate_payload
from compliance_pipeline.middleware.security import rate_limit_key
from compliance_pipeline.security.alerts import AlertDispatcher
from compliance_pipeline.store.base import EventStore
from compliance_pipeline.utils.time import utc_now

logger = logging.getLogger(__name__)

INGEST_ACTION = "log_security_event"


class EventIngestor:
    """
    Validate and persist security events.

    ``source_ip`` and ``user_agent`` are supplied by the transport layer;
    values with those names in the payload are ignored.
    """

    def __init__(self, store: EventStore, dispatcher: AlertDispatcher) -> None:
        self._store = store
        self._dispatcher = dispatcher

    def ingest(
        self,
        payload: Mapping[str, Any],
        source_ip: str,
        user_agent: str,
    ) -> SecurityEvent:
        event = self._build_event(payload, source_ip, user_agent)
        logger.debug("Ingesting security event (key=%s)", rate_limit_key(INGEST_ACTION, source_ip))

        self._store.insert_event(event)
        logger.info(
            "Security event recorded id=%s type=%s severity=%s source_ip=%s",
            event.id,
            event.event_type,
            event.severity.value,
            source_ip,
        )

        if event.severity.is_alerting:
            self._dispatcher.dispatch(event, source_ip)
        return event

    def _build_event(
        self,
        payload: Mapping[str, Any],
        source_ip: str,
        user_agent: str,
    ) -> SecurityEvent:
        data = validate_payload(SecurityEventIn, payload, "Invalid security event data")
        return SecurityEvent(
            id=str(uuid.uuid4()),
            event_type=data.event_type,
            severity=data.severity,
            description=data.description,
            source_ip=source_ip,
            user_agent=user_agent,
            user_id=data.user_id,
            company_id=data.company_id,
            metadata=dict(data.metadata or {}),
            created_at=utc_now(),
        )
