"""Action-dispatched HTTP endpoints for security monitoring and LGPD compliance."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from starlette.requests import Request
from starlette.responses import Response

from compliance_pipeline.auth.access_gate import ADMIN_ROLES
from compliance_pipeline.auth.context import (
    get_current_identity,
    reset_current_identity,
    set_current_identity,
)
from compliance_pipeline.errors import (
    InternalError,
    PipelineError,
    UnknownActionError,
    ValidationError,
)
from compliance_pipeline.middleware.security import get_client_ip
from compliance_pipeline.utils.sanitize import sanitize_input, sanitize_log_value
from compliance_pipeline.utils.serialization import dumps

if TYPE_CHECKING:
    from compliance_pipeline.app import AppContext

logger = logging.getLogger(__name__)

ActionHandler = Callable[[Request], Awaitable[dict[str, Any]]]


def json_response(payload: dict[str, Any], status_code: int, headers: dict[str, str]) -> Response:
    return Response(
        content=dumps(payload),
        status_code=status_code,
        headers=headers,
        media_type="application/json",
    )


async def read_json_object(request: Request) -> dict[str, Any]:
    """Decode the request body as a JSON object; an empty body is ``{}``."""
    body = await request.body()
    if not body.strip():
        return {}
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Invalid JSON body") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


class ActionEndpoint:
    """
    One route, many operations, selected by the ``action`` query parameter.

    Every response, including errors and ``OPTIONS`` preflights, carries the
    CORS policy headers.
    """

    name = "endpoint"

    def __init__(self, context: AppContext) -> None:
        self.context = context
        self._actions: dict[str, ActionHandler] = {}

    def register(self, action: str, handler: ActionHandler) -> None:
        self._actions[action] = handler

    def client_ip(self, request: Request) -> str:
        return get_client_ip(
            request,
            trust_forwarded_headers=self.context.settings.server.trust_forwarded_headers,
        )

    def user_agent(self, request: Request) -> str:
        return sanitize_input(request.headers.get("user-agent", "")) or "unknown"

    async def handle(self, request: Request) -> Response:
        cors_headers = self.context.cors.headers_for(request.headers.get("origin"))
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=cors_headers)

        action = request.query_params.get("action", "")
        try:
            payload = await self.dispatch(request, action)
        except PipelineError as exc:
            if exc.status_code >= 500:
                logger.error(
                    "%s action=%s failed: %s (%s)",
                    self.name,
                    sanitize_log_value(action),
                    exc.message,
                    exc.code,
                )
            return json_response({"error": exc.message}, exc.status_code, cors_headers)
        except Exception:
            logger.exception(
                "Unhandled error in %s action=%s", self.name, sanitize_log_value(action)
            )
            error = InternalError("Internal server error")
            return json_response({"error": error.message}, error.status_code, cors_headers)

        return json_response(payload, 200, cors_headers)

    async def dispatch(self, request: Request, action: str) -> dict[str, Any]:
        return await self._handler_for(action)(request)

    def _handler_for(self, action: str) -> ActionHandler:
        handler = self._actions.get(action)
        if handler is None:
            raise UnknownActionError("Invalid action")
        return handler


class SecurityMonitorEndpoint(ActionEndpoint):
    """``/security-monitor``: event ingestion and dashboard reads."""

    name = "security-monitor"

    def __init__(self, context: AppContext) -> None:
        super().__init__(context)
        self.register("log_security_event", self.log_security_event)
        self.register("get_security_alerts", self.get_security_alerts)
        self.register("get_bruteforce_attempts", self.get_bruteforce_attempts)
        self.register("get_suspicious_activities", self.get_suspicious_activities)

    async def log_security_event(self, request: Request) -> dict[str, Any]:
        payload = await read_json_object(request)
        event = await asyncio.to_thread(
            self.context.ingestor.ingest,
            payload,
            self.client_ip(request),
            self.user_agent(request),
        )
        return {"success": True, "message": "Security event recorded", "event_id": event.id}

    async def get_security_alerts(self, request: Request) -> dict[str, Any]:
        gate = self.context.access_gate
        identity = await gate.resolve_identity(request.headers.get("authorization"))
        request.state.user_id = identity.user_id
        await asyncio.to_thread(gate.require_role, identity, ADMIN_ROLES)

        events = await asyncio.to_thread(
            self.context.monitor.list_alerts,
            self.context.settings.monitor.alerts_limit,
        )
        return {"alerts": [event.to_dict() for event in events]}

    async def get_bruteforce_attempts(self, request: Request) -> dict[str, Any]:
        monitor = self.context.settings.monitor
        aggregator = self.context.bruteforce
        attempts = await asyncio.to_thread(
            aggregator.list_attempts,
            monitor.bruteforce_window_hours,
            monitor.bruteforce_attempts_limit,
        )
        suspicious = await asyncio.to_thread(
            aggregator.list_suspicious,
            monitor.bruteforce_window_hours,
            monitor.bruteforce_threshold,
            monitor.suspicious_ips_limit,
        )
        return {
            "brute_force_attempts": [event.to_dict() for event in attempts],
            "suspicious_ips": [group.to_dict() for group in suspicious],
        }

    async def get_suspicious_activities(self, request: Request) -> dict[str, Any]:
        monitor = self.context.settings.monitor
        events = await asyncio.to_thread(
            self.context.monitor.list_suspicious_activities,
            monitor.suspicious_window_days,
            monitor.suspicious_activities_limit,
        )
        return {"suspicious_activities": [event.to_dict() for event in events]}


class ComplianceEndpoint(ActionEndpoint):
    """``/lgpd-compliance``: data-subject operations for the authenticated caller.

    The caller is authenticated before the action is looked up, so an unknown
    action from an anonymous caller is a 401 rather than a 400.
    """

    name = "lgpd-compliance"

    def __init__(self, context: AppContext) -> None:
        super().__init__(context)
        self.register("get_consent_status", self.get_consent_status)
        self.register("update_consent", self.update_consent)
        self.register("create_export_request", self.create_export_request)
        self.register("create_deletion_request", self.create_deletion_request)
        self.register("get_privacy_settings", self.get_privacy_settings)
        self.register("update_privacy_settings", self.update_privacy_settings)
        self.register("get_legal_documents", self.get_legal_documents)

    async def dispatch(self, request: Request, action: str) -> dict[str, Any]:
        identity = await self.context.access_gate.resolve_identity(
            request.headers.get("authorization")
        )
        request.state.user_id = identity.user_id
        token = set_current_identity(identity)
        try:
            return await self._handler_for(action)(request)
        finally:
            reset_current_identity(token)

    async def get_consent_status(self, request: Request) -> dict[str, Any]:
        user_id = get_current_identity().user_id
        records = await asyncio.to_thread(self.context.compliance.get_consent_status, user_id)
        return {"consent_status": [record.to_dict() for record in records]}

    async def update_consent(self, request: Request) -> dict[str, Any]:
        user_id = get_current_identity().user_id
        payload = await read_json_object(request)
        await asyncio.to_thread(
            self.context.compliance.update_consent,
            user_id,
            payload,
            self.client_ip(request),
            self.user_agent(request),
        )
        return {"success": True, "message": "Consent updated"}

    async def create_export_request(self, request: Request) -> dict[str, Any]:
        user_id = get_current_identity().user_id
        created = await asyncio.to_thread(self.context.compliance.create_export_request, user_id)
        return {"success": True, "request_id": created.id, "message": "Export request created"}

    async def create_deletion_request(self, request: Request) -> dict[str, Any]:
        user_id = get_current_identity().user_id
        payload = await read_json_object(request)
        created = await asyncio.to_thread(
            self.context.compliance.create_deletion_request,
            user_id,
            payload.get("deletion_type"),
            payload.get("justification"),
        )
        return {"success": True, "request_id": created.id, "message": "Deletion request created"}

    async def get_privacy_settings(self, request: Request) -> dict[str, Any]:
        user_id = get_current_identity().user_id
        settings = await asyncio.to_thread(self.context.compliance.get_privacy_settings, user_id)
        return {"privacy_settings": settings.to_dict()}

    async def update_privacy_settings(self, request: Request) -> dict[str, Any]:
        user_id = get_current_identity().user_id
        changes = await read_json_object(request)
        updated = await asyncio.to_thread(
            self.context.compliance.update_privacy_settings, user_id, changes
        )
        return {
            "success": True,
            "message": "Privacy settings updated",
            "privacy_settings": updated.to_dict(),
        }

    async def get_legal_documents(self, request: Request) -> dict[str, Any]:
        documents = await asyncio.to_thread(self.context.compliance.get_legal_documents)
        return {"legal_documents": [document.to_dict() for document in documents]}
