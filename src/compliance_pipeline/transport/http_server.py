"""Starlette HTTP server assembly."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from compliance_pipeline.app import AppContext, get_app_context
from compliance_pipeline.middleware.access_log import AccessLogMiddleware
from compliance_pipeline.middleware.security import RequestLimits, RequestLimitsMiddleware
from compliance_pipeline.transport.endpoints import ComplianceEndpoint, SecurityMonitorEndpoint

logger = logging.getLogger(__name__)

_ACTION_METHODS = ["GET", "POST", "OPTIONS"]


def create_http_app(context: AppContext | None = None) -> Starlette:
    """Create the HTTP application.

    Without an explicit ``context`` the process-wide one is built from the
    environment.
    """
    if context is None:
        context = get_app_context()
    server_settings = context.settings.server

    limits = RequestLimits(
        max_body_size_bytes=server_settings.max_body_size_kb * 1024,
        max_header_size_bytes=server_settings.max_header_size_kb * 1024,
    )

    # Order: RequestLimits -> AccessLog -> endpoint
    middleware = [
        Middleware(RequestLimitsMiddleware, limits=limits, cors=context.cors),
        Middleware(
            AccessLogMiddleware,
            trust_forwarded_headers=server_settings.trust_forwarded_headers,
        ),
    ]

    security_monitor = SecurityMonitorEndpoint(context)
    compliance = ComplianceEndpoint(context)

    async def health_handler(request: Request) -> Response:
        return JSONResponse({"status": "healthy"})

    routes = [
        Route("/security-monitor", endpoint=security_monitor.handle, methods=_ACTION_METHODS),
        Route("/lgpd-compliance", endpoint=compliance.handle, methods=_ACTION_METHODS),
        Route("/health", endpoint=health_handler, methods=["GET"]),
    ]

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info(
            "Starting compliance pipeline HTTP server (auth=%s)", context.settings.auth.provider
        )
        try:
            yield
        finally:
            logger.info("Stopping compliance pipeline HTTP server...")

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.context = context
    return app
