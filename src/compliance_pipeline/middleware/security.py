"""Request hardening: client IP resolution and size limits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from compliance_pipeline.transport.cors import CorsPolicy
from compliance_pipeline.utils.sanitize import sanitize_ip

logger = logging.getLogger(__name__)

_EXEMPT_PATHS = frozenset({"/health"})
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass(frozen=True)
class RequestLimits:
    max_body_size_bytes: int = 256 * 1024
    max_header_size_bytes: int = 8 * 1024


def get_client_ip(request: Request, trust_forwarded_headers: bool = True) -> str:
    """Resolve the caller's IP from proxy headers, falling back to the socket peer."""
    if trust_forwarded_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first = sanitize_ip(forwarded_for.split(",")[0].strip())
            if first:
                return first

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            cleaned = sanitize_ip(real_ip.strip())
            if cleaned:
                return cleaned

    if request.client:
        return request.client.host

    return "unknown"


def rate_limit_key(action: str, client_ip: str) -> str:
    """Key under which an upstream gateway limiter tracks *action* for *client_ip*."""
    return f"rate_limit:{action}:{client_ip}"


def _error(status_code: int, code: str, message: str, headers: dict[str, str]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": code},
        headers=headers,
    )


class RequestLimitsMiddleware(BaseHTTPMiddleware):
    """Reject oversized headers and bodies before any handler runs.

    Rejections carry the same CORS and hardening headers as handler responses.
    """

    EXEMPT_PATHS = _EXEMPT_PATHS

    def __init__(
        self,
        app: Callable,
        limits: RequestLimits,
        cors: CorsPolicy | None = None,
    ) -> None:
        super().__init__(app)
        self.limits = limits
        self.cors = cors or CorsPolicy()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        headers = self.cors.headers_for(request.headers.get("origin"))
        total_header_size = sum(len(k) + len(v) for k, v in request.headers.items())
        if total_header_size > self.limits.max_header_size_bytes:
            logger.warning(
                "Headers too large: %d > %d",
                total_header_size,
                self.limits.max_header_size_bytes,
            )
            return _error(431, "headers_too_large", "Request headers too large", headers)

        # Content-Length is only a fast path; the body is measured as well.
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                logger.warning("Invalid Content-Length header: %r", content_length)
                return _error(400, "invalid_request", "Invalid Content-Length header", headers)
            if size > self.limits.max_body_size_bytes:
                logger.warning(
                    "Request body too large: %d > %d", size, self.limits.max_body_size_bytes
                )
                return _error(413, "request_too_large", "Request body too large", headers)

        if request.method in _BODY_METHODS:
            body = await request.body()
            if len(body) > self.limits.max_body_size_bytes:
                logger.warning(
                    "Request body too large (read): %d > %d",
                    len(body),
                    self.limits.max_body_size_bytes,
                )
                return _error(413, "request_too_large", "Request body too large", headers)

        return await call_next(request)
