"""Per-request access logging with sensitive value masking."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from compliance_pipeline.middleware.security import get_client_ip
from compliance_pipeline.utils.masking import mask_sensitive_text
from compliance_pipeline.utils.sanitize import sanitize_log_value

logger = logging.getLogger(__name__)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    Log one REQUEST_START and one REQUEST_END line per request.

    The user id is read from ``request.state.user_id``, which endpoints set
    after resolving the caller.
    """

    EXEMPT_PATHS = frozenset({"/health"})

    def __init__(self, app: Callable, trust_forwarded_headers: bool = True) -> None:
        super().__init__(app)
        self._trust_forwarded_headers = trust_forwarded_headers

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        request_id = sanitize_log_value(request.headers.get("x-request-id", str(uuid.uuid4())))
        request.state.request_id = request_id
        start_time = time.time()

        safe_path = sanitize_log_value(request.url.path)
        safe_action = sanitize_log_value(request.query_params.get("action", "-"))
        safe_ip = sanitize_log_value(
            get_client_ip(request, trust_forwarded_headers=self._trust_forwarded_headers)
        )

        logger.info(
            "REQUEST_START request_id=%s method=%s path=%s action=%s client_ip=%s",
            request_id,
            request.method,
            safe_path,
            safe_action,
            safe_ip,
        )

        error_message: str | None = None
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as exc:
            error_message = mask_sensitive_text(str(exc))
            raise
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            user_id = sanitize_log_value(str(getattr(request.state, "user_id", "anonymous")))
            if error_message:
                logger.error(
                    "REQUEST_END request_id=%s user_id=%s method=%s path=%s action=%s "
                    "status=%s duration_ms=%d error=%s",
                    request_id,
                    user_id,
                    request.method,
                    safe_path,
                    safe_action,
                    status_code,
                    duration_ms,
                    error_message,
                )
            else:
                logger.info(
                    "REQUEST_END request_id=%s user_id=%s method=%s path=%s action=%s "
                    "status=%s duration_ms=%d",
                    request_id,
                    user_id,
                    request.method,
                    safe_path,
                    safe_action,
                    status_code,
                    duration_ms,
                )
