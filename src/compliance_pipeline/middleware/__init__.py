"""HTTP middleware."""

from .access_log import AccessLogMiddleware
from .security import RequestLimits, RequestLimitsMiddleware, get_client_ip, rate_limit_key

__all__ = [
    "AccessLogMiddleware",
    "RequestLimits",
    "RequestLimitsMiddleware",
    "get_client_ip",
    "rate_limit_key",
]
