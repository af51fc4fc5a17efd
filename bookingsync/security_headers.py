"""
Security Headers Middleware

Every GET response is stamped ``Cache-Control: no-store``: availability changes
minute to minute and booking data is per-user, so no intermediary may keep a
copy. With SECURITY_HEADERS_ENABLED the usual API hardening headers are added
as well.
"""

import logging
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .config import IS_PRODUCTION, SECURITY_HEADERS_ENABLED

logger = logging.getLogger(__name__)


def get_permissions_policy() -> str:
    """Disable browser features a JSON API never needs"""
    features = [
        "camera=()",
        "geolocation=()",
        "microphone=()",
        "payment=()",
        "usb=()",
    ]
    return ", ".join(features)


def get_security_headers_dict() -> dict:
    headers = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
        "Permissions-Policy": get_permissions_policy(),
        "X-Permitted-Cross-Domain-Policies": "none",
    }
    if IS_PRODUCTION:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds no-store caching to GET responses and, when enabled, security headers
    to all responses outside ``exclude_paths``.
    """

    def __init__(
        self,
        app,
        exclude_paths: Optional[list[str]] = None,
        security_headers: bool = SECURITY_HEADERS_ENABLED,
    ):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []
        self.security_headers = security_headers

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if request.method == "GET":
            response.headers["Cache-Control"] = "no-store"

        # Skip hardening headers for excluded paths (e.g., health checks)
        path = request.url.path
        if not self.security_headers or any(path.startswith(p) for p in self.exclude_paths):
            return response

        for name, value in get_security_headers_dict().items():
            response.headers[name] = value

        return response
