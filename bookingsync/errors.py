"""
Typed errors shared by the availability, booking and sync layers.

Each error knows the HTTP status it maps to; main.py renders them with
``to_response()`` so routers never build error bodies by hand.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class BookingSyncError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 500
    error_type = "server_error"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def to_response(self) -> dict:
        error = {
            "type": self.error_type,
            "message": self.message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self.code:
            error["code"] = self.code
        if self.details is not None:
            error["details"] = self.details
        return {"success": False, "error": error}


class ValidationError(BookingSyncError):
    """Malformed caller input, rejected before any provider call"""

    status_code = 400
    error_type = "client_error"


class NotFoundError(BookingSyncError):
    status_code = 404
    error_type = "client_error"


class ConflictError(BookingSyncError):
    """The provider rejected the requested slot"""

    status_code = 400
    error_type = "client_error"

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason

    def to_response(self) -> dict:
        body = super().to_response()
        body["reason"] = self.reason
        return body


class UpstreamError(BookingSyncError):
    """Acuity answered with a non-2xx status or a body we could not use"""

    status_code = 502
    error_type = "upstream_error"

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        body: Any = None,
        code: Optional[str] = "ACUITY_UPSTREAM_ERROR",
    ):
        details = {"upstreamStatus": upstream_status} if upstream_status is not None else None
        super().__init__(message, code=code, details=details)
        self.upstream_status = upstream_status
        self.body = body


class RateLimitedError(UpstreamError):
    """Acuity returned 429 - the only failure the retry policy retries"""

    def __init__(self, message: str, body: Any = None):
        super().__init__(message, upstream_status=429, body=body, code="ACUITY_RATE_LIMITED")


class ProviderTimeoutError(BookingSyncError):
    """Acuity did not answer within the request timeout"""

    status_code = 504
    error_type = "timeout_error"

    def __init__(self, message: str = "Acuity request timed out", **kwargs):
        kwargs.setdefault("code", "ACUITY_TIMEOUT")
        super().__init__(message, **kwargs)


class ConfigurationError(BookingSyncError):
    status_code = 500
    error_type = "server_error"


class PersistenceError(BookingSyncError):
    """The booking store rejected a write"""

    status_code = 500
    error_type = "server_error"
