"""
Webhook Security Module

Verification for inbound Acuity deliveries:
- Shared token sent as ``?token=`` or ``X-Acuity-Token`` (constant-time compare)
- Optional ``X-Acuity-Signature`` check (base64 HMAC-SHA256 of the raw body,
  keyed with the Acuity API key)
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256_base64(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload and return base64 encoded"""
    signature = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    return base64.b64encode(signature).decode("utf-8")


def extract_webhook_token(request: Request) -> Optional[str]:
    return request.query_params.get("token") or request.headers.get("X-Acuity-Token")


def verify_acuity_token(request: Request, expected_token: Optional[str]) -> None:
    """
    Reject the delivery with 401 unless it carries the shared token.

    When no token is configured verification is skipped with a warning, so
    local development keeps working.
    """
    if not expected_token:
        logger.warning("⚠️ ACUITY_WEBHOOK_TOKEN not configured - skipping webhook token check")
        return

    provided = extract_webhook_token(request)
    if not constant_time_compare(provided or "", expected_token):
        client_ip = request.client.host if request.client else "unknown"
        logger.warning(f"🚫 Invalid Acuity webhook token from {client_ip}")
        raise HTTPException(status_code=401, detail="Invalid webhook token")


def verify_acuity_signature(body: bytes, signature: Optional[str], api_key: Optional[str]) -> bool:
    """
    Check an X-Acuity-Signature header against the raw request body.

    Returns True when no signature was sent (token auth is the primary gate)
    or no API key is available to check it with.
    """
    if not signature or not api_key:
        return True

    expected = compute_hmac_sha256_base64(api_key, body)
    if not constant_time_compare(signature.strip(), expected):
        logger.warning("🚫 Acuity webhook signature mismatch")
        return False
    logger.debug("✅ Acuity webhook signature verified")
    return True
