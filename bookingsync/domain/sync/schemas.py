"""Sync schemas - webhook payload normalisation and reconciliation results"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qsl

from pydantic import ValidationError as PydanticValidationError

from ...errors import ValidationError
from ...models import SessionBooking
from ...services.acuity_schemas import AcuityAppointment

logger = logging.getLogger(__name__)

CREATION_ACTIONS = frozenset({"scheduled", "appointment.scheduled", "created"})


class ReconcileOutcome(str, enum.Enum):
    SYNCED = "synced"
    ALREADY_SYNCED = "already_synced"
    SKIPPED_UNKNOWN_MENTEE = "skipped_unknown_mentee"
    SKIPPED_UNMAPPED_TYPE = "skipped_unmapped_type"
    SKIPPED_CANCELLED = "skipped_cancelled"

    @property
    def is_skip(self) -> bool:
        return self is not ReconcileOutcome.SYNCED


@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    booking: Optional[SessionBooking] = None


@dataclass
class SyncScope:
    """Date window (inclusive, YYYY-MM-DD) and optional email filter for one pull"""

    min_date: str
    max_date: str
    email: Optional[str] = None


@dataclass
class SyncSummary:
    total: int = 0
    synced: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict:
        return {
            "totalAppointments": self.total,
            "syncedAppointments": self.synced,
            "skippedAppointments": self.skipped,
            "errorCount": self.error_count,
            "errors": list(self.errors),
        }


@dataclass
class WebhookEvent:
    action: str
    appointment: AcuityAppointment

    @property
    def is_creation(self) -> bool:
        return self.action in CREATION_ACTIONS


def _set_nested(target: dict, key: str, value: str) -> None:
    """``appointment[client][email]`` -> target["appointment"]["client"]["email"]"""
    parts = [p.strip() for p in key.replace("]", "").split("[") if p.strip()]
    if not parts:
        return
    current = target
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def parse_form_encoded(raw: str) -> dict:
    pairs = parse_qsl(raw, keep_blank_values=True)

    # A JSON document posted as the only form key, with no value
    if len(pairs) == 1 and not pairs[0][1]:
        only_key = pairs[0][0].strip()
        if only_key.startswith("{") and only_key.endswith("}"):
            try:
                recovered = json.loads(only_key)
            except ValueError:
                logger.warning("⚠️ Webhook form key looked like JSON but did not parse")
            else:
                logger.info("🔍 Recovered JSON-from-key webhook payload")
                return recovered

    payload: dict = {}
    for key, value in pairs:
        _set_nested(payload, key, value)
    return payload


def parse_webhook_body(raw: bytes, content_type: Optional[str]) -> dict:
    """
    Decode a webhook body into a dict.

    Acuity posts form-encoded bodies; some relays forward JSON, and a few send
    a JSON document as the only form key. All three shapes are accepted.
    """
    text = raw.decode("utf-8", errors="replace").strip() if raw else ""
    media_type = (content_type or "").split(";")[0].strip().lower()

    if not text:
        raise ValidationError("Empty webhook payload", code="INVALID_PAYLOAD")

    if media_type == "application/json" or text.startswith("{"):
        try:
            payload = json.loads(text)
        except ValueError as e:
            if media_type == "application/json":
                raise ValidationError("Invalid JSON", code="INVALID_PAYLOAD") from e
            payload = parse_form_encoded(text)
    else:
        payload = parse_form_encoded(text)

    if not isinstance(payload, dict) or not payload:
        raise ValidationError("Webhook payload must be an object", code="INVALID_PAYLOAD")
    return payload


def to_webhook_event(payload: dict, default_action: Optional[str] = None) -> WebhookEvent:
    """
    Build a WebhookEvent from a decoded payload.

    The appointment may be nested under ``appointment`` or sit at the top
    level (Acuity's native form posts ``action``, ``id`` and
    ``appointmentTypeID`` side by side). A missing action falls back to
    ``default_action`` and then to ``scheduled``.
    """
    action = str(payload.get("action") or default_action or "scheduled").strip().lower()
    body = payload.get("appointment")
    if not isinstance(body, dict):
        body = {k: v for k, v in payload.items() if k != "action"}
    elif payload.get("email") and not body.get("email"):
        body = {**body, "email": payload["email"]}

    try:
        appointment = AcuityAppointment.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid appointment payload",
            code="INVALID_PAYLOAD",
            details={"fields": sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})},
        ) from e

    return WebhookEvent(action=action, appointment=appointment)
