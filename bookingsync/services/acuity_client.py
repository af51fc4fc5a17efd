"""
Acuity Scheduling API client

Thin authenticated wrapper around the Acuity v1 REST surface. Every call goes
through the shared RetryPolicy, carries a request timeout, and maps failures
onto the typed errors in ``bookingsync.errors``.
"""

import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..config import (
    ACUITY_API_KEY,
    ACUITY_APPOINTMENTS_MAX,
    ACUITY_BASE_URL,
    ACUITY_MAX_RETRIES,
    ACUITY_RETRY_BASE_DELAY,
    ACUITY_RETRY_MAX_DELAY,
    ACUITY_TIMEOUT_SECONDS,
    ACUITY_USER_ID,
)
from ..errors import ConfigurationError, ProviderTimeoutError, RateLimitedError, UpstreamError
from .acuity_schemas import AcuityAppointment, AvailableDate, AvailableTime, SlotCheck
from .retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

_dates_adapter = TypeAdapter(list[AvailableDate])
_times_adapter = TypeAdapter(list[AvailableTime])
_slot_checks_adapter = TypeAdapter(list[SlotCheck])
_appointments_adapter = TypeAdapter(list[AcuityAppointment])
_appointment_adapter = TypeAdapter(AcuityAppointment)


@dataclass
class AppointmentContact:
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass
class SlotValidation:
    valid: bool
    reason: Optional[str] = None


@dataclass
class CreatedAppointment:
    external_id: str
    raw: dict


def _type_id(appointment_type_id: Union[str, int]) -> Union[str, int]:
    """Acuity expects numeric appointment type ids in JSON bodies"""
    value = str(appointment_type_id)
    return int(value) if value.isdigit() else value


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or fallback)
    return fallback


class AcuityClient:
    """Client for the Acuity Scheduling API"""

    def __init__(
        self,
        user_id: str,
        api_key: str,
        base_url: str = ACUITY_BASE_URL,
        timeout: float = ACUITY_TIMEOUT_SECONDS,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        credentials = base64.b64encode(f"{user_id}:{api_key}".encode()).decode()
        self.auth_header = f"Basic {credentials}"
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=ACUITY_MAX_RETRIES,
            base_delay=ACUITY_RETRY_BASE_DELAY,
            max_delay=ACUITY_RETRY_MAX_DELAY,
        )
        self.transport = transport

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
    ) -> Any:
        """Single HTTP round trip; raises typed errors, never retries"""
        headers = {
            "Authorization": self.auth_header,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout), transport=self.transport
        ) as client:
            try:
                response = await client.request(
                    method, f"{self.base_url}{path}", params=params, json=json, headers=headers
                )
            except httpx.TimeoutException as e:
                logger.warning(f"⏱️ Acuity {method} {path} timed out after {self.timeout}s")
                raise ProviderTimeoutError(f"Acuity request timed out: {method} {path}") from e
            except httpx.HTTPError as e:
                logger.error(f"❌ Acuity {method} {path} network error: {e}")
                raise UpstreamError(f"Network error talking to Acuity: {e}") from e

        text = response.text
        try:
            body = response.json() if text else None
            is_json = text != ""
        except ValueError:
            body, is_json = None, False

        if response.status_code == 429:
            raise RateLimitedError(
                f"Rate limited by Acuity: {_error_message(body, text)}", body=body if is_json else text
            )

        if not response.is_success:
            logger.error(f"❌ Acuity {method} {path} failed: {response.status_code}")
            raise UpstreamError(
                f"Acuity error {response.status_code}: {_error_message(body, text or 'no body')}",
                upstream_status=response.status_code,
                body=body if is_json else text,
            )

        if not is_json:
            # Acuity serves HTML error pages with 200 on some auth failures
            logger.error(f"❌ Acuity {method} {path} returned a non-JSON body")
            raise UpstreamError(
                "Acuity returned a non-JSON response",
                upstream_status=response.status_code,
                body=text,
            )

        return body

    async def request(self, method: str, path: str, **kwargs) -> Any:
        return await self.retry_policy.call(self._send, method, path, **kwargs)

    @staticmethod
    def _parse(adapter: TypeAdapter, data: Any, what: str):
        try:
            return adapter.validate_python(data)
        except PydanticValidationError as e:
            logger.error(f"❌ Unexpected Acuity response shape for {what}: {e.error_count()} errors")
            raise UpstreamError(
                f"Unexpected Acuity response shape for {what}", body=data
            ) from e

    async def list_dates(self, appointment_type_id: str, month: str, timezone: str) -> list[str]:
        """Available dates (YYYY-MM-DD) for an appointment type in a month (YYYY-MM)"""
        data = await self.request(
            "GET",
            "/availability/dates",
            params={"appointmentTypeID": appointment_type_id, "month": month, "timezone": timezone},
        )
        return [d.date for d in self._parse(_dates_adapter, data, "availability dates")]

    async def list_times(self, appointment_type_id: str, date: str, timezone: str) -> list[str]:
        """Raw available time strings for a single date, as Acuity formats them"""
        data = await self.request(
            "GET",
            "/availability/times",
            params={"appointmentTypeID": appointment_type_id, "date": date, "timezone": timezone},
        )
        return [t.time for t in self._parse(_times_adapter, data, "availability times")]

    async def validate_slot(
        self,
        appointment_type_id: str,
        instant: Union[datetime, str],
        timezone: Optional[str] = None,
    ) -> SlotValidation:
        """Ask Acuity whether a slot can still be booked"""
        slot = {
            "datetime": instant.isoformat() if isinstance(instant, datetime) else instant,
            "appointmentTypeID": _type_id(appointment_type_id),
        }
        if timezone:
            slot["timezone"] = timezone
        data = await self.request("POST", "/availability/check-times", json=[slot])
        checks = self._parse(_slot_checks_adapter, data, "slot validation")
        if not checks:
            raise UpstreamError("Acuity returned an empty slot validation result", body=data)
        check = checks[0]
        reason = None if check.valid else (check.reason or "Time slot no longer available")
        return SlotValidation(valid=check.valid, reason=reason)

    async def create_appointment(
        self,
        appointment_type_id: str,
        instant: Union[datetime, str],
        timezone: str,
        contact: AppointmentContact,
        notes: Optional[str] = None,
    ) -> CreatedAppointment:
        payload = {
            "appointmentTypeID": _type_id(appointment_type_id),
            "datetime": instant.isoformat() if isinstance(instant, datetime) else instant,
            "timezone": timezone,
            "firstName": contact.first_name or "User",
            "lastName": contact.last_name or "",
            "email": contact.email,
        }
        if notes:
            payload["notes"] = notes
        data = await self.request("POST", "/appointments", json=payload)
        appointment = self._parse(_appointment_adapter, data, "created appointment")
        logger.info(f"✅ Created Acuity appointment {appointment.id}")
        return CreatedAppointment(external_id=appointment.id, raw=data)

    async def list_appointments(
        self, min_date: str, max_date: str, email: Optional[str] = None
    ) -> list[AcuityAppointment]:
        params = {"minDate": min_date, "maxDate": max_date, "max": ACUITY_APPOINTMENTS_MAX}
        if email:
            params["email"] = email
        data = await self.request("GET", "/appointments", params=params)
        return self._parse(_appointments_adapter, data, "appointments")

    async def get_appointment(self, appointment_id: str) -> AcuityAppointment:
        data = await self.request("GET", f"/appointments/{appointment_id}")
        return self._parse(_appointment_adapter, data, "appointment")


def get_acuity_client() -> AcuityClient:
    """FastAPI dependency / factory; refuses to build a client without credentials"""
    if not ACUITY_USER_ID or not ACUITY_API_KEY:
        logger.error("❌ ACUITY_USER_ID / ACUITY_API_KEY not configured")
        raise ConfigurationError(
            "Acuity API not configured: ACUITY_USER_ID and ACUITY_API_KEY must be set",
            code="CONFIG_MISSING",
        )
    return AcuityClient(ACUITY_USER_ID, ACUITY_API_KEY)
