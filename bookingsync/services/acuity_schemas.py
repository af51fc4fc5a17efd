"""Pydantic shapes for Acuity Scheduling API responses and webhook payloads"""

from datetime import date as calendar_date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..shared.validators import DATE_PATTERN

# Alternate spellings seen in webhook deliveries and older API versions
_APPOINTMENT_ALIASES = {
    "id": ("appointmentID", "appointmentId"),
    "appointmentTypeID": ("appointmentTypeId", "appointment_type_id"),
    "datetime": ("startTime", "scheduledDate", "time"),
    "duration": ("length",),
    "timezone": ("timeZone",),
    "notes": ("note", "description"),
}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class AvailableDate(BaseModel):
    date: str

    @model_validator(mode="before")
    @classmethod
    def accept_bare_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"date": data}
        return data

    @field_validator("date")
    @classmethod
    def calendar_day(cls, v: str) -> str:
        if not DATE_PATTERN.match(v):
            raise ValueError(f"expected YYYY-MM-DD, got {v!r}")
        calendar_date.fromisoformat(v)
        return v


class AvailableTime(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time: str
    slots_available: Optional[int] = Field(default=None, alias="slotsAvailable")

    @model_validator(mode="before")
    @classmethod
    def accept_datetime_key(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"time": data}
        if isinstance(data, dict) and "time" not in data and "datetime" in data:
            data = {**data, "time": data["datetime"]}
        return data


class SlotCheck(BaseModel):
    model_config = ConfigDict(extra="allow")

    valid: bool
    reason: Optional[str] = None


class AcuityAppointment(BaseModel):
    """One appointment as returned by GET /appointments or pushed by a webhook"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    appointment_type_id: Optional[str] = Field(default=None, alias="appointmentTypeID")
    scheduled_at: Optional[str] = Field(default=None, alias="datetime")
    duration: Optional[int] = None
    email: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    notes: Optional[str] = None
    timezone: Optional[str] = None
    canceled: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def apply_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for canonical, aliases in _APPOINTMENT_ALIASES.items():
            if data.get(canonical) in (None, ""):
                for alias in aliases:
                    if data.get(alias) not in (None, ""):
                        data[canonical] = data[alias]
                        break
        client = data.get("client")
        if not data.get("email") and isinstance(client, dict):
            data["email"] = client.get("email")
        return data

    @field_validator("id", "appointment_type_id", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        v = _blank_to_none(v)
        return str(v) if v is not None else v

    @field_validator("duration", mode="before")
    @classmethod
    def parse_duration(cls, v):
        return _blank_to_none(v)

    @field_validator("scheduled_at", "email", "notes", "timezone", mode="before")
    @classmethod
    def blank_strings(cls, v):
        return _blank_to_none(v)

    @field_validator("canceled", mode="before")
    @classmethod
    def parse_canceled(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes")
        return v
