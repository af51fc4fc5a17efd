"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..errors import ValidationError

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_month(month: Optional[str]) -> str:
    """Validate YYYY-MM format"""
    if not month or not MONTH_PATTERN.match(month):
        raise ValidationError("month must be YYYY-MM", code="INVALID_MONTH", details={"month": month})
    return month


def validate_date(value: Optional[str], field: str = "date") -> str:
    """Validate YYYY-MM-DD format and that it names a real calendar day"""
    if not value or not DATE_PATTERN.match(value):
        raise ValidationError(f"{field} must be YYYY-MM-DD", code="INVALID_DATE", details={field: value})
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"{field} is not a valid date", code="INVALID_DATE", details={field: value}) from e
    return value


def validate_timezone(tz: Optional[str]) -> str:
    """Validate an IANA timezone name (e.g. America/New_York)"""
    if not tz:
        raise ValidationError("timezone is required", code="INVALID_TIMEZONE")
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone: {tz}", code="INVALID_TIMEZONE") from e
    return tz


def validate_appointment_type_id(value: Optional[str]) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError("appointmentTypeId required", code="MISSING_APPOINTMENT_TYPE")
    return value


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Lowercase and strip an email address.

    Returns None for blank or malformed input instead of raising, since
    provider payloads routinely carry junk here.
    """
    if not email:
        return None
    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        return None
    return email
