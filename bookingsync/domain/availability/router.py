"""Availability router - public read-only availability endpoints"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...config import DEFAULT_TIMEZONE
from ...services.acuity_client import AcuityClient, get_acuity_client
from .service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["Availability"])


def get_availability_service(
    client: AcuityClient = Depends(get_acuity_client),
) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(client)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/month")
async def get_month_availability(
    appointment_type_id: Optional[str] = Query(None, alias="appointmentTypeId"),
    tz: str = Query(DEFAULT_TIMEZONE, alias="timezone"),
    month: Optional[str] = Query(None),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Available dates for a month (YYYY-MM)"""
    result = await service.get_month(appointment_type_id, tz, month)
    return {
        "success": True,
        "data": result.data,
        "cached": result.cached,
        "timestamp": _timestamp(),
    }


@router.get("/day")
async def get_day_availability(
    appointment_type_id: Optional[str] = Query(None, alias="appointmentTypeId"),
    tz: str = Query(DEFAULT_TIMEZONE, alias="timezone"),
    date: Optional[str] = Query(None),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Available time slots (ISO instants) for a single date (YYYY-MM-DD)"""
    result = await service.get_day(appointment_type_id, tz, date)
    return {
        "success": True,
        "data": result.data,
        "cached": result.cached,
        "timestamp": _timestamp(),
    }


@router.get("/range")
async def get_range_availability(
    appointment_type_id: Optional[str] = Query(None, alias="appointmentTypeId"),
    tz: str = Query(DEFAULT_TIMEZONE, alias="timezone"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Dates plus per-date slots for an inclusive range; failed dates come back empty"""
    data = await service.get_range(appointment_type_id, tz, start_date, end_date)
    return {"success": True, "data": data, "timestamp": _timestamp()}
