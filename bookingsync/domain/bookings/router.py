"""Booking router - FastAPI endpoints for session bookings"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import SessionBooking, User
from ...rate_limiter import create_rate_limiter
from ...services.acuity_client import AcuityClient, get_acuity_client
from ...shared.time_utils import ensure_utc
from ..availability.service import AvailabilityService
from .schemas import BookingCreate, BookingResponse
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

# Booking creation hits Acuity twice per request - keep it tight
rate_limit_booking = create_rate_limiter(limit=5, window_seconds=300, key_prefix="booking_create")


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService (no provider access)"""
    return BookingService(db)


def get_booking_writer(
    db: Session = Depends(get_db), client: AcuityClient = Depends(get_acuity_client)
) -> BookingService:
    """BookingService wired to Acuity; get_acuity_client raises ConfigurationError without credentials"""
    return BookingService(db, client, AvailabilityService(client))


def to_response(b: SessionBooking) -> BookingResponse:
    return BookingResponse(
        id=b.id,
        menteeId=b.mentee_id,
        humanMentorId=b.human_mentor_id,
        sessionType=b.session_type,
        scheduledDate=ensure_utc(b.scheduled_date),
        duration=b.duration,
        timezone=b.timezone,
        meetingType=b.meeting_type,
        sessionGoals=b.session_goals,
        status=b.status,
        externalEventId=b.external_event_id,
        externalProvider=b.external_provider,
        cancelledAt=ensure_utc(b.cancelled_at) if b.cancelled_at else None,
        createdAt=ensure_utc(b.created_at) if b.created_at else None,
    )


@router.post("", status_code=201)
async def create_booking(
    data: BookingCreate,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_writer),
    _: None = Depends(rate_limit_booking),
):
    """Validate the slot with Acuity, create the appointment, then record the booking"""
    booking = await service.create_booking(current_user, data)
    return {"success": True, "data": to_response(booking)}


@router.get("")
async def list_bookings(
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """All bookings for the current user, newest first"""
    return {"success": True, "data": [to_response(b) for b in service.list_bookings(current_user)]}


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return {"success": True, "data": to_response(service.get_booking(current_user, booking_id))}


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking. The record is kept with status=cancelled."""
    booking = service.cancel_booking(current_user, booking_id)
    return {"success": True, "data": to_response(booking)}
