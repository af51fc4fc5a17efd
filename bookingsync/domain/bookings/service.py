"""Booking service - Business logic for creating and cancelling sessions"""

import logging
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import DEFAULT_TIMEZONE
from ...errors import ConflictError, NotFoundError, PersistenceError
from ...models import SessionBooking, User
from ...services.acuity_client import AcuityClient, AppointmentContact
from ...shared.time_utils import ensure_utc, utcnow
from ..availability.service import AvailabilityService
from .repository import BookingRepository
from .schemas import BookingCreate

logger = logging.getLogger(__name__)


class BookingService:
    """Service layer for booking business logic"""

    def __init__(
        self,
        db: Session,
        client: Optional[AcuityClient] = None,
        availability: Optional[AvailabilityService] = None,
    ):
        self.db = db
        self.client = client
        self.availability = availability
        self.repo = BookingRepository()

    async def create_booking(self, caller: User, data: BookingCreate) -> SessionBooking:
        """
        Book a session: resolve mentor -> validate slot -> create in Acuity -> persist.

        Any failure aborts with a typed error. If the final write fails the
        Acuity appointment is left in place; the next sync pass adopts it.
        """
        mapping = self.repo.get_mapping_by_mentor(self.db, data.humanMentorId)
        if not mapping:
            logger.warning(f"⚠️ No Acuity appointment type mapped for mentor {data.humanMentorId}")
            raise NotFoundError(
                "Mentor is not available for booking",
                code="MENTOR_NOT_MAPPED",
                details={"humanMentorId": data.humanMentorId},
            )

        tz = data.timezone or DEFAULT_TIMEZONE
        scheduled_local = data.scheduledDate.astimezone(ZoneInfo(tz))
        duration = data.duration or mapping.default_duration_minutes
        type_id = mapping.appointment_type_id

        logger.info(
            f"📥 Booking request: mentee={caller.id} mentor={data.humanMentorId} type={type_id} at {scheduled_local.isoformat()}"
        )

        check = await self.client.validate_slot(type_id, scheduled_local, tz)
        if not check.valid:
            logger.info(f"🚫 Slot rejected by Acuity for type {type_id}: {check.reason}")
            raise ConflictError(
                "Time slot validation failed",
                reason=check.reason,
                code="SLOT_UNAVAILABLE",
                details={"suggestion": "Please select a different time slot"},
            )

        created = await self.client.create_appointment(
            type_id,
            scheduled_local,
            tz,
            AppointmentContact(
                email=caller.email, first_name=caller.first_name, last_name=caller.last_name
            ),
            notes=data.sessionGoals,
        )

        try:
            booking = self.repo.create_booking(
                self.db,
                mentee_id=caller.id,
                human_mentor_id=mapping.human_mentor_id,
                session_type="individual",
                scheduled_date=ensure_utc(data.scheduledDate),
                duration=duration,
                timezone=tz,
                meeting_type=data.meetingType,
                session_goals=data.sessionGoals,
                status="confirmed",
                external_event_id=created.external_id,
                external_provider="acuity",
            )
        except IntegrityError as e:
            # Acuity's "scheduled" webhook for this appointment was reconciled first
            self.db.rollback()
            booking = self.repo.find_by_external_id(self.db, created.external_id)
            if not booking or booking.mentee_id != caller.id:
                logger.error(
                    f"❌ Acuity appointment {created.external_id} created but its id is held by another booking: {e}"
                )
                raise PersistenceError(
                    "Appointment was created but could not be saved",
                    code="PERSISTENCE_FAILED",
                    details={"externalEventId": created.external_id},
                ) from e
            logger.info(
                f"🔁 Acuity appointment {created.external_id} was already synced as booking {booking.id}"
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"❌ Acuity appointment {created.external_id} created but booking write failed; "
                f"left for the next sync pass: {e}"
            )
            raise PersistenceError(
                "Appointment was created but could not be saved",
                code="PERSISTENCE_FAILED",
                details={"externalEventId": created.external_id},
            ) from e

        if self.availability is not None:
            self.availability.invalidate(type_id)

        logger.info(f"✅ Booking {booking.id} confirmed (Acuity appointment {created.external_id})")
        return booking

    def list_bookings(self, caller: User) -> list[SessionBooking]:
        return self.repo.get_bookings_for_mentee(self.db, caller.id)

    def get_booking(self, caller: User, booking_id: int) -> SessionBooking:
        booking = self.repo.get_booking_by_id(self.db, booking_id, caller.id)
        if not booking:
            raise NotFoundError("Session not found", code="BOOKING_NOT_FOUND")
        return booking

    def cancel_booking(self, caller: User, booking_id: int) -> SessionBooking:
        """One-way status transition to cancelled; the row is kept"""
        booking = self.repo.get_booking_by_id(self.db, booking_id, caller.id)
        if not booking or booking.status == "cancelled":
            raise NotFoundError("Session not found or already cancelled", code="BOOKING_NOT_FOUND")

        booking = self.repo.update_booking(
            self.db, booking, status="cancelled", cancelled_at=utcnow()
        )
        logger.info(f"✅ Booking {booking.id} cancelled by mentee {caller.id}")
        return booking
