"""Booking repository - Database operations for bookings and their lookups"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import AppointmentTypeMapping, SessionBooking, User


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Case-insensitive lookup of an active user"""
        return (
            db.query(User)
            .filter(func.lower(User.email) == email.strip().lower(), User.is_active.is_(True))
            .first()
        )

    @staticmethod
    def get_mapping_by_mentor(db: Session, human_mentor_id: int) -> Optional[AppointmentTypeMapping]:
        return (
            db.query(AppointmentTypeMapping)
            .filter(AppointmentTypeMapping.human_mentor_id == human_mentor_id)
            .first()
        )

    @staticmethod
    def get_mapping_by_type(db: Session, appointment_type_id: str) -> Optional[AppointmentTypeMapping]:
        return (
            db.query(AppointmentTypeMapping)
            .filter(AppointmentTypeMapping.appointment_type_id == str(appointment_type_id))
            .first()
        )

    @staticmethod
    def find_by_external_id(db: Session, external_id: str) -> Optional[SessionBooking]:
        """
        Find a booking for an Acuity appointment id, whatever its status.

        Checks the canonical external_event_id first, then the legacy
        calendly_event_id column older sync jobs wrote the id into.
        """
        external_id = str(external_id)
        return (
            db.query(SessionBooking)
            .filter(
                or_(
                    SessionBooking.external_event_id == external_id,
                    SessionBooking.calendly_event_id == external_id,
                )
            )
            .order_by(SessionBooking.id)
            .first()
        )

    @staticmethod
    def get_booking_by_id(
        db: Session, booking_id: int, mentee_id: Optional[int] = None
    ) -> Optional[SessionBooking]:
        query = db.query(SessionBooking).filter(SessionBooking.id == booking_id)
        if mentee_id is not None:
            query = query.filter(SessionBooking.mentee_id == mentee_id)
        return query.first()

    @staticmethod
    def get_bookings_for_mentee(db: Session, mentee_id: int) -> list[SessionBooking]:
        return (
            db.query(SessionBooking)
            .filter(SessionBooking.mentee_id == mentee_id)
            .order_by(SessionBooking.scheduled_date.desc())
            .all()
        )

    @staticmethod
    def create_booking(db: Session, **booking_data) -> SessionBooking:
        booking = SessionBooking(**booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def update_booking(db: Session, booking: SessionBooking, **updates) -> SessionBooking:
        """Update a booking with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(booking, key):
                setattr(booking, key, value)

        db.commit()
        db.refresh(booking)
        return booking
