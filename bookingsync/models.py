from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

BOOKING_STATUSES = ("pending", "confirmed", "cancelled")


class User(Base):
    """Mentee account. Identity is verified upstream; we only need the row."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    organization_id = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    bookings = relationship("SessionBooking", back_populates="mentee")


class HumanMentor(Base):
    __tablename__ = "human_mentors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    organization_id = Column(Integer, nullable=True)
    display_name = Column(String(255), nullable=True)
    availability_timezone = Column(String(50), default="UTC")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    appointment_type = relationship(
        "AppointmentTypeMapping", back_populates="mentor", uselist=False
    )


class AppointmentTypeMapping(Base):
    """Acuity appointment type <-> mentor. Mentors without a row cannot be booked."""

    __tablename__ = "appointment_type_mappings"

    id = Column(Integer, primary_key=True, index=True)
    # Acuity ids are numeric but arrive as strings in form-encoded webhooks
    appointment_type_id = Column(String(50), unique=True, index=True, nullable=False)
    human_mentor_id = Column(
        Integer, ForeignKey("human_mentors.id"), unique=True, nullable=False
    )
    default_duration_minutes = Column(Integer, default=60, nullable=False)

    mentor = relationship("HumanMentor", back_populates="appointment_type")


class SessionBooking(Base):
    """Internal booking record mirrored from (or pushed to) Acuity"""

    __tablename__ = "session_bookings"
    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in BOOKING_STATUSES) + ")",
            name="ck_session_bookings_status",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    mentee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    human_mentor_id = Column(Integer, ForeignKey("human_mentors.id"), nullable=True)
    session_type = Column(String(20), default="individual", nullable=False)
    scheduled_date = Column(DateTime(timezone=True), nullable=False)  # stored as UTC
    duration = Column(Integer, default=60, nullable=False)  # minutes
    timezone = Column(String(50), default="America/New_York", nullable=False)
    meeting_type = Column(String(20), default="video", nullable=False)
    session_goals = Column(Text, nullable=True)
    status = Column(String(20), default="confirmed", nullable=False)

    # Canonical dedup key. Unique across all statuses so a cancelled record
    # also blocks re-creation by a later sync pass.
    external_event_id = Column(String(100), unique=True, index=True, nullable=True)
    external_provider = Column(String(20), nullable=True)
    # Legacy identifier written by older sync jobs
    calendly_event_id = Column(String(255), index=True, nullable=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    mentee = relationship("User", back_populates="bookings")
    mentor = relationship("HumanMentor")
