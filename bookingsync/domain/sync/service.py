"""Sync service - reconcile Acuity appointments into the booking store"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import (
    DEFAULT_TIMEZONE,
    SYNC_DEFAULT_NOTES,
    SYNC_LOOKAHEAD_DAYS,
    SYNC_LOOKBACK_DAYS,
    USER_SYNC_LOOKAHEAD_DAYS,
    USER_SYNC_LOOKBACK_DAYS,
)
from ...errors import BookingSyncError, ValidationError
from ...models import User
from ...services.acuity_client import AcuityClient
from ...services.acuity_schemas import AcuityAppointment
from ...shared.time_utils import date_window, ensure_utc, parse_instant, utcnow
from ...shared.validators import normalize_email, validate_timezone
from ..availability.service import AvailabilityService
from ..bookings.repository import BookingRepository
from .schemas import ReconcileOutcome, ReconcileResult, SyncScope, SyncSummary, WebhookEvent

logger = logging.getLogger(__name__)


class SyncService:
    """
    One reconciliation routine shared by the webhook, bulk and per-user paths.

    Every path funnels appointments through ``reconcile``, which guarantees at
    most one SessionBooking per Acuity appointment id.
    """

    def __init__(
        self,
        db: Session,
        client: AcuityClient,
        now: Optional[Callable[[], datetime]] = None,
        availability: Optional[AvailabilityService] = None,
    ):
        self.db = db
        self.client = client
        self.now = now or utcnow
        self.availability = availability
        self.repo = BookingRepository()

    def reconcile(self, appointment: AcuityAppointment) -> ReconcileResult:
        email = normalize_email(appointment.email)
        mentee = self.repo.get_user_by_email(self.db, email) if email else None
        if not mentee:
            logger.warning(f"⚠️ Appointment {appointment.id}: no user for email {appointment.email!r}")
            return ReconcileResult(ReconcileOutcome.SKIPPED_UNKNOWN_MENTEE)

        mapping = (
            self.repo.get_mapping_by_type(self.db, appointment.appointment_type_id)
            if appointment.appointment_type_id
            else None
        )
        if not mapping:
            logger.warning(
                f"⚠️ Appointment {appointment.id}: appointment type {appointment.appointment_type_id} is not mapped to a mentor"
            )
            return ReconcileResult(ReconcileOutcome.SKIPPED_UNMAPPED_TYPE)

        existing = self.repo.find_by_external_id(self.db, appointment.id)
        if existing:
            logger.debug(f"Appointment {appointment.id} already synced as booking {existing.id} ({existing.status})")
            return ReconcileResult(ReconcileOutcome.ALREADY_SYNCED, existing)

        if appointment.canceled:
            logger.info(f"⏭️ Appointment {appointment.id} is cancelled in Acuity, not adopting it")
            return ReconcileResult(ReconcileOutcome.SKIPPED_CANCELLED)

        timezone = self._timezone_for(appointment)
        try:
            scheduled = parse_instant(appointment.scheduled_at, timezone)
        except ValueError as e:
            raise ValidationError(
                f"Invalid appointment datetime: {appointment.scheduled_at!r}",
                code="INVALID_DATETIME",
            ) from e

        try:
            booking = self.repo.create_booking(
                self.db,
                mentee_id=mentee.id,
                human_mentor_id=mapping.human_mentor_id,
                session_type="individual",
                scheduled_date=ensure_utc(scheduled),
                duration=appointment.duration or 60,
                timezone=timezone,
                meeting_type="video",
                session_goals=appointment.notes or SYNC_DEFAULT_NOTES,
                status="confirmed",
                external_event_id=appointment.id,
                external_provider="acuity",
            )
        except IntegrityError:
            # Another invocation inserted the same appointment first
            self.db.rollback()
            existing = self.repo.find_by_external_id(self.db, appointment.id)
            logger.info(f"🔁 Appointment {appointment.id} was synced concurrently")
            return ReconcileResult(ReconcileOutcome.ALREADY_SYNCED, existing)

        logger.info(f"✅ Synced Acuity appointment {appointment.id} as booking {booking.id}")
        return ReconcileResult(ReconcileOutcome.SYNCED, booking)

    @staticmethod
    def _timezone_for(appointment: AcuityAppointment) -> str:
        if appointment.timezone:
            try:
                return validate_timezone(appointment.timezone)
            except ValidationError:
                logger.warning(
                    f"⚠️ Appointment {appointment.id}: unknown timezone {appointment.timezone!r}, using {DEFAULT_TIMEZONE}"
                )
        return DEFAULT_TIMEZONE

    async def handle_webhook(self, event: WebhookEvent) -> Optional[ReconcileResult]:
        """
        Reconcile the appointment carried by one webhook delivery.

        Returns None for actions other than creation. Sparse payloads (Acuity's
        native form post carries little more than the id) are filled in from
        GET /appointments/{id} before reconciling.
        """
        if not event.is_creation:
            logger.info(f"⏭️ Ignoring Acuity webhook action {event.action!r}")
            return None

        appointment = event.appointment
        if not (appointment.scheduled_at and appointment.appointment_type_id and appointment.email):
            appointment = await self._hydrate(appointment)

        if not appointment.scheduled_at:
            raise ValidationError("Missing appointment datetime", code="INVALID_PAYLOAD")
        if not appointment.appointment_type_id:
            raise ValidationError("Missing appointmentTypeId", code="INVALID_PAYLOAD")

        result = self.reconcile(appointment)
        if result.outcome is ReconcileOutcome.SYNCED and self.availability is not None:
            self.availability.invalidate(appointment.appointment_type_id)
        return result

    async def _hydrate(self, appointment: AcuityAppointment) -> AcuityAppointment:
        """Fill missing fields from Acuity; values already in the payload win"""
        logger.info(f"🔍 Hydrating sparse webhook payload for appointment {appointment.id}")
        fetched = await self.client.get_appointment(appointment.id)
        provided = appointment.model_dump(exclude_none=True)
        return fetched.model_copy(update=provided)

    async def sync_scope(self, scope: SyncScope) -> SyncSummary:
        """Pull every appointment in the scope and reconcile each one"""
        appointments = await self.client.list_appointments(
            scope.min_date, scope.max_date, email=scope.email
        )
        summary = SyncSummary(total=len(appointments))

        for appointment in appointments:
            try:
                result = self.reconcile(appointment)
            except Exception as e:
                # One bad record must not abort the pass
                self.db.rollback()
                message = e.message if isinstance(e, BookingSyncError) else str(e)
                logger.error(f"❌ Failed to sync appointment {appointment.id}: {message}")
                summary.errors.append(f"Appointment {appointment.id}: {message}")
                continue

            if result.outcome.is_skip:
                summary.skipped += 1
            else:
                summary.synced += 1

        logger.info(
            f"📊 Acuity sync {scope.min_date}..{scope.max_date}"
            f"{' for ' + scope.email if scope.email else ''}: "
            f"{summary.total} total, {summary.synced} synced, {summary.skipped} skipped, "
            f"{summary.error_count} errors"
        )
        return summary

    def bulk_scope(self) -> SyncScope:
        min_date, max_date = date_window(self.now().date(), SYNC_LOOKBACK_DAYS, SYNC_LOOKAHEAD_DAYS)
        return SyncScope(min_date=min_date, max_date=max_date)

    def user_scope(self, user: User) -> SyncScope:
        min_date, max_date = date_window(
            self.now().date(), USER_SYNC_LOOKBACK_DAYS, USER_SYNC_LOOKAHEAD_DAYS
        )
        return SyncScope(min_date=min_date, max_date=max_date, email=user.email)

    async def sync_bulk(self) -> SyncSummary:
        return await self.sync_scope(self.bulk_scope())

    async def sync_user(self, user: User) -> SyncSummary:
        return await self.sync_scope(self.user_scope(user))
