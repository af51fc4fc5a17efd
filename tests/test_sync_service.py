"""Tests for Acuity -> booking reconciliation (webhook, bulk and per-user paths)"""

import json
from datetime import datetime, timezone
from urllib.parse import quote_plus

import pytest

from bookingsync.domain.sync.schemas import (
    ReconcileOutcome,
    WebhookEvent,
    parse_webhook_body,
    to_webhook_event,
)
from bookingsync.domain.sync.service import SyncService
from bookingsync.errors import UpstreamError, ValidationError
from bookingsync.models import SessionBooking
from bookingsync.shared.time_utils import ensure_utc

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db_session, mock_acuity):
    return SyncService(db_session, mock_acuity, now=lambda: FIXED_NOW)


# ============================================================================
# RECONCILE
# ============================================================================


def test_reconcile_creates_confirmed_booking(service, mentee, mentor, appointment_factory):
    result = service.reconcile(appointment_factory())

    assert result.outcome is ReconcileOutcome.SYNCED
    booking = result.booking
    assert booking.external_event_id == "12345"
    assert booking.status == "confirmed"
    assert booking.mentee_id == mentee.id
    assert booking.human_mentor_id == mentor.id
    assert booking.duration == 30
    assert booking.timezone == "America/New_York"
    assert booking.session_goals == "Talk through my portfolio"
    assert ensure_utc(booking.scheduled_date) == datetime(2030, 3, 10, 19, 0, tzinfo=timezone.utc)


def test_reconcile_twice_keeps_one_record(service, mentee, mentor, appointment_factory, count_bookings):
    first = service.reconcile(appointment_factory())
    second = service.reconcile(appointment_factory())

    assert first.outcome is ReconcileOutcome.SYNCED
    assert second.outcome is ReconcileOutcome.ALREADY_SYNCED
    assert second.booking.id == first.booking.id
    assert count_bookings() == 1


def test_cancelled_booking_is_never_resurrected(service, db_session, mentee, mentor, appointment_factory, count_bookings):
    booking = service.reconcile(appointment_factory()).booking
    booking.status = "cancelled"
    db_session.commit()

    result = service.reconcile(appointment_factory())

    assert result.outcome is ReconcileOutcome.ALREADY_SYNCED
    assert count_bookings() == 1
    assert db_session.get(SessionBooking, booking.id).status == "cancelled"


def test_legacy_identifier_counts_as_synced(service, db_session, mentee, mentor, appointment_factory, count_bookings):
    db_session.add(
        SessionBooking(
            mentee_id=mentee.id,
            human_mentor_id=mentor.id,
            scheduled_date=datetime(2030, 3, 10, 19, 0),
            calendly_event_id="12345",
        )
    )
    db_session.commit()

    assert service.reconcile(appointment_factory()).outcome is ReconcileOutcome.ALREADY_SYNCED
    assert count_bookings() == 1


def test_unknown_mentee_is_skipped(service, mentor, appointment_factory, count_bookings):
    result = service.reconcile(appointment_factory(email="nobody@example.com"))
    assert result.outcome is ReconcileOutcome.SKIPPED_UNKNOWN_MENTEE
    assert count_bookings() == 0


def test_email_match_is_case_insensitive(service, mentee, mentor, appointment_factory):
    result = service.reconcile(appointment_factory(email="  Mentee@Example.COM "))
    assert result.outcome is ReconcileOutcome.SYNCED


def test_unmapped_type_is_skipped(service, mentee, mentor, appointment_factory, count_bookings):
    result = service.reconcile(appointment_factory(appointmentTypeID=999))
    assert result.outcome is ReconcileOutcome.SKIPPED_UNMAPPED_TYPE
    assert count_bookings() == 0


def test_missing_notes_get_placeholder(service, mentee, mentor, appointment_factory):
    booking = service.reconcile(appointment_factory(notes="")).booking
    assert booking.session_goals == "Synced from Acuity"


def test_cancelled_appointment_is_not_adopted(service, mentee, mentor, appointment_factory, count_bookings):
    result = service.reconcile(appointment_factory(id=777, canceled=True))

    assert result.outcome is ReconcileOutcome.SKIPPED_CANCELLED
    assert result.outcome.is_skip
    assert count_bookings() == 0


# ============================================================================
# BULK / USER SYNC
# ============================================================================


@pytest.mark.asyncio
async def test_bulk_sync_counts_and_isolates_errors(service, mock_acuity, mentee, mentor, appointment_factory):
    mock_acuity.list_appointments.return_value = [
        appointment_factory(id=1),
        appointment_factory(id=2, datetime="not-a-date"),
        appointment_factory(id=3, email="nobody@example.com"),
        appointment_factory(id=4, appointmentTypeID=999),
        appointment_factory(id=5),
        appointment_factory(id=6, canceled=True),
    ]

    summary = await service.sync_bulk()

    assert summary.to_dict() == {
        "totalAppointments": 6,
        "syncedAppointments": 2,
        "skippedAppointments": 3,
        "errorCount": 1,
        "errors": ["Appointment 2: Invalid appointment datetime: 'not-a-date'"],
    }
    mock_acuity.list_appointments.assert_awaited_once_with("2025-01-30", "2025-03-31", email=None)


@pytest.mark.asyncio
async def test_bulk_sync_is_idempotent(service, mock_acuity, mentee, mentor, appointment_factory, count_bookings):
    mock_acuity.list_appointments.return_value = [appointment_factory(id=1), appointment_factory(id=2)]

    first = await service.sync_bulk()
    second = await service.sync_bulk()

    assert first.synced == 2
    assert second.synced == 0
    assert second.skipped == 2
    assert count_bookings() == 2


@pytest.mark.asyncio
async def test_user_sync_scopes_to_email(service, mock_acuity, mentee, mentor):
    summary = await service.sync_user(mentee)

    assert summary.total == 0
    mock_acuity.list_appointments.assert_awaited_once_with(
        "2025-02-22", "2025-04-30", email="mentee@example.com"
    )


@pytest.mark.asyncio
async def test_listing_failure_propagates(service, mock_acuity):
    mock_acuity.list_appointments.side_effect = UpstreamError("boom", upstream_status=500)
    with pytest.raises(UpstreamError):
        await service.sync_bulk()


# ============================================================================
# WEBHOOK
# ============================================================================


@pytest.mark.asyncio
async def test_webhook_ignores_non_creation_actions(service, mock_acuity, appointment_factory):
    result = await service.handle_webhook(WebhookEvent("canceled", appointment_factory()))
    assert result is None
    mock_acuity.get_appointment.assert_not_awaited()


@pytest.mark.asyncio
async def test_webhook_redelivery_is_already_synced(service, mentee, mentor, appointment_factory, count_bookings):
    event = WebhookEvent("scheduled", appointment_factory())

    first = await service.handle_webhook(event)
    second = await service.handle_webhook(event)

    assert first.outcome is ReconcileOutcome.SYNCED
    assert second.outcome is ReconcileOutcome.ALREADY_SYNCED
    assert count_bookings() == 1


@pytest.mark.asyncio
async def test_sparse_webhook_is_hydrated(service, mock_acuity, mentee, mentor):
    event = to_webhook_event({"action": "scheduled", "id": "12345", "appointmentTypeID": "555"})

    result = await service.handle_webhook(event)

    mock_acuity.get_appointment.assert_awaited_once_with("12345")
    assert result.outcome is ReconcileOutcome.SYNCED
    assert result.booking.external_event_id == "12345"


@pytest.mark.asyncio
async def test_late_webhook_for_cancelled_appointment_is_skipped(
    service, mock_acuity, mentee, mentor, appointment_factory, count_bookings
):
    mock_acuity.get_appointment.return_value = appointment_factory(canceled=True)
    event = to_webhook_event({"action": "scheduled", "id": "12345", "appointmentTypeID": "555"})

    result = await service.handle_webhook(event)

    assert result.outcome is ReconcileOutcome.SKIPPED_CANCELLED
    assert count_bookings() == 0


@pytest.mark.asyncio
async def test_webhook_missing_datetime_after_hydration(service, mock_acuity, mentee, mentor, appointment_factory):
    mock_acuity.get_appointment.return_value = appointment_factory(datetime=None)
    event = to_webhook_event({"action": "scheduled", "id": "12345", "appointmentTypeID": "555"})

    with pytest.raises(ValidationError):
        await service.handle_webhook(event)


# ============================================================================
# PAYLOAD PARSING
# ============================================================================


def test_parse_native_form_post():
    payload = parse_webhook_body(
        b"action=scheduled&id=12345&calendarID=7&appointmentTypeID=555",
        "application/x-www-form-urlencoded",
    )
    event = to_webhook_event(payload)

    assert event.action == "scheduled"
    assert event.is_creation
    assert event.appointment.id == "12345"
    assert event.appointment.appointment_type_id == "555"


def test_parse_nested_form_keys():
    body = (
        "action=appointment.scheduled"
        "&appointment[id]=12345"
        "&appointment[appointmentTypeID]=555"
        "&appointment[datetime]=2030-03-10T15%3A00%3A00-0400"
        "&appointment[client][email]=mentee%40example.com"
    ).encode()

    event = to_webhook_event(parse_webhook_body(body, "application/x-www-form-urlencoded"))

    assert event.is_creation
    assert event.appointment.id == "12345"
    assert event.appointment.scheduled_at == "2030-03-10T15:00:00-0400"
    assert event.appointment.email == "mentee@example.com"


def test_parse_json_document_sent_as_form_key():
    document = {"action": "scheduled", "appointment": {"id": 12345, "appointmentTypeID": 555}}
    body = quote_plus(json.dumps(document)).encode()

    payload = parse_webhook_body(body, "application/x-www-form-urlencoded")

    assert payload == document


def test_parse_json_body():
    body = json.dumps({"action": "created", "appointment": {"id": 1}}).encode()
    event = to_webhook_event(parse_webhook_body(body, "application/json; charset=utf-8"))
    assert event.is_creation
    assert event.appointment.id == "1"


@pytest.mark.parametrize(
    "body,content_type",
    [
        (b"", "application/json"),
        (b"{not json", "application/json"),
        (b"[1, 2]", "application/json"),
    ],
)
def test_parse_rejects_malformed_bodies(body, content_type):
    with pytest.raises(ValidationError):
        parse_webhook_body(body, content_type)


def test_payload_without_id_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        to_webhook_event({"action": "scheduled", "appointmentTypeID": "555"})
    assert exc_info.value.details == {"fields": ["id"]}


def test_missing_action_uses_default():
    assert to_webhook_event({"id": "1"}, default_action="changed").action == "changed"
    assert to_webhook_event({"id": "1"}).action == "scheduled"
