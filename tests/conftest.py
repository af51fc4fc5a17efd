"""
Test Configuration and Fixtures
"""

import os

# Must be set before bookingsync.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ACUITY_WEBHOOK_TOKEN"] = "test-webhook-token"
os.environ["ACUITY_USER_ID"] = "12345"
os.environ["ACUITY_API_KEY"] = "test-api-key"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from bookingsync import rate_limiter
from bookingsync.database import Base, SessionLocal, engine, get_db
from bookingsync.domain.availability import service as availability_service
from bookingsync.main import app
from bookingsync.models import AppointmentTypeMapping, HumanMentor, SessionBooking, User
from bookingsync.services.acuity_client import (
    AcuityClient,
    CreatedAppointment,
    SlotValidation,
    get_acuity_client,
)
from bookingsync.services.acuity_schemas import AcuityAppointment

MENTEE_EMAIL = "mentee@example.com"
APPOINTMENT_TYPE_ID = "555"


# ============================================================================
# ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_process_state(monkeypatch):
    """Fresh availability caches and rate-limit counters, never touch Redis."""
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: None)
    rate_limiter.memory_cache.clear()
    availability_service.month_cache.clear()
    availability_service.day_cache.clear()
    yield
    rate_limiter.memory_cache.clear()
    availability_service.month_cache.clear()
    availability_service.day_cache.clear()


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def db_session():
    """In-memory SQLite session with a fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mentee(db_session) -> User:
    user = User(email=MENTEE_EMAIL, first_name="Ada", last_name="Lovelace")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def mentor(db_session) -> HumanMentor:
    """Mentor mapped to APPOINTMENT_TYPE_ID."""
    mentor = HumanMentor(display_name="Grace Hopper", availability_timezone="America/New_York")
    db_session.add(mentor)
    db_session.commit()
    db_session.add(
        AppointmentTypeMapping(
            appointment_type_id=APPOINTMENT_TYPE_ID,
            human_mentor_id=mentor.id,
            default_duration_minutes=45,
        )
    )
    db_session.commit()
    db_session.refresh(mentor)
    return mentor


@pytest.fixture
def unmapped_mentor(db_session) -> HumanMentor:
    mentor = HumanMentor(display_name="No Calendar")
    db_session.add(mentor)
    db_session.commit()
    db_session.refresh(mentor)
    return mentor


@pytest.fixture
def count_bookings(db_session):
    """Callable returning the number of booking rows."""
    return lambda: db_session.query(SessionBooking).count()


# ============================================================================
# MOCK FIXTURES
# ============================================================================


def make_appointment(**overrides) -> AcuityAppointment:
    data = {
        "id": 12345,
        "appointmentTypeID": int(APPOINTMENT_TYPE_ID),
        "datetime": "2030-03-10T15:00:00-0400",
        "duration": 30,
        "email": MENTEE_EMAIL,
        "firstName": "Ada",
        "lastName": "Lovelace",
        "notes": "Talk through my portfolio",
        "timezone": "America/New_York",
    }
    data.update(overrides)
    return AcuityAppointment.model_validate(data)


@pytest.fixture
def appointment_factory():
    """Build AcuityAppointment objects the way Acuity returns them."""
    return make_appointment


@pytest.fixture
def mock_acuity():
    """Mock Acuity client; every provider call is an AsyncMock."""
    client = MagicMock(spec=AcuityClient)
    client.list_dates = AsyncMock(return_value=[])
    client.list_times = AsyncMock(return_value=[])
    client.validate_slot = AsyncMock(return_value=SlotValidation(valid=True))
    client.create_appointment = AsyncMock(
        return_value=CreatedAppointment(external_id="98765", raw={"id": 98765})
    )
    client.list_appointments = AsyncMock(return_value=[])
    client.get_appointment = AsyncMock(return_value=make_appointment())
    return client


@pytest.fixture
def future_slot() -> datetime:
    return (datetime.now(timezone.utc) + timedelta(days=7)).replace(microsecond=0)


# ============================================================================
# HTTP FIXTURES
# ============================================================================


@pytest.fixture
def api(db_session, mock_acuity):
    """TestClient wired to the test session and the mock Acuity client."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_acuity_client] = lambda: mock_acuity
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
