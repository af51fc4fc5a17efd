"""Tests for the Acuity API client against a mocked transport"""

import base64
import json
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx
import pytest

from bookingsync.errors import (
    ConfigurationError,
    ProviderTimeoutError,
    RateLimitedError,
    UpstreamError,
)
from bookingsync.services import acuity_client
from bookingsync.services.acuity_client import AcuityClient, AppointmentContact, get_acuity_client
from bookingsync.services.retry_policy import RetryPolicy


async def _no_sleep(_delay):
    return None


def make_client(handler, max_retries=2) -> AcuityClient:
    return AcuityClient(
        "user-1",
        "secret",
        base_url="https://acuity.test/api/v1",
        retry_policy=RetryPolicy(max_retries=max_retries, sleep=_no_sleep),
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_list_dates_sends_basic_auth_and_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"date": "2025-08-20"}, "2025-08-21"])

    dates = await make_client(handler).list_dates("555", "2025-08", "America/New_York")

    assert dates == ["2025-08-20", "2025-08-21"]
    assert seen["auth"] == "Basic " + base64.b64encode(b"user-1:secret").decode()
    assert seen["path"] == "/api/v1/availability/dates"
    assert seen["params"] == {
        "appointmentTypeID": "555",
        "month": "2025-08",
        "timezone": "America/New_York",
    }


@pytest.mark.asyncio
async def test_list_times_accepts_time_and_datetime_keys():
    def handler(request):
        return httpx.Response(
            200,
            json=[{"time": "2025-08-20T09:00:00-0400", "slotsAvailable": 1}, {"datetime": "2025-08-20T10:00:00-0400"}],
        )

    times = await make_client(handler).list_times("555", "2025-08-20", "America/New_York")
    assert times == ["2025-08-20T09:00:00-0400", "2025-08-20T10:00:00-0400"]


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["20250820", "2025-02-30", "next tuesday"])
async def test_malformed_available_date_is_upstream_error(bad):
    def handler(request):
        return httpx.Response(200, json=[{"date": "2025-08-20"}, {"date": bad}])

    with pytest.raises(UpstreamError):
        await make_client(handler).list_dates("555", "2025-08", "UTC")


@pytest.mark.asyncio
async def test_rate_limit_is_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429, json={"message": "Too many requests"})
        return httpx.Response(200, json=[])

    assert await make_client(handler).list_dates("555", "2025-08", "UTC") == []
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_persistent_rate_limit_raises_after_bound():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, json={"message": "Too many requests"})

    with pytest.raises(RateLimitedError):
        await make_client(handler, max_retries=2).list_dates("555", "2025-08", "UTC")
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_server_error_maps_to_upstream_error_without_retry():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"error": "internal"})

    with pytest.raises(UpstreamError) as exc_info:
        await make_client(handler).list_dates("555", "2025-08", "UTC")

    assert exc_info.value.upstream_status == 500
    assert exc_info.value.body == {"error": "internal"}
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_non_json_success_body_is_upstream_error():
    def handler(request):
        return httpx.Response(200, text="<html>login</html>")

    with pytest.raises(UpstreamError) as exc_info:
        await make_client(handler).list_dates("555", "2025-08", "UTC")
    assert exc_info.value.body == "<html>login</html>"


@pytest.mark.asyncio
async def test_timeout_maps_to_provider_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ProviderTimeoutError):
        await make_client(handler).list_times("555", "2025-08-20", "UTC")


@pytest.mark.asyncio
async def test_unexpected_shape_is_upstream_error():
    def handler(request):
        return httpx.Response(200, json={"dates": "nope"})

    with pytest.raises(UpstreamError):
        await make_client(handler).list_dates("555", "2025-08", "UTC")


@pytest.mark.asyncio
async def test_validate_slot_reports_reason():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{"valid": False}])

    instant = datetime(2025, 8, 20, 15, 0, tzinfo=ZoneInfo("America/New_York"))
    result = await make_client(handler).validate_slot("555", instant, "America/New_York")

    assert result.valid is False
    assert result.reason == "Time slot no longer available"
    assert seen["body"] == [
        {
            "datetime": "2025-08-20T15:00:00-04:00",
            "appointmentTypeID": 555,
            "timezone": "America/New_York",
        }
    ]


@pytest.mark.asyncio
async def test_create_appointment_returns_external_id():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": 98765, "appointmentTypeID": 555})

    created = await make_client(handler).create_appointment(
        "555",
        "2025-08-20T15:00:00-04:00",
        "America/New_York",
        AppointmentContact(email="mentee@example.com", first_name="Ada", last_name="Lovelace"),
        notes="Portfolio review please",
    )

    assert created.external_id == "98765"
    assert seen["body"]["email"] == "mentee@example.com"
    assert seen["body"]["notes"] == "Portfolio review please"


@pytest.mark.asyncio
async def test_list_appointments_normalizes_aliases():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json=[
                {
                    "appointmentID": 42,
                    "appointmentTypeId": "555",
                    "startTime": "2025-08-20T15:00:00-0400",
                    "length": "30",
                    "client": {"email": "mentee@example.com"},
                    "note": "",
                }
            ],
        )

    [appointment] = await make_client(handler).list_appointments(
        "2025-08-01", "2025-08-31", email="mentee@example.com"
    )

    assert appointment.id == "42"
    assert appointment.appointment_type_id == "555"
    assert appointment.scheduled_at == "2025-08-20T15:00:00-0400"
    assert appointment.duration == 30
    assert appointment.email == "mentee@example.com"
    assert appointment.notes is None
    assert seen["params"]["email"] == "mentee@example.com"
    assert seen["params"]["minDate"] == "2025-08-01"


@pytest.mark.parametrize("user_id,api_key", [(None, "key"), ("user", None), ("", "")])
def test_missing_credentials_is_configuration_error(monkeypatch, user_id, api_key):
    monkeypatch.setattr(acuity_client, "ACUITY_USER_ID", user_id)
    monkeypatch.setattr(acuity_client, "ACUITY_API_KEY", api_key)

    with pytest.raises(ConfigurationError) as exc_info:
        get_acuity_client()
    assert exc_info.value.status_code == 500
