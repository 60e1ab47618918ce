"""
Tests for the REST persistence gateway against a fake HTTP session.
"""

import asyncio
import json

import pendulum
import pytest
import requests

from slotguard.adapters.rest_gateway import RestPersistenceGateway
from slotguard.config import RetryConfig
from slotguard.domain.exceptions import AppointmentNotFoundError, PersistenceError
from slotguard.domain.models import DEFAULT_BUSINESS_HOURS, Appointment, AppointmentStatus

TZ = "America/Sao_Paulo"


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body
        self.content = b"" if body is None else json.dumps(body).encode("utf-8")

    def json(self):
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Returns queued responses and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)


APPOINTMENT_ROW = {
    "id": "appt-1",
    "barber_id": "prov-ana",
    "client_id": "client-01",
    "service_id": "svc-haircut",
    "start_time": "2025-06-10T13:00:00+00:00",
    "end_time": "2025-06-10T13:30:00+00:00",
    "status": "confirmed",
    "notes": None,
}


def make_gateway(*responses):
    session = FakeSession(*responses)
    gateway = RestPersistenceGateway(
        base_url="https://example.supabase.co/",
        api_key="secret",
        timezone=TZ,
        retry=RetryConfig(max_retries=3, initial_delay=0, max_delay=0, timeout_seconds=5),
        session=session,
    )
    return gateway, session


class TestReads:
    """Tests for read operations."""

    def test_list_appointments_filters(self):
        gateway, session = make_gateway(FakeResponse(body=[APPOINTMENT_ROW]))
        start = pendulum.parse("2025-06-10 10:00", tz=TZ)
        end = pendulum.parse("2025-06-10 10:30", tz=TZ)

        appointments = asyncio.run(
            gateway.list_appointments(
                provider_id="prov-ana", start=start, end=end, include_cancelled=False
            )
        )

        sent = session.requests[0]
        assert sent["method"] == "GET"
        assert sent["url"] == "https://example.supabase.co/rest/v1/appointments"
        assert sent["headers"]["apikey"] == "secret"
        assert sent["headers"]["Authorization"] == "Bearer secret"
        assert sent["timeout"] == 5
        assert sent["params"]["barber_id"] == "eq.prov-ana"
        assert sent["params"]["status"] == "neq.cancelled"
        assert sent["params"]["start_time"].startswith("lt.2025-06-10T13:30:00")
        assert sent["params"]["end_time"].startswith("gt.2025-06-10T13:00:00")
        assert "client_id" not in sent["params"]

        assert len(appointments) == 1
        appointment = appointments[0]
        assert appointment.status is AppointmentStatus.CONFIRMED
        assert appointment.start.hour == 10
        assert appointment.start.timezone_name == TZ

    def test_business_hours_absent(self):
        gateway, session = make_gateway(FakeResponse(body=[]))

        assert asyncio.run(gateway.get_business_hours()) is None
        assert session.requests[0]["params"]["key"] == "eq.business_hours"

    def test_business_hours_present(self):
        value = {
            "weekdays": ["monday", "friday"],
            "openingTime": "09:00",
            "closingTime": "17:00",
            "slotDuration": 60,
            "holidays": [{"date": "2025-06-19", "name": "Corpus Christi"}],
        }
        gateway, _ = make_gateway(FakeResponse(body=[{"value": value}]))

        hours = asyncio.run(gateway.get_business_hours())

        assert hours.weekdays == frozenset({"monday", "friday"})
        assert hours.slot_duration_minutes == 60
        assert len(hours.holidays) == 1

    def test_get_appointment_not_found(self):
        gateway, _ = make_gateway(FakeResponse(body=[]))

        with pytest.raises(AppointmentNotFoundError):
            asyncio.run(gateway.get_appointment("nope"))

    def test_malformed_row(self):
        gateway, _ = make_gateway(FakeResponse(body=[{"id": "x"}]))

        with pytest.raises(PersistenceError, match="missing column"):
            asyncio.run(gateway.list_appointments())


class TestErrors:
    """Tests for retry and error mapping."""

    def test_transient_status_is_retried(self):
        gateway, session = make_gateway(
            FakeResponse(status_code=503),
            FakeResponse(body=[APPOINTMENT_ROW]),
        )

        appointments = asyncio.run(gateway.list_appointments(provider_id="prov-ana"))

        assert len(session.requests) == 2
        assert appointments[0].id == "appt-1"

    def test_retries_exhausted(self):
        gateway, session = make_gateway(*(FakeResponse(status_code=502) for _ in range(3)))

        with pytest.raises(PersistenceError, match="Could not reach the server"):
            asyncio.run(gateway.list_blocked_times("prov-ana"))

        assert len(session.requests) == 3

    def test_client_error_not_retried(self):
        gateway, session = make_gateway(FakeResponse(status_code=400, body={"message": "bad"}))

        with pytest.raises(PersistenceError, match="failed"):
            asyncio.run(gateway.list_blocked_times())

        assert len(session.requests) == 1


class TestWrites:
    """Tests for write operations."""

    def test_insert_appointment(self):
        gateway, session = make_gateway(FakeResponse(status_code=201, body=[{"id": "new-id"}]))
        appointment = Appointment(
            provider_id="prov-ana",
            client_id="client-01",
            service_id="svc-haircut",
            start=pendulum.parse("2025-06-10 10:00", tz=TZ),
            end=pendulum.parse("2025-06-10 10:30", tz=TZ),
        )

        new_id = asyncio.run(gateway.insert_appointment(appointment))

        sent = session.requests[0]
        assert new_id == "new-id"
        assert sent["method"] == "POST"
        assert sent["headers"]["Prefer"] == "return=representation"
        assert sent["json"]["barber_id"] == "prov-ana"
        assert sent["json"]["status"] == "scheduled"
        assert "id" not in sent["json"]

    def test_update_maps_fields_to_columns(self):
        gateway, session = make_gateway(FakeResponse(body=[APPOINTMENT_ROW]))

        asyncio.run(gateway.update_appointment("appt-1", {
            "start": pendulum.parse("2025-06-10 11:00", tz=TZ),
            "status": AppointmentStatus.CONFIRMED,
        }))

        sent = session.requests[0]
        assert sent["method"] == "PATCH"
        assert sent["params"] == {"id": "eq.appt-1"}
        assert sent["json"]["start_time"].startswith("2025-06-10T14:00:00")
        assert sent["json"]["status"] == "confirmed"

    def test_update_unknown_field(self):
        gateway, _ = make_gateway()

        with pytest.raises(ValueError, match="Unknown appointment field"):
            asyncio.run(gateway.update_appointment("appt-1", {"colour": "red"}))

    def test_update_missing_appointment(self):
        gateway, _ = make_gateway(FakeResponse(body=[]))

        with pytest.raises(AppointmentNotFoundError):
            asyncio.run(gateway.update_appointment_status("nope", AppointmentStatus.CANCELLED))

    def test_save_business_hours_upserts(self):
        gateway, session = make_gateway(FakeResponse(status_code=201))

        asyncio.run(gateway.save_business_hours(DEFAULT_BUSINESS_HOURS))

        sent = session.requests[0]
        assert sent["params"] == {"on_conflict": "key"}
        assert sent["headers"]["Prefer"] == "resolution=merge-duplicates"
        assert sent["json"]["key"] == "business_hours"
        assert sent["json"]["value"]["openingTime"] == "08:00"
