"""
Persistence gateway for the hosted database's auto-generated REST API.

Speaks the PostgREST dialect: one endpoint per table, filters as query
parameters (``barber_id=eq.<id>``, ``start_time=lt.<iso>``).
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from pendulum import DateTime

from ..config import BusinessHoursConfig, RetryConfig
from ..domain.exceptions import (
    AppointmentNotFoundError,
    PersistenceError,
    TransientPersistenceError,
)
from ..domain.models import Appointment, AppointmentStatus, BlockedTime, BusinessHours
from .records import (
    appointment_from_row,
    appointment_to_row,
    blocked_time_from_row,
    format_instant,
)
from .retry import with_retry

logger = logging.getLogger(__name__)


BUSINESS_HOURS_KEY = "business_hours"

# Domain field name -> column name for partial appointment updates
APPOINTMENT_COLUMNS = {
    "provider_id": "barber_id",
    "client_id": "client_id",
    "service_id": "service_id",
    "start": "start_time",
    "end": "end_time",
    "status": "status",
    "notes": "notes",
}

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class RestPersistenceGateway:
    """
    Client for the appointments, blocked_times and settings tables.

    Blocking HTTP calls run in a worker thread and every call goes through
    ``with_retry``, so transient network failures are retried with backoff
    before surfacing as ``PersistenceError``.
    """

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timezone: str,
        retry: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Project URL, e.g. https://example.supabase.co
            api_key: API key sent as ``apikey`` and bearer token
            timezone: IANA timezone used for returned instants
            retry: Retry/timeout settings
            session: Optional requests session (injected in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timezone = timezone
        self.retry = retry or RetryConfig()
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _url(self, table: str) -> str:
        return f"{self.base_url}{self.REST_PATH}/{table}"

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        response = self.session.request(
            method,
            self._url(table),
            headers=headers,
            params=params,
            json=payload,
            timeout=self.retry.timeout_seconds,
        )

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientPersistenceError(
                f"{method} {table} returned {response.status_code}"
            )

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            raise PersistenceError(f"{method} {table} failed: {exc}") from exc

        if not response.content:
            return None
        return response.json()

    async def _call(self, method: str, table: str, **kwargs: Any) -> Any:
        logger.debug("%s %s %s", method, table, kwargs.get("params"))
        return await with_retry(
            lambda: asyncio.to_thread(self._request, method, table, **kwargs),
            max_retries=self.retry.max_retries,
            initial_delay=self.retry.initial_delay,
            max_delay=self.retry.max_delay,
        )

    async def list_appointments(
        self,
        provider_id: Optional[str] = None,
        client_id: Optional[str] = None,
        start: Optional[DateTime] = None,
        end: Optional[DateTime] = None,
        include_cancelled: bool = True,
    ) -> List[Appointment]:
        """
        Fetch appointments, optionally only those overlapping ``[start, end)``.
        """
        params: Dict[str, str] = {"select": "*", "order": "start_time.asc"}
        if provider_id is not None:
            params["barber_id"] = f"eq.{provider_id}"
        if client_id is not None:
            params["client_id"] = f"eq.{client_id}"
        if not include_cancelled:
            params["status"] = f"neq.{AppointmentStatus.CANCELLED.value}"
        if start is not None and end is not None:
            params["start_time"] = f"lt.{format_instant(end)}"
            params["end_time"] = f"gt.{format_instant(start)}"

        rows = await self._call("GET", "appointments", params=params) or []
        return [appointment_from_row(row, self.timezone) for row in rows]

    async def list_blocked_times(self, provider_id: Optional[str] = None) -> List[BlockedTime]:
        params: Dict[str, str] = {"select": "*", "order": "start_time.asc"}
        if provider_id is not None:
            params["barber_id"] = f"eq.{provider_id}"

        rows = await self._call("GET", "blocked_times", params=params) or []
        return [blocked_time_from_row(row, self.timezone) for row in rows]

    async def get_business_hours(self) -> Optional[BusinessHours]:
        """Return the stored configuration, or None if the settings row is absent."""
        rows = await self._call(
            "GET",
            "settings",
            params={"select": "value", "key": f"eq.{BUSINESS_HOURS_KEY}"},
        ) or []
        if not rows:
            return None
        return BusinessHoursConfig(**rows[0]["value"]).to_domain()

    async def save_business_hours(self, business_hours: BusinessHours) -> None:
        """Replace the business hours settings record wholesale (upsert on key)."""
        value = BusinessHoursConfig.from_domain(business_hours).model_dump(by_alias=True)
        await self._call(
            "POST",
            "settings",
            params={"on_conflict": "key"},
            payload={"key": BUSINESS_HOURS_KEY, "value": value},
            prefer="resolution=merge-duplicates",
        )

    async def get_appointment(self, appointment_id: str) -> Appointment:
        rows = await self._call(
            "GET", "appointments", params={"select": "*", "id": f"eq.{appointment_id}"}
        ) or []
        if not rows:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return appointment_from_row(rows[0], self.timezone)

    async def insert_appointment(self, appointment: Appointment) -> str:
        rows = await self._call(
            "POST",
            "appointments",
            payload=appointment_to_row(appointment),
            prefer="return=representation",
        )
        if not rows:
            raise PersistenceError("Insert returned no appointment row")
        return str(rows[0]["id"])

    async def update_appointment(self, appointment_id: str, changes: Dict[str, Any]) -> None:
        payload: Dict[str, Any] = {}
        for field_name, value in changes.items():
            column = APPOINTMENT_COLUMNS.get(field_name)
            if column is None:
                raise ValueError(f"Unknown appointment field: {field_name}")
            if isinstance(value, DateTime):
                value = format_instant(value)
            elif isinstance(value, AppointmentStatus):
                value = value.value
            payload[column] = value

        rows = await self._call(
            "PATCH",
            "appointments",
            params={"id": f"eq.{appointment_id}"},
            payload=payload,
            prefer="return=representation",
        )
        if not rows:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

    async def update_appointment_status(
        self, appointment_id: str, status: AppointmentStatus
    ) -> None:
        await self.update_appointment(appointment_id, {"status": status})
