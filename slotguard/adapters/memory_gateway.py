"""
In-memory persistence gateway for tests and mock mode.
"""

import json
import logging
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pendulum import DateTime

from ..domain.exceptions import AppointmentNotFoundError, PersistenceError
from ..domain.models import Appointment, AppointmentStatus, BlockedTime, BusinessHours, overlaps
from ..config import BusinessHoursConfig
from .records import appointment_from_row, blocked_time_from_row

logger = logging.getLogger(__name__)


class InMemoryGateway:
    """
    Dict-backed store implementing the persistence gateway protocol.

    Data can be seeded directly or from a JSON fixture shaped like the
    database tables::

        {
            "appointments": [{"id": "...", "barber_id": "...", ...}],
            "blocked_times": [...],
            "business_hours": {"weekdays": [...], "openingTime": "08:00", ...}
        }
    """

    def __init__(
        self,
        appointments: Iterable[Appointment] = (),
        blocked_times: Iterable[BlockedTime] = (),
        business_hours: Optional[BusinessHours] = None,
    ):
        self.appointments: Dict[str, Appointment] = {a.id: a for a in appointments}
        self.blocked_times: List[BlockedTime] = list(blocked_times)
        self.business_hours = business_hours

    @classmethod
    def from_fixture(cls, path: Path, timezone: str) -> "InMemoryGateway":
        """
        Load a JSON fixture file.

        Raises:
            FileNotFoundError: If the fixture does not exist
            PersistenceError: If rows cannot be parsed
        """
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise PersistenceError(f"Invalid JSON in {path}: {exc}") from exc

        business_hours = None
        if data.get("business_hours"):
            business_hours = BusinessHoursConfig(**data["business_hours"]).to_domain()

        gateway = cls(
            appointments=[
                appointment_from_row(row, timezone) for row in data.get("appointments", [])
            ],
            blocked_times=[
                blocked_time_from_row(row, timezone) for row in data.get("blocked_times", [])
            ],
            business_hours=business_hours,
        )
        logger.debug(
            "Loaded %s appointments and %s blocked times from %s",
            len(gateway.appointments),
            len(gateway.blocked_times),
            path,
        )
        return gateway

    async def list_appointments(
        self,
        provider_id: Optional[str] = None,
        client_id: Optional[str] = None,
        start: Optional[DateTime] = None,
        end: Optional[DateTime] = None,
        include_cancelled: bool = True,
    ) -> List[Appointment]:
        results = []
        for appointment in self.appointments.values():
            if provider_id is not None and appointment.provider_id != provider_id:
                continue
            if client_id is not None and appointment.client_id != client_id:
                continue
            if not include_cancelled and not appointment.is_active:
                continue
            if start is not None and end is not None and not overlaps(
                appointment.start, appointment.end, start, end
            ):
                continue
            results.append(appointment)

        return sorted(results, key=lambda a: a.start)

    async def list_blocked_times(self, provider_id: Optional[str] = None) -> List[BlockedTime]:
        return sorted(
            (b for b in self.blocked_times if provider_id is None or b.provider_id == provider_id),
            key=lambda b: b.start,
        )

    async def get_business_hours(self) -> Optional[BusinessHours]:
        return self.business_hours

    async def save_business_hours(self, business_hours: BusinessHours) -> None:
        self.business_hours = business_hours

    async def get_appointment(self, appointment_id: str) -> Appointment:
        try:
            return self.appointments[appointment_id]
        except KeyError:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found") from None

    async def insert_appointment(self, appointment: Appointment) -> str:
        appointment_id = appointment.id or str(uuid.uuid4())
        if appointment_id in self.appointments:
            raise PersistenceError(f"Appointment {appointment_id} already exists")
        self.appointments[appointment_id] = replace(appointment, id=appointment_id)
        return appointment_id

    async def update_appointment(self, appointment_id: str, changes: Dict[str, Any]) -> None:
        current = await self.get_appointment(appointment_id)
        self.appointments[appointment_id] = replace(current, **changes)

    async def update_appointment_status(
        self, appointment_id: str, status: AppointmentStatus
    ) -> None:
        await self.update_appointment(appointment_id, {"status": status})
