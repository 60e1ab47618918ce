"""
Application service for booking, moving and transitioning appointments.

The service fetches a fresh snapshot through a persistence gateway, asks the
domain-level ``ConflictResolver`` for a decision and writes only when the
booking is accepted. The gateway is described by a protocol so tests can
plug in the in-memory store.

Check-then-write, moves and status changes are serialised per provider
and per client with asyncio locks. That closes the race between concurrent
calls handled by the same process; bookings issued by other processes
against the same database can still interleave.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from pendulum import DateTime

from ..domain.conflicts import BookingDecision, ConflictResolver
from ..domain.exceptions import InvalidStatusTransitionError
from ..domain.models import (
    DEFAULT_BUSINESS_HOURS,
    Appointment,
    AppointmentStatus,
    BlockedTime,
    BusinessHours,
)
from ..domain.slot_finder import SlotFinder, SlotSearchResult

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}


class PersistenceGatewayProtocol(Protocol):
    """Protocol describing the persistence operations needed by the service."""

    async def list_appointments(
        self,
        provider_id: Optional[str] = None,
        client_id: Optional[str] = None,
        start: Optional[DateTime] = None,
        end: Optional[DateTime] = None,
        include_cancelled: bool = True,
    ) -> List[Appointment]:
        """Return appointments matching the filters."""

    async def list_blocked_times(self, provider_id: Optional[str] = None) -> List[BlockedTime]:
        """Return blocked times, optionally for one provider."""

    async def get_business_hours(self) -> Optional[BusinessHours]:
        """Return the stored business hours, or None when not configured."""

    async def get_appointment(self, appointment_id: str) -> Appointment:
        """Return one appointment or raise AppointmentNotFoundError."""

    async def insert_appointment(self, appointment: Appointment) -> str:
        """Persist a new appointment and return its id."""

    async def update_appointment(self, appointment_id: str, changes: Dict[str, Any]) -> None:
        """Apply a partial update keyed by domain field names."""

    async def update_appointment_status(
        self, appointment_id: str, status: AppointmentStatus
    ) -> None:
        """Change the status of an appointment."""


@dataclass(frozen=True)
class BookingResult:
    """Decision plus the stored appointment when the write happened."""
    decision: BookingDecision
    appointment: Optional[Appointment] = None

    @property
    def accepted(self) -> bool:
        return self.decision.accepted


class BookingService:
    """
    Orchestrates snapshot retrieval, conflict resolution and writes.
    """

    def __init__(
        self,
        gateway: PersistenceGatewayProtocol,
        resolver: Optional[ConflictResolver] = None,
        slot_finder: Optional[SlotFinder] = None,
        *,
        enforce_business_hours: bool = False,
        fallback_business_hours: BusinessHours = DEFAULT_BUSINESS_HOURS,
        evaluate_all: bool = False,
    ) -> None:
        self._gateway = gateway
        self._resolver = resolver or ConflictResolver()
        self._slot_finder = slot_finder or SlotFinder(self._resolver)
        self._enforce_business_hours = enforce_business_hours
        self._fallback_business_hours = fallback_business_hours
        self._evaluate_all = evaluate_all
        self._business_hours: Optional[BusinessHours] = None
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _serialized(self, appointment: Appointment) -> AsyncIterator[None]:
        """
        Hold the provider and client locks; sorted order avoids deadlocks.

        A lock is dropped once no task holds or waits for it.
        """
        keys = sorted({
            f"provider:{appointment.provider_id}",
            f"client:{appointment.client_id}",
        })
        for key in keys:
            self._lock_users[key] = self._lock_users.get(key, 0) + 1
        locks = [self._locks.setdefault(key, asyncio.Lock()) for key in keys]

        acquired: List[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in keys:
                self._lock_users[key] -= 1
                if not self._lock_users[key]:
                    del self._lock_users[key]
                    del self._locks[key]

    async def load_business_hours(self, refresh: bool = False) -> BusinessHours:
        """Stored business hours, falling back to the default configuration."""
        if self._business_hours is None or refresh:
            stored = await self._gateway.get_business_hours()
            if stored is None:
                logger.info("No business hours configured, using defaults")
            self._business_hours = stored or self._fallback_business_hours
        return self._business_hours

    async def check_availability(
        self,
        candidate: Appointment,
        exclude_id: Optional[str] = None,
    ) -> BookingDecision:
        """
        Fetch the provider's and client's overlapping appointments plus the
        provider's blocked times, then run the conflict checks.
        """
        provider_appointments = await self._gateway.list_appointments(
            provider_id=candidate.provider_id,
            start=candidate.start,
            end=candidate.end,
            include_cancelled=False,
        )
        client_appointments = await self._gateway.list_appointments(
            client_id=candidate.client_id,
            start=candidate.start,
            end=candidate.end,
            include_cancelled=False,
        )
        blocked_times = await self._gateway.list_blocked_times(candidate.provider_id)

        business_hours = None
        if self._enforce_business_hours:
            business_hours = await self.load_business_hours()

        snapshot = {a.id: a for a in provider_appointments + client_appointments}

        return self._resolver.check(
            candidate,
            snapshot.values(),
            blocked_times,
            exclude_id=exclude_id,
            evaluate_all=self._evaluate_all,
            business_hours=business_hours,
        )

    async def create_appointment(self, candidate: Appointment) -> BookingResult:
        """Book ``candidate`` if no conflict exists."""
        async with self._serialized(candidate):
            decision = await self.check_availability(candidate)
            if not decision.accepted:
                logger.info(
                    "Rejected booking for provider %s at %s: %s",
                    candidate.provider_id,
                    candidate.start,
                    decision.reason.value,
                )
                return BookingResult(decision=decision)

            appointment_id = await self._gateway.insert_appointment(candidate)

        logger.info("Booked appointment %s for provider %s", appointment_id, candidate.provider_id)
        return BookingResult(decision=decision, appointment=replace(candidate, id=appointment_id))

    async def reschedule_appointment(
        self,
        appointment_id: str,
        new_start: DateTime,
        new_end: DateTime,
    ) -> BookingResult:
        """
        Move an appointment to a new interval, ignoring its own current slot.

        The status is read again under the locks so a concurrent cancel or
        completion is never overwritten with new times.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            InvalidStatusTransitionError: If it is cancelled or completed
            InvalidIntervalError: If ``new_start`` is not before ``new_end``
        """
        current = await self._gateway.get_appointment(appointment_id)

        async with self._serialized(current):
            current = await self._gateway.get_appointment(appointment_id)
            if not ALLOWED_TRANSITIONS[current.status]:
                raise InvalidStatusTransitionError(
                    f"Cannot reschedule a {current.status.value} appointment"
                )

            moved = replace(current, start=new_start, end=new_end)
            decision = await self.check_availability(moved, exclude_id=appointment_id)
            if not decision.accepted:
                logger.info(
                    "Rejected move of appointment %s: %s",
                    appointment_id,
                    decision.reason.value,
                )
                return BookingResult(decision=decision)

            await self._gateway.update_appointment(
                appointment_id, {"start": new_start, "end": new_end}
            )

        logger.info("Moved appointment %s to %s", appointment_id, new_start)
        return BookingResult(decision=decision, appointment=moved)

    async def _transition(
        self, appointment_id: str, status: AppointmentStatus
    ) -> Appointment:
        current = await self._gateway.get_appointment(appointment_id)

        async with self._serialized(current):
            current = await self._gateway.get_appointment(appointment_id)
            if status not in ALLOWED_TRANSITIONS[current.status]:
                raise InvalidStatusTransitionError(
                    f"Cannot change appointment {appointment_id} "
                    f"from {current.status.value} to {status.value}"
                )

            await self._gateway.update_appointment_status(appointment_id, status)

        logger.info("Appointment %s is now %s", appointment_id, status.value)
        return replace(current, status=status)

    async def confirm_appointment(self, appointment_id: str) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.CONFIRMED)

    async def complete_appointment(self, appointment_id: str) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.COMPLETED)

    async def cancel_appointment(self, appointment_id: str) -> Appointment:
        """Cancel without deleting; the slot becomes free for new bookings."""
        return await self._transition(appointment_id, AppointmentStatus.CANCELLED)

    async def suggest_next_slot(
        self,
        provider_id: str,
        preferred_start: DateTime,
        duration_minutes: int,
    ) -> SlotSearchResult:
        """Search the provider's calendar for the next free start time."""
        horizon_end = preferred_start.start_of("day").add(days=self._slot_finder.max_days)

        appointments = await self._gateway.list_appointments(
            provider_id=provider_id,
            start=preferred_start,
            end=horizon_end.add(minutes=duration_minutes),
            include_cancelled=False,
        )
        blocked_times = await self._gateway.list_blocked_times(provider_id)

        return self._slot_finder.find_next(
            provider_id,
            preferred_start,
            duration_minutes,
            appointments,
            blocked_times,
        )
