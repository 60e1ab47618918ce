"""
Core business logic for deciding whether an appointment may be booked.

Pure domain logic over in-memory snapshots: no API calls, no database, no I/O.
Callers fetch appointments and blocked times, then ask the resolver.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from pendulum import DateTime

from .business_hours import BusinessHoursEvaluator
from .exceptions import InvalidIntervalError
from .models import Appointment, BlockedTime, BusinessHours, overlaps


class ConflictReason(str, Enum):
    """Why a booking was rejected, in the order the checks run."""
    PROVIDER_CONFLICT = "provider_conflict"
    CLIENT_CONFLICT = "client_conflict"
    BLOCKED_TIME = "blocked_time"
    OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
    NO_SLOT_FOUND = "no_slot_found"


REASON_MESSAGES = {
    ConflictReason.PROVIDER_CONFLICT: "This provider already has an appointment at this time.",
    ConflictReason.CLIENT_CONFLICT: "This client already has an appointment at this time.",
    ConflictReason.BLOCKED_TIME: "This time is blocked. Please choose another time.",
    ConflictReason.OUTSIDE_BUSINESS_HOURS: "This time is outside business hours.",
    ConflictReason.NO_SLOT_FOUND: "No free slot was found within the search horizon.",
}


@dataclass(frozen=True)
class BookingDecision:
    """
    Outcome of a conflict check.

    ``reasons`` keeps the check order; ``conflicting_ids`` lists the
    appointments and blocked times that caused a rejection.
    """
    reasons: Tuple[ConflictReason, ...] = ()
    conflicting_ids: Tuple[str, ...] = ()

    @property
    def accepted(self) -> bool:
        return not self.reasons

    @property
    def reason(self) -> Optional[ConflictReason]:
        """The highest-priority rejection reason, if any."""
        return self.reasons[0] if self.reasons else None

    def messages(self) -> List[str]:
        return [REASON_MESSAGES[reason] for reason in self.reasons]


ACCEPTED = BookingDecision()


def validate_interval(start: DateTime, end: DateTime) -> None:
    """Raise ``InvalidIntervalError`` unless ``start < end``."""
    if start >= end:
        raise InvalidIntervalError(f"Start time {start} must be before end time {end}")


class ConflictResolver:
    """
    Detects provider double-booking, client double-booking and blocked times.

    Checks run in a fixed priority order:
    1. Provider conflict (another active appointment for the same provider)
    2. Client conflict (another active appointment for the same client)
    3. Blocked time for the provider
    4. Business hours, only when a configuration is passed in

    By default the first failing check ends the evaluation. With
    ``evaluate_all`` every check runs and all reasons are reported.
    """

    def find_blocking(
        self,
        provider_id: str,
        start: DateTime,
        end: DateTime,
        blocked_times: Iterable[BlockedTime],
    ) -> Optional[BlockedTime]:
        """
        Return the first blocked time of ``provider_id`` hit by ``[start, end)``.

        All-day blocks only compare the calendar date of the block start with
        the calendar date of the candidate start, so a candidate starting the
        evening before an all-day block is not caught.
        """
        validate_interval(start, end)

        for blocked in blocked_times:
            if blocked.provider_id != provider_id:
                continue

            if blocked.is_all_day:
                if blocked.blocked_date() == start.date():
                    return blocked
                continue

            if overlaps(blocked.start, blocked.end, start, end):
                return blocked

        return None

    def is_time_blocked(
        self,
        provider_id: str,
        start: DateTime,
        end: DateTime,
        blocked_times: Iterable[BlockedTime],
    ) -> bool:
        """Check if a provider has a blocked time covering the candidate."""
        return self.find_blocking(provider_id, start, end, blocked_times) is not None

    def overlapping_appointments(
        self,
        start: DateTime,
        end: DateTime,
        appointments: Iterable[Appointment],
        *,
        provider_id: Optional[str] = None,
        client_id: Optional[str] = None,
        exclude_id: Optional[str] = None,
    ) -> List[Appointment]:
        """
        Active appointments overlapping ``[start, end)`` for a provider or client.

        Cancelled appointments and ``exclude_id`` (the appointment being
        edited) are skipped.
        """
        validate_interval(start, end)

        matches: List[Appointment] = []
        for appointment in appointments:
            if not appointment.is_active:
                continue
            if exclude_id and appointment.id == exclude_id:
                continue
            if provider_id is not None and appointment.provider_id != provider_id:
                continue
            if client_id is not None and appointment.client_id != client_id:
                continue
            if overlaps(appointment.start, appointment.end, start, end):
                matches.append(appointment)

        return matches

    def is_slot_available(
        self,
        provider_id: str,
        start: DateTime,
        end: DateTime,
        appointments: Iterable[Appointment],
        blocked_times: Iterable[BlockedTime],
        exclude_id: Optional[str] = None,
    ) -> bool:
        """Provider-only availability: not blocked and no overlapping booking."""
        if self.is_time_blocked(provider_id, start, end, blocked_times):
            return False
        return not self.overlapping_appointments(
            start,
            end,
            appointments,
            provider_id=provider_id,
            exclude_id=exclude_id,
        )

    def check(
        self,
        candidate: Appointment,
        appointments: Iterable[Appointment],
        blocked_times: Iterable[BlockedTime],
        *,
        exclude_id: Optional[str] = None,
        evaluate_all: bool = False,
        business_hours: Optional[BusinessHours] = None,
    ) -> BookingDecision:
        """
        Decide whether ``candidate`` can be written.

        Args:
            candidate: The appointment to book or the new state of an edited one
            appointments: Known appointments (any provider, any status)
            blocked_times: Known blocked times (any provider)
            exclude_id: Id of the appointment being edited; defaults to candidate.id
            evaluate_all: Run every check instead of stopping at the first failure
            business_hours: Enforce operating hours when given

        Returns:
            BookingDecision; rejected decisions carry the reasons in priority order

        Raises:
            InvalidIntervalError: If the candidate does not start before it ends
        """
        validate_interval(candidate.start, candidate.end)

        appointments = list(appointments)
        exclude = exclude_id or candidate.id or None

        reasons: List[ConflictReason] = []
        conflicting_ids: List[str] = []

        provider_hits = self.overlapping_appointments(
            candidate.start,
            candidate.end,
            appointments,
            provider_id=candidate.provider_id,
            exclude_id=exclude,
        )
        if provider_hits:
            reasons.append(ConflictReason.PROVIDER_CONFLICT)
            conflicting_ids.extend(a.id for a in provider_hits)
            if not evaluate_all:
                return BookingDecision(tuple(reasons), tuple(conflicting_ids))

        client_hits = self.overlapping_appointments(
            candidate.start,
            candidate.end,
            appointments,
            client_id=candidate.client_id,
            exclude_id=exclude,
        )
        if client_hits:
            reasons.append(ConflictReason.CLIENT_CONFLICT)
            conflicting_ids.extend(a.id for a in client_hits if a.id not in conflicting_ids)
            if not evaluate_all:
                return BookingDecision(tuple(reasons), tuple(conflicting_ids))

        blocking = self.find_blocking(
            candidate.provider_id,
            candidate.start,
            candidate.end,
            blocked_times,
        )
        if blocking is not None:
            reasons.append(ConflictReason.BLOCKED_TIME)
            conflicting_ids.append(blocking.id)
            if not evaluate_all:
                return BookingDecision(tuple(reasons), tuple(conflicting_ids))

        if business_hours is not None and not self._within_business_hours(
            candidate, business_hours
        ):
            reasons.append(ConflictReason.OUTSIDE_BUSINESS_HOURS)

        return BookingDecision(tuple(reasons), tuple(conflicting_ids))

    @staticmethod
    def _within_business_hours(candidate: Appointment, business_hours: BusinessHours) -> bool:
        """
        The candidate must sit inside one day's opening window: first and
        last minute open and on the same local date.
        """
        if business_hours.fail_open:
            return True

        evaluator = BusinessHoursEvaluator(business_hours)
        last_minute = candidate.end.subtract(minutes=1)
        if candidate.start.date() != last_minute.date():
            return False
        return evaluator.is_open_at(candidate.start) and evaluator.is_open_at(last_minute)
