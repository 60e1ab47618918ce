"""
Next-available-slot search for a single provider.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from pendulum import DateTime

from .conflicts import ConflictReason, ConflictResolver
from .exceptions import InvalidIntervalError
from .models import Appointment, BlockedTime


@dataclass(frozen=True)
class SlotSearchResult:
    """
    Result of a slot search.

    ``start`` is None when the horizon or the attempt budget ran out.
    """
    start: Optional[DateTime]
    attempts: int
    reason: Optional[ConflictReason] = None

    @property
    def found(self) -> bool:
        return self.start is not None


class SlotFinder:
    """
    Walks forward from a preferred start until a provider is free.

    Algorithm:
    1. Test the preferred start
    2. Advance by ``step_minutes`` and test again
    3. Once a candidate reaches ``rollover_hour`` (local time), jump to
       ``reopen_hour`` on the next calendar day
    4. Give up with NO_SLOT_FOUND past ``max_days`` calendar days or
       ``max_attempts`` tested candidates

    Only provider bookings and blocked times are considered; client
    conflicts and business hours are the caller's concern.
    """

    def __init__(
        self,
        resolver: Optional[ConflictResolver] = None,
        *,
        step_minutes: int = 15,
        rollover_hour: int = 22,
        reopen_hour: int = 8,
        max_days: int = 14,
        max_attempts: int = 5000,
    ):
        if step_minutes <= 0:
            raise ValueError("step_minutes must be greater than zero")
        if not 0 <= reopen_hour < rollover_hour <= 24:
            raise ValueError("reopen_hour must be before rollover_hour")
        if max_days <= 0 or max_attempts <= 0:
            raise ValueError("max_days and max_attempts must be greater than zero")

        self.resolver = resolver or ConflictResolver()
        self.step_minutes = step_minutes
        self.rollover_hour = rollover_hour
        self.reopen_hour = reopen_hour
        self.max_days = max_days
        self.max_attempts = max_attempts

    def find_next(
        self,
        provider_id: str,
        preferred_start: DateTime,
        duration_minutes: int,
        appointments: Iterable[Appointment],
        blocked_times: Iterable[BlockedTime],
    ) -> SlotSearchResult:
        """
        Find the earliest start >= ``preferred_start`` where the provider is free.

        Raises:
            InvalidIntervalError: If ``duration_minutes`` is not positive
        """
        if duration_minutes <= 0:
            raise InvalidIntervalError(
                f"Duration must be greater than zero, got {duration_minutes} minutes"
            )

        appointments: List[Appointment] = list(appointments)
        blocked_times: List[BlockedTime] = list(blocked_times)

        # First instant outside the search window
        horizon = preferred_start.start_of("day").add(days=self.max_days)

        candidate = preferred_start
        attempts = 0

        while candidate < horizon and attempts < self.max_attempts:
            attempts += 1
            end = candidate.add(minutes=duration_minutes)

            if self.resolver.is_slot_available(
                provider_id, candidate, end, appointments, blocked_times
            ):
                return SlotSearchResult(start=candidate, attempts=attempts)

            candidate = self._advance(candidate)

        return SlotSearchResult(
            start=None,
            attempts=attempts,
            reason=ConflictReason.NO_SLOT_FOUND,
        )

    def _advance(self, candidate: DateTime) -> DateTime:
        following = candidate.add(minutes=self.step_minutes)

        if following.date() != candidate.date() or following.hour >= self.rollover_hour:
            following = candidate.add(days=1).set(
                hour=self.reopen_hour, minute=0, second=0, microsecond=0
            )

        return following
