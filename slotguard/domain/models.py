"""
Domain models for appointments, blocked times and business hours.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from pendulum import DateTime

from .exceptions import InvalidIntervalError


WEEKDAY_NAMES: Tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """
    Half-open interval overlap: ``[a_start, a_end)`` against ``[b_start, b_end)``.

    Zero-length intervals never overlap anything, themselves included.
    """
    if a_start >= a_end or b_start >= b_end:
        return False
    return a_start < b_end and b_start < a_end


def weekday_name(day: date) -> str:
    """Lowercase English weekday name of a date (``"monday"`` ...)."""
    return WEEKDAY_NAMES[day.weekday()]


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Start time {self.start} must be before end time {self.end}"
            )

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return overlaps(self.start, self.end, other.start, other.end)

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment. Cancelled rows are kept, never deleted."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Appointment:
    """
    A reserved interval for one client with one provider for one service.

    ``id`` is empty for candidates that have not been persisted yet.
    """
    provider_id: str
    client_id: str
    service_id: str
    start: DateTime
    end: DateTime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    id: str = ""
    notes: Optional[str] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Appointment start {self.start} must be before end {self.end}"
            )

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    @property
    def is_active(self) -> bool:
        """Cancelled appointments never take part in conflict checks."""
        return self.status != AppointmentStatus.CANCELLED

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()


@dataclass(frozen=True)
class BlockedTime:
    """
    An administrator-declared window during which a provider is unavailable.

    When ``is_all_day`` is set the block covers the whole calendar day of
    ``start``, whatever the time-of-day components say.
    """
    id: str
    provider_id: str
    start: DateTime
    end: DateTime
    title: str
    is_all_day: bool = False
    created_by: str = ""
    description: Optional[str] = None

    def blocked_date(self) -> date:
        return self.start.date()


@dataclass(frozen=True)
class Holiday:
    """A closed calendar date with a label."""
    date: date
    name: str


@dataclass(frozen=True)
class BusinessHours:
    """
    Tenant-wide operating hours.

    ``fail_open`` marks the policy used when no configuration exists at all:
    every date and time counts as open.
    """
    weekdays: FrozenSet[str]
    opening_time: time
    closing_time: time
    slot_duration_minutes: int = 30
    holidays: Tuple[Holiday, ...] = field(default_factory=tuple)
    fail_open: bool = False

    def __post_init__(self):
        if not self.fail_open and self.opening_time >= self.closing_time:
            raise ValueError(
                f"Opening time {self.opening_time} must be before closing time {self.closing_time}"
            )
        if self.slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be greater than zero")
        unknown = set(self.weekdays) - set(WEEKDAY_NAMES)
        if unknown:
            raise ValueError(f"Unknown weekday name(s): {', '.join(sorted(unknown))}")

    def is_holiday(self, day: date) -> bool:
        day_string = day.isoformat()
        return any(holiday.date.isoformat() == day_string for holiday in self.holidays)


DEFAULT_BUSINESS_HOURS = BusinessHours(
    weekdays=frozenset(WEEKDAY_NAMES[:6]),  # everything except Sunday
    opening_time=time(8, 0),
    closing_time=time(20, 0),
    slot_duration_minutes=30,
    holidays=(),
)

ALWAYS_OPEN = BusinessHours(
    weekdays=frozenset(WEEKDAY_NAMES),
    opening_time=time(0, 0),
    closing_time=time(23, 59),
    slot_duration_minutes=30,
    holidays=(),
    fail_open=True,
)
