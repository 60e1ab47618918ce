"""
Operating-hours evaluation.

Pure logic: decides whether a calendar date and time-of-day fall inside the
configured business hours and lays out the bookable slot grid for a day.
"""

from datetime import date, datetime, time
from typing import List, Optional, Union

from pendulum import DateTime

from .models import ALWAYS_OPEN, BusinessHours, weekday_name


def parse_time_of_day(value: Union[str, time]) -> int:
    """
    Convert an ``"HH:MM"`` string (or a ``time``) into minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24h time of day
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    parts = value.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM")

    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM")
    return hours * 60 + minutes


class BusinessHoursEvaluator:
    """
    Evaluates dates and times against a ``BusinessHours`` configuration.

    Passing ``None`` selects ``ALWAYS_OPEN``: with nothing configured every
    time counts as open.
    """

    def __init__(self, business_hours: Optional[BusinessHours] = None):
        self.business_hours = business_hours if business_hours is not None else ALWAYS_OPEN

    def is_open(self, day: date, time_of_day: Union[str, time]) -> bool:
        """
        Check whether ``time_of_day`` on ``day`` is within operating hours.

        Algorithm:
        1. Reject weekdays that are not configured as open
        2. Reject holiday dates
        3. Accept iff opening <= target < closing (minutes since midnight)
        """
        target = parse_time_of_day(time_of_day)
        hours = self.business_hours

        if hours.fail_open:
            return True

        if isinstance(day, datetime):
            day = day.date()

        if weekday_name(day) not in hours.weekdays:
            return False

        if hours.is_holiday(day):
            return False

        opening = parse_time_of_day(hours.opening_time)
        closing = parse_time_of_day(hours.closing_time)

        return opening <= target < closing

    def is_open_at(self, instant: DateTime) -> bool:
        """Check an instant using its own timezone's date and wall-clock time."""
        return self.is_open(instant.date(), instant.time())

    def slots_for_day(self, day: DateTime) -> List[DateTime]:
        """
        List slot start instants for a day, spaced by the configured slot duration.

        The last slot is the one that still ends at or before closing time.
        Closed days (weekday off or holiday) yield an empty list.
        """
        hours = self.business_hours
        opening = day.set(
            hour=hours.opening_time.hour,
            minute=hours.opening_time.minute,
            second=0,
            microsecond=0,
        )
        if not self.is_open(opening.date(), hours.opening_time):
            return []

        closing = day.set(
            hour=hours.closing_time.hour,
            minute=hours.closing_time.minute,
            second=0,
            microsecond=0,
        )

        slots: List[DateTime] = []
        current = opening
        while current.add(minutes=hours.slot_duration_minutes) <= closing:
            slots.append(current)
            current = current.add(minutes=hours.slot_duration_minutes)

        return slots
