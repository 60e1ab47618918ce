"""
Tests for the business hours evaluator.
"""

from datetime import date, time

import pendulum
import pytest

from slotguard.domain.business_hours import BusinessHoursEvaluator, parse_time_of_day
from slotguard.domain.models import ALWAYS_OPEN, DEFAULT_BUSINESS_HOURS, BusinessHours, Holiday

TZ = "America/Sao_Paulo"

TUESDAY = date(2025, 6, 10)
SUNDAY = date(2025, 6, 8)


def hours_with_holiday():
    return BusinessHours(
        weekdays=frozenset({"monday", "tuesday", "wednesday", "thursday", "friday"}),
        opening_time=time(9, 0),
        closing_time=time(18, 0),
        slot_duration_minutes=60,
        holidays=(Holiday(date=date(2025, 6, 19), name="Corpus Christi"),),
    )


class TestBusinessHoursEvaluator:
    """Tests for BusinessHoursEvaluator.is_open."""

    def test_opening_time_is_open(self):
        """Opening time itself is inside the half-open window."""
        evaluator = BusinessHoursEvaluator(DEFAULT_BUSINESS_HOURS)

        assert evaluator.is_open(TUESDAY, "08:00")

    def test_closing_time_is_closed(self):
        """Closing time is the excluded upper bound."""
        evaluator = BusinessHoursEvaluator(DEFAULT_BUSINESS_HOURS)

        assert not evaluator.is_open(TUESDAY, "20:00")
        assert evaluator.is_open(TUESDAY, "19:59")

    def test_before_opening(self):
        assert not BusinessHoursEvaluator(DEFAULT_BUSINESS_HOURS).is_open(TUESDAY, "07:59")

    def test_closed_weekday(self):
        """Sunday is not an open weekday in the default configuration."""
        assert not BusinessHoursEvaluator(DEFAULT_BUSINESS_HOURS).is_open(SUNDAY, "10:00")

    def test_holiday_is_closed(self):
        evaluator = BusinessHoursEvaluator(hours_with_holiday())

        assert not evaluator.is_open(date(2025, 6, 19), "10:00")
        assert evaluator.is_open(date(2025, 6, 18), "10:00")

    def test_missing_configuration_is_always_open(self):
        """No configuration means every time is open."""
        evaluator = BusinessHoursEvaluator(None)

        assert evaluator.business_hours is ALWAYS_OPEN
        assert evaluator.is_open(SUNDAY, "03:00")
        assert evaluator.is_open(TUESDAY, "23:59")

    def test_accepts_time_objects_and_datetimes(self):
        evaluator = BusinessHoursEvaluator(DEFAULT_BUSINESS_HOURS)
        instant = pendulum.parse("2025-06-10 12:30", tz=TZ)

        assert evaluator.is_open(instant, time(12, 30))
        assert evaluator.is_open_at(instant)

    def test_malformed_time_raises(self):
        with pytest.raises(ValueError):
            BusinessHoursEvaluator(DEFAULT_BUSINESS_HOURS).is_open(TUESDAY, "8am")
        with pytest.raises(ValueError):
            parse_time_of_day("24:00")

    def test_parse_time_of_day(self):
        assert parse_time_of_day("00:00") == 0
        assert parse_time_of_day("08:30") == 510
        assert parse_time_of_day(time(20, 0)) == 1200


class TestSlotsForDay:
    """Tests for the slot grid of a day."""

    def test_slot_grid(self):
        evaluator = BusinessHoursEvaluator(hours_with_holiday())
        day = pendulum.parse("2025-06-10", tz=TZ)

        slots = evaluator.slots_for_day(day)

        assert [slot.format("HH:mm") for slot in slots] == [
            "09:00", "10:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00", "17:00",
        ]

    def test_closed_day_has_no_slots(self):
        evaluator = BusinessHoursEvaluator(hours_with_holiday())

        assert evaluator.slots_for_day(pendulum.parse("2025-06-19", tz=TZ)) == []
        assert evaluator.slots_for_day(pendulum.parse("2025-06-08", tz=TZ)) == []

    def test_default_grid_size(self):
        day = pendulum.parse("2025-06-10", tz=TZ)

        slots = BusinessHoursEvaluator(DEFAULT_BUSINESS_HOURS).slots_for_day(day)

        assert len(slots) == 24
        assert slots[-1].format("HH:mm") == "19:30"
