"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .business_hours import BusinessHoursEvaluator
from .conflicts import BookingDecision, ConflictReason, ConflictResolver
from .models import (
    ALWAYS_OPEN,
    DEFAULT_BUSINESS_HOURS,
    Appointment,
    AppointmentStatus,
    BlockedTime,
    BusinessHours,
    Holiday,
    TimeRange,
    overlaps,
)
from .slot_finder import SlotFinder, SlotSearchResult

__all__ = [
    "ALWAYS_OPEN",
    "DEFAULT_BUSINESS_HOURS",
    "Appointment",
    "AppointmentStatus",
    "BlockedTime",
    "BookingDecision",
    "BusinessHours",
    "BusinessHoursEvaluator",
    "ConflictReason",
    "ConflictResolver",
    "Holiday",
    "SlotFinder",
    "SlotSearchResult",
    "TimeRange",
    "overlaps",
]
