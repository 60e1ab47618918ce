"""
Domain-specific exception hierarchy for the slotguard application.

Booking conflicts are not errors: they come back as ``BookingDecision``
values. Only malformed input and infrastructure failures are raised.
"""


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidIntervalError(SchedulingError, ValueError):
    """Raised when an interval does not start strictly before it ends."""


class PersistenceError(SchedulingError):
    """Raised when appointment data cannot be fetched or written."""


class TransientPersistenceError(PersistenceError):
    """Raised for failures worth retrying (timeouts, 5xx, 429)."""


class AppointmentNotFoundError(SchedulingError, LookupError):
    """Raised when an appointment id does not exist in the store."""


class InvalidStatusTransitionError(SchedulingError):
    """Raised when an appointment cannot move to the requested status."""


class CredentialError(SchedulingError):
    """Raised when the API key for the persistence gateway is unavailable."""
