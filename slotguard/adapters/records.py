"""
Mapping between persistence rows and domain models.

Rows use the column names of the hosted database: the provider column is
``barber_id`` and instants are ISO 8601 strings.
"""

from typing import Any, Dict

import pendulum
from pendulum import DateTime

from ..domain.exceptions import PersistenceError
from ..domain.models import Appointment, AppointmentStatus, BlockedTime


def parse_instant(value: str, timezone: str) -> DateTime:
    """
    Parse an ISO 8601 string into a pendulum DateTime in ``timezone``.

    Raises:
        PersistenceError: If the value is not a datetime
    """
    try:
        dt = pendulum.parse(value)
    except (ValueError, TypeError) as exc:
        raise PersistenceError(f"Could not parse datetime: {value}") from exc

    if isinstance(dt, DateTime):
        return dt.in_timezone(timezone)

    raise PersistenceError(f"Could not parse datetime: {value}")


def format_instant(value: DateTime) -> str:
    return value.in_timezone("UTC").to_iso8601_string()


def appointment_from_row(row: Dict[str, Any], timezone: str) -> Appointment:
    try:
        return Appointment(
            id=str(row["id"]),
            provider_id=str(row["barber_id"]),
            client_id=str(row["client_id"]),
            service_id=str(row.get("service_id") or ""),
            start=parse_instant(row["start_time"], timezone),
            end=parse_instant(row["end_time"], timezone),
            status=AppointmentStatus(row.get("status", AppointmentStatus.SCHEDULED.value)),
            notes=row.get("notes"),
        )
    except KeyError as exc:
        raise PersistenceError(f"Appointment row is missing column {exc}") from exc
    except ValueError as exc:
        raise PersistenceError(f"Invalid appointment row {row.get('id')}: {exc}") from exc


def appointment_to_row(appointment: Appointment) -> Dict[str, Any]:
    """Row payload for inserts; the id is left to the database when empty."""
    row: Dict[str, Any] = {
        "barber_id": appointment.provider_id,
        "client_id": appointment.client_id,
        "service_id": appointment.service_id,
        "start_time": format_instant(appointment.start),
        "end_time": format_instant(appointment.end),
        "status": appointment.status.value,
        "notes": appointment.notes,
    }
    if appointment.id:
        row["id"] = appointment.id
    return row


def blocked_time_from_row(row: Dict[str, Any], timezone: str) -> BlockedTime:
    try:
        return BlockedTime(
            id=str(row["id"]),
            provider_id=str(row["barber_id"]),
            start=parse_instant(row["start_time"], timezone),
            end=parse_instant(row["end_time"], timezone),
            title=row.get("title", ""),
            is_all_day=bool(row.get("is_all_day", False)),
            created_by=str(row.get("created_by") or ""),
            description=row.get("description"),
        )
    except KeyError as exc:
        raise PersistenceError(f"Blocked time row is missing column {exc}") from exc
