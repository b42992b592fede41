"""Open appointment slots per day.

Slots are compared as literal ``HH:MM`` strings; a booking occupies exactly
the slot it starts in regardless of the service duration.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from sqlalchemy import or_

from .errors import RangeTooLargeError, ValidationError
from .models import ACTIVE_BOOKING_STATUSES, Booking

SLOT_GRID = (
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "12:00", "12:30", "13:00", "13:30", "14:00", "14:30",
    "15:00", "15:30", "16:00", "16:30", "17:00", "17:30",
)
MAX_RANGE_DAYS = 14
SUNDAY = 6


def parse_date(value, field: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "Invalid date format. Use YYYY-MM-DD",
            errors=[{"field": field, "message": "must be a YYYY-MM-DD date"}],
        ) from exc


def is_valid_slot(value: str) -> bool:
    return value in SLOT_GRID


def _taken_slots(day: date, bookings: Iterable[Booking], staff_id: int | None) -> set[str]:
    taken = set()
    for booking in bookings:
        if booking.booking_date != day:
            continue
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            continue
        # Unassigned bookings hold the slot for every staff member.
        if staff_id is not None and booking.staff_id not in (staff_id, None):
            continue
        taken.add(booking.booking_time)
    return taken


def resolve_availability_for_date(day: date, existing_bookings: Iterable[Booking],
                                  staff_id: int | None = None) -> list[str]:
    if day.weekday() == SUNDAY:
        return []
    taken = _taken_slots(day, existing_bookings, staff_id)
    return [slot for slot in SLOT_GRID if slot not in taken]


def resolve_availability(start_date: date, end_date: date, existing_bookings: Iterable[Booking],
                         staff_id: int | None = None) -> dict[str, list[str]]:
    """Map every ISO date in ``[start_date, end_date]`` to its free slots."""
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")
    span = (end_date - start_date).days + 1
    if span > MAX_RANGE_DAYS:
        raise RangeTooLargeError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")

    bookings = list(existing_bookings)
    availability: dict[str, list[str]] = {}
    for offset in range(span):
        day = start_date + timedelta(days=offset)
        availability[day.isoformat()] = resolve_availability_for_date(day, bookings, staff_id)
    return availability


def load_active_bookings(gateway, start_date: date, end_date: date,
                         staff_id: int | None = None) -> list[Booking]:
    criteria = [Booking.booking_date >= start_date, Booking.booking_date <= end_date]
    if staff_id is not None:
        criteria.append(or_(Booking.staff_id == staff_id, Booking.staff_id.is_(None)))
    return gateway.bookings.find_many(*criteria, status=ACTIVE_BOOKING_STATUSES)


def slot_taken(gateway, booking_date: date, booking_time: str, staff_id: int | None,
               exclude_booking_id: int | None = None) -> bool:
    """Whether an active booking already holds the slot for ``staff_id``.

    An unassigned request collides with any active booking at that time; a
    staffed one collides with that staff member's bookings and unassigned ones.
    """
    criteria = []
    if staff_id is not None:
        criteria.append(or_(Booking.staff_id == staff_id, Booking.staff_id.is_(None)))
    if exclude_booking_id is not None:
        criteria.append(Booking.booking_id != exclude_booking_id)
    return gateway.bookings.count(
        *criteria,
        booking_date=booking_date,
        booking_time=booking_time,
        status=ACTIVE_BOOKING_STATUSES,
    ) > 0
