"""Tests for slot availability resolution."""
from __future__ import annotations

from datetime import date

import pytest

from salon.availability import (SLOT_GRID, parse_date, resolve_availability,
                                resolve_availability_for_date, slot_taken)
from salon.errors import RangeTooLargeError, ValidationError
from salon.extensions import db
from salon.gateway import get_gateway
from salon.models import Booking

MONDAY = date(2024, 6, 10)
SUNDAY = date(2024, 6, 9)


def _booking(day: date, time: str, status: str = "pending", staff_id: int | None = None) -> Booking:
    return Booking(booking_date=day, booking_time=time, status=status, staff_id=staff_id)


def test_booked_slot_is_removed() -> None:
    slots = resolve_availability_for_date(MONDAY, [_booking(MONDAY, "10:00")])

    assert len(slots) == 17
    assert "10:00" not in slots
    assert slots == [slot for slot in SLOT_GRID if slot != "10:00"]


def test_cancelled_and_completed_bookings_free_the_slot() -> None:
    bookings = [_booking(MONDAY, "10:00", "cancelled"), _booking(MONDAY, "11:00", "completed")]

    assert resolve_availability_for_date(MONDAY, bookings) == list(SLOT_GRID)


def test_staff_filter_only_counts_that_staff_member() -> None:
    bookings = [_booking(MONDAY, "10:00", staff_id=2)]

    assert "10:00" in resolve_availability_for_date(MONDAY, bookings, staff_id=1)
    assert "10:00" not in resolve_availability_for_date(MONDAY, bookings, staff_id=2)
    assert "10:00" not in resolve_availability_for_date(MONDAY, bookings)


def test_unassigned_booking_blocks_every_staff_member() -> None:
    bookings = [_booking(MONDAY, "10:00")]

    assert "10:00" not in resolve_availability_for_date(MONDAY, bookings, staff_id=1)
    assert "10:00" not in resolve_availability_for_date(MONDAY, bookings)


def test_slot_taken_matches_resolver(app, catalog, stylist) -> None:
    gateway = get_gateway()
    staffed = Booking(customer_name="Jordan", customer_email="jordan@example.com", customer_phone="555-0199",
                      service_id=catalog["haircut_id"], staff_id=stylist.staff_id,
                      booking_date=MONDAY, booking_time="10:00", status="confirmed")
    db.session.add(staffed)
    db.session.commit()

    assert slot_taken(gateway, MONDAY, "10:00", None)
    assert slot_taken(gateway, MONDAY, "10:00", stylist.staff_id)
    assert not slot_taken(gateway, MONDAY, "10:00", stylist.staff_id + 1)
    assert not slot_taken(gateway, MONDAY, "10:00", None, exclude_booking_id=staffed.booking_id)
    assert not slot_taken(gateway, MONDAY, "10:30", None)


def test_sunday_has_no_slots() -> None:
    assert resolve_availability_for_date(SUNDAY, []) == []


def test_range_maps_every_day() -> None:
    result = resolve_availability(SUNDAY, date(2024, 6, 11), [_booking(MONDAY, "09:00")])

    assert list(result) == ["2024-06-09", "2024-06-10", "2024-06-11"]
    assert result["2024-06-09"] == []
    assert "09:00" not in result["2024-06-10"]
    assert len(result["2024-06-11"]) == len(SLOT_GRID)


def test_range_of_fourteen_days_is_allowed() -> None:
    result = resolve_availability(MONDAY, date(2024, 6, 23), [])

    assert len(result) == 14


def test_range_over_fourteen_days_is_rejected() -> None:
    with pytest.raises(RangeTooLargeError) as excinfo:
        resolve_availability(MONDAY, date(2024, 6, 24), [])

    assert excinfo.value.code == "range_too_large"
    assert excinfo.value.status_code == 400


def test_reversed_range_is_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        resolve_availability(MONDAY, SUNDAY, [])

    assert excinfo.value.code == "invalid_payload"


def test_parse_date_reports_the_field() -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_date("06/10/2024", "booking_date")

    assert excinfo.value.errors[0]["field"] == "booking_date"
    assert parse_date("2024-06-10") == MONDAY
