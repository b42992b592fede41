"""Tests for the booking endpoints and slot conflict handling."""
from __future__ import annotations

from unittest.mock import patch

from salon.extensions import db
from salon.models import AnalyticsEvent, Booking, CustomerLoyalty


def _create(client, payload, **overrides):
    return client.post("/api/bookings", json={**payload, **overrides})


def test_create_booking_returns_quote_totals(client, booking_payload) -> None:
    response = _create(client, booking_payload)
    data = response.get_json()

    assert response.status_code == 201
    assert data["message"] == "Booking created successfully"
    booking = data["booking"]
    assert booking["status"] == "pending"
    assert booking["total_price"] == 55.0
    assert booking["total_duration"] == 75
    assert booking["service_name"] == "Haircut"
    assert booking["booking_date"] == "2030-06-10"


def test_create_booking_records_event_and_enrolls_customer(client, booking_payload, program) -> None:
    response = _create(client, booking_payload)
    booking_id = response.get_json()["booking"]["id"]

    event = AnalyticsEvent.query.filter_by(type="booking_created").one()
    assert event.booking_id == booking_id
    record = CustomerLoyalty.query.filter_by(customer_email="jordan@example.com").one()
    assert record.total_points == 0


def test_create_booking_without_program_skips_enrollment(client, booking_payload) -> None:
    assert _create(client, booking_payload).status_code == 201
    assert CustomerLoyalty.query.count() == 0


def test_double_booking_same_slot_conflicts(client, booking_payload) -> None:
    assert _create(client, booking_payload).status_code == 201

    response = _create(client, booking_payload, customer_email="other@example.com")
    data = response.get_json()

    assert response.status_code == 409
    assert data["error"] == "conflict"
    assert data["message"] == "Time slot already booked"
    assert Booking.query.count() == 1


def test_same_slot_with_different_staff_is_allowed(client, booking_payload, admin, stylist) -> None:
    first = _create(client, booking_payload, staff_id=admin.staff_id)
    second = _create(client, booking_payload, staff_id=stylist.staff_id)

    assert first.status_code == 201
    assert second.status_code == 201


def test_cancelled_slot_can_be_rebooked(client, booking_payload, staff_headers) -> None:
    booking_id = _create(client, booking_payload).get_json()["booking"]["id"]

    cancel = client.patch(f"/api/bookings/{booking_id}/status", json={"status": "cancelled"},
                          headers=staff_headers)
    assert cancel.status_code == 200

    assert _create(client, booking_payload).status_code == 201


def test_create_booking_validation_errors(client, booking_payload) -> None:
    response = _create(client, booking_payload, booking_time="10:15", customer_email="nope")
    data = response.get_json()

    assert response.status_code == 400
    assert data["error"] == "invalid_payload"
    fields = {error["field"] for error in data["errors"]}
    assert fields == {"booking_time", "customer_email"}


def test_create_booking_on_sunday_is_rejected(client, booking_payload) -> None:
    response = _create(client, booking_payload, booking_date="2030-06-09")

    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "booking_date"


def test_create_booking_unknown_service_or_staff(client, booking_payload) -> None:
    assert _create(client, booking_payload, service_id=9999).status_code == 404
    assert _create(client, booking_payload, staff_id=9999).status_code == 404


def test_customer_token_fills_contact_details(client, catalog, customer, customer_headers) -> None:
    response = client.post(
        "/api/bookings",
        json={"service_id": catalog["haircut_id"], "booking_date": "2030-06-11", "booking_time": "09:30"},
        headers=customer_headers,
    )
    booking = response.get_json()["booking"]

    assert response.status_code == 201
    assert booking["customer_id"] == customer.customer_id
    assert booking["customer_email"] == "casey@example.com"
    assert booking["customer_phone"] == "555-0100"


def test_invalid_customer_token_is_ignored(client, booking_payload) -> None:
    response = client.post("/api/bookings", json=booking_payload,
                           headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 201
    assert response.get_json()["booking"]["customer_id"] is None


def test_list_bookings_requires_staff(client, booking_payload, customer_headers) -> None:
    assert client.get("/api/bookings").status_code == 401
    assert client.get("/api/bookings", headers=customer_headers).status_code == 401


def test_list_bookings_paginates_and_filters(client, booking_payload, staff_headers) -> None:
    for time in ("09:00", "09:30", "10:00"):
        _create(client, booking_payload, booking_time=time)

    response = client.get("/api/bookings?limit=2", headers=staff_headers)
    data = response.get_json()

    assert response.status_code == 200
    assert [b["booking_time"] for b in data["bookings"]] == ["09:00", "09:30"]
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    ranged = client.get("/api/bookings?start_date=2030-06-01&end_date=2030-06-30", headers=staff_headers)
    assert ranged.get_json()["total"] == 3
    assert "pagination" not in ranged.get_json()

    assert client.get("/api/bookings?status=bogus", headers=staff_headers).status_code == 400
    assert client.get("/api/bookings?status=cancelled", headers=staff_headers).get_json()["bookings"] == []


def test_legacy_user_token_can_list_bookings(client, user_headers) -> None:
    assert client.get("/api/bookings", headers=user_headers).status_code == 200


def test_get_booking(client, booking_payload, staff_headers) -> None:
    booking_id = _create(client, booking_payload).get_json()["booking"]["id"]

    assert client.get(f"/api/bookings/{booking_id}", headers=staff_headers).get_json()["booking"]["id"] == booking_id
    assert client.get("/api/bookings/9999", headers=staff_headers).status_code == 404


def test_availability_for_date(client, booking_payload) -> None:
    _create(client, booking_payload)

    data = client.get("/api/bookings/availability/2030-06-10").get_json()

    assert data["date"] == "2030-06-10"
    assert len(data["available_slots"]) == 17
    assert "10:00" not in data["available_slots"]
    assert client.get("/api/bookings/availability/2030-06-09").get_json()["available_slots"] == []
    assert client.get("/api/bookings/availability/not-a-date").status_code == 400


def test_availability_for_range(client, booking_payload) -> None:
    _create(client, booking_payload)

    response = client.get("/api/bookings/availability?start_date=2030-06-09&end_date=2030-06-11")
    slots = response.get_json()["available_slots"]

    assert response.status_code == 200
    assert sorted(slots) == ["2030-06-09", "2030-06-10", "2030-06-11"]
    assert slots["2030-06-09"] == []
    assert "10:00" not in slots["2030-06-10"]


def test_availability_range_errors(client) -> None:
    assert client.get("/api/bookings/availability?start_date=2030-06-09").status_code == 400

    response = client.get("/api/bookings/availability?start_date=2030-06-01&end_date=2030-06-20")

    assert response.status_code == 400
    assert response.get_json()["error"] == "range_too_large"


def test_unassigned_booking_conflicts_with_staffed_booking(client, booking_payload, stylist) -> None:
    assert _create(client, booking_payload, staff_id=stylist.staff_id).status_code == 201

    response = _create(client, booking_payload, customer_email="walkin@example.com")

    assert response.status_code == 409
    db.session.expire_all()
    assert Booking.query.count() == 1


def test_staffed_booking_conflicts_with_unassigned_booking(client, booking_payload, stylist) -> None:
    assert _create(client, booking_payload).status_code == 201

    response = _create(client, booking_payload, customer_email="walkin@example.com", staff_id=stylist.staff_id)

    assert response.status_code == 409
    slots = client.get(f"/api/bookings/availability/2030-06-10?staff_id={stylist.staff_id}").get_json()
    assert "10:00" not in slots["available_slots"]


def test_booking_survives_email_failure(app, client, booking_payload) -> None:
    app.config.update(EMAIL_ENABLED=True, RESEND_API_KEY="re_test_key")
    app.extensions.pop("email_sender", None)

    with patch("salon.notifications.resend.Emails.send", side_effect=RuntimeError("resend down")) as mock_send:
        response = _create(client, booking_payload)

    assert response.status_code == 201
    mock_send.assert_called_once()
    assert mock_send.call_args.args[0]["to"] == ["jordan@example.com"]
    db.session.expire_all()
    assert Booking.query.count() == 1
