"""Tests for PATCH /api/bookings/<id>/status."""
from __future__ import annotations

from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from salon.extensions import db
from salon.models import Booking, CustomerLoyalty


def _create(client, payload, **overrides):
    return client.post("/api/bookings", json={**payload, **overrides})


def _set_status(client, booking_id: int, status: str, headers):
    return client.patch(f"/api/bookings/{booking_id}/status", json={"status": status}, headers=headers)


def test_reactivating_into_a_taken_slot_conflicts(client, booking_payload, staff_headers) -> None:
    first_id = _create(client, booking_payload).get_json()["booking"]["id"]
    client.patch(f"/api/bookings/{first_id}/status", json={"status": "cancelled"}, headers=staff_headers)
    assert _create(client, booking_payload).status_code == 201

    response = client.patch(f"/api/bookings/{first_id}/status", json={"status": "confirmed"},
                            headers=staff_headers)

    assert response.status_code == 409
    db.session.expire_all()
    assert db.session.get(Booking, first_id).status == "cancelled"


def test_completing_a_booking_awards_points_once(client, booking_payload, staff_headers, program) -> None:
    booking_id = _create(client, booking_payload).get_json()["booking"]["id"]

    response = client.patch(f"/api/bookings/{booking_id}/status", json={"status": "completed"},
                            headers=staff_headers)
    again = client.patch(f"/api/bookings/{booking_id}/status", json={"status": "completed"},
                         headers=staff_headers)

    assert response.status_code == 200
    assert response.get_json()["loyalty_points_added"] is True
    assert again.get_json()["loyalty_points_added"] is False
    db.session.expire_all()
    record = CustomerLoyalty.query.filter_by(customer_email="jordan@example.com").one()
    assert record.total_points == program.points_per_booking


def test_update_status_rejects_unknown_status(client, booking_payload, staff_headers) -> None:
    booking_id = _create(client, booking_payload).get_json()["booking"]["id"]

    response = client.patch(f"/api/bookings/{booking_id}/status", json={"status": "done"},
                            headers=staff_headers)

    assert response.status_code == 400


def test_reactivating_beside_an_unassigned_booking_conflicts(client, booking_payload, stylist,
                                                             staff_headers) -> None:
    staffed_id = _create(client, booking_payload, staff_id=stylist.staff_id).get_json()["booking"]["id"]
    _set_status(client, staffed_id, "cancelled", staff_headers)
    assert _create(client, booking_payload, customer_email="walkin@example.com").status_code == 201

    response = _set_status(client, staffed_id, "pending", staff_headers)

    assert response.status_code == 409
    db.session.expire_all()
    assert db.session.get(Booking, staffed_id).status == "cancelled"


def test_status_requires_staff(client, booking_payload, customer_headers) -> None:
    booking_id = _create(client, booking_payload).get_json()["booking"]["id"]

    assert _set_status(client, booking_id, "confirmed", None).status_code == 401
    assert _set_status(client, booking_id, "confirmed", customer_headers).status_code == 401
    assert _set_status(client, 9999, "confirmed", {}).status_code == 401


@patch("salon.loyalty.LoyaltyLedger.add_points", side_effect=SQLAlchemyError("loyalty table locked"))
def test_completion_survives_loyalty_failure(mock_add_points, client, booking_payload, staff_headers,
                                             program) -> None:
    booking_id = _create(client, booking_payload).get_json()["booking"]["id"]

    response = _set_status(client, booking_id, "completed", staff_headers)

    assert response.status_code == 200
    assert response.get_json()["booking"]["status"] == "completed"
    mock_add_points.assert_called_once()
    db.session.expire_all()
    assert db.session.get(Booking, booking_id).status == "completed"
    assert CustomerLoyalty.query.filter_by(customer_email="jordan@example.com").one().total_points == 0
