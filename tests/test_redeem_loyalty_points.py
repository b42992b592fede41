"""Tests for POST /api/loyalty/customer/<email>/redeem."""
from __future__ import annotations

from salon.extensions import db
from salon.gateway import get_gateway
from salon.loyalty import LoyaltyLedger
from salon.models import CustomerLoyalty, LoyaltyTransaction


def _member(email: str = "casey@example.com", points: int = 0, name: str = "Casey Client"):
    ledger = LoyaltyLedger(get_gateway())
    ledger.ensure_customer_record(email, name)
    if points:
        ledger.add_points(email, points, "manual")
    db.session.commit()
    return ledger.get_record(email)


def _redeem(client, email: str, headers, **body):
    return client.post(f"/api/loyalty/customer/{email}/redeem", json=body, headers=headers)


def test_customer_redeems_own_points(client, program, customer, customer_headers) -> None:
    _member(points=120)

    response = client.post("/api/loyalty/customer/casey@example.com/redeem", headers=customer_headers)

    assert response.status_code == 200
    assert response.get_json()["reward_amount"] == 10.0
    assert response.get_json()["remaining_points"] == 20


def test_customer_cannot_redeem_for_someone_else(client, program, customer_headers) -> None:
    _member("pat@example.com", points=120, name="Pat")

    response = client.post("/api/loyalty/customer/pat@example.com/redeem", headers=customer_headers)

    assert response.status_code == 403


def test_redeem_requires_authentication(client, program) -> None:
    _member(points=120)

    assert client.post("/api/loyalty/customer/casey@example.com/redeem").status_code == 401


def test_redeem_insufficient_points(client, program, staff_headers) -> None:
    _member(points=40)

    response = client.post("/api/loyalty/customer/casey@example.com/redeem", headers=staff_headers)
    data = response.get_json()

    assert response.status_code == 400
    assert data["error"] == "insufficient_points"
    assert data["current_points"] == 40
    assert data["required_points"] == 100




def test_redeem_against_own_booking(client, program, booking_payload, staff_headers) -> None:
    booking_id = client.post("/api/bookings", json=booking_payload).get_json()["booking"]["id"]
    _member("jordan@example.com", points=120, name="Jordan Guest")

    response = _redeem(client, "jordan@example.com", staff_headers, booking_id=booking_id)

    assert response.status_code == 200
    db.session.expire_all()
    assert LoyaltyTransaction.query.filter_by(kind="redeemed").one().booking_id == booking_id
    record = CustomerLoyalty.query.filter_by(customer_email="jordan@example.com").one()
    assert record.points_redeemed == 100


def test_redeem_against_another_customers_booking(client, program, booking_payload, staff_headers) -> None:
    booking_id = client.post("/api/bookings", json=booking_payload).get_json()["booking"]["id"]
    _member("pat@example.com", points=120, name="Pat")

    response = _redeem(client, "pat@example.com", staff_headers, booking_id=booking_id)

    assert response.status_code == 403
    db.session.expire_all()
    assert LoyaltyTransaction.query.filter_by(kind="redeemed").count() == 0
    assert CustomerLoyalty.query.filter_by(customer_email="pat@example.com").one().total_points == 120


def test_redeem_against_unknown_or_malformed_booking(client, program, staff_headers) -> None:
    _member(points=120)

    missing = _redeem(client, "casey@example.com", staff_headers, booking_id=9999)
    malformed = _redeem(client, "casey@example.com", staff_headers, booking_id="abc")

    assert missing.status_code == 404
    assert malformed.status_code == 400
    assert malformed.get_json()["errors"][0]["field"] == "booking_id"
    db.session.expire_all()
    assert CustomerLoyalty.query.filter_by(customer_email="casey@example.com").one().total_points == 120
