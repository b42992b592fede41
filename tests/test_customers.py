"""Tests for customer accounts and self-service endpoints."""
from __future__ import annotations

from datetime import date

from salon.extensions import db
from salon.models import Customer, CustomerLoyalty


def test_register_customer_creates_loyalty_record(client) -> None:
    response = client.post(
        "/api/customers/register",
        json={"name": "Robin Reg", "email": "Robin@Example.com", "password": "secret1",
              "phone": "555-0123", "date_of_birth": "1992-03-04"},
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["token"]
    assert data["customer"]["email"] == "robin@example.com"
    assert data["customer"]["date_of_birth"] == "1992-03-04"
    record = CustomerLoyalty.query.filter_by(customer_email="robin@example.com").one()
    assert record.customer_id == data["customer"]["id"]


def test_register_customer_validation_and_duplicates(client, customer) -> None:
    invalid = client.post("/api/customers/register", json={"name": "", "email": "bad", "password": "123"})
    duplicate = client.post("/api/customers/register",
                            json={"name": "Casey", "email": "casey@example.com", "password": "secret1"})

    assert invalid.status_code == 400
    assert {error["field"] for error in invalid.get_json()["errors"]} == {"name", "email", "password"}
    assert duplicate.status_code == 409


def test_login_customer(client, customer) -> None:
    ok = client.post("/api/customers/login", json={"email": "CASEY@example.com", "password": "secret123"})
    wrong = client.post("/api/customers/login", json={"email": "casey@example.com", "password": "nope"})

    assert ok.status_code == 200
    assert ok.get_json()["token"]
    assert wrong.status_code == 401
    assert client.post("/api/customers/login", json={}).status_code == 400


def test_inactive_customer_cannot_login_or_use_token(client, customer, customer_headers) -> None:
    customer.is_active = False
    db.session.commit()

    assert client.post("/api/customers/login",
                       json={"email": "casey@example.com", "password": "secret123"}).status_code == 401
    assert client.get("/api/customers/profile", headers=customer_headers).status_code == 401


def test_profile_requires_customer_token(client, customer, staff_headers) -> None:
    assert client.get("/api/customers/profile").status_code == 401
    assert client.get("/api/customers/profile", headers=staff_headers).status_code == 401


def test_get_and_update_profile(client, customer, customer_headers) -> None:
    assert client.get("/api/customers/profile", headers=customer_headers).get_json()["customer"]["name"] == \
        "Casey Client"

    response = client.put("/api/customers/profile",
                          json={"name": "Casey C.", "address": "1 Main St", "date_of_birth": "1990-07-01"},
                          headers=customer_headers)
    data = response.get_json()["customer"]

    assert response.status_code == 200
    assert data["name"] == "Casey C."
    assert data["address"] == "1 Main St"
    assert data["date_of_birth"] == "1990-07-01"


def test_update_profile_email_conflict(client, customer, customer_headers) -> None:
    other = Customer(name="Other", email="other@example.com", password_hash="x")
    db.session.add(other)
    db.session.commit()

    response = client.put("/api/customers/profile", json={"email": "other@example.com"}, headers=customer_headers)

    assert response.status_code == 409


def test_customer_bookings_match_account_or_email(client, booking_payload, customer, customer_headers) -> None:
    client.post("/api/bookings", json={**booking_payload, "customer_email": "casey@example.com"})
    client.post("/api/bookings", json={**booking_payload, "booking_time": "11:00"})

    response = client.get("/api/customers/bookings", headers=customer_headers)
    bookings = response.get_json()["bookings"]

    assert response.status_code == 200
    assert [booking["booking_time"] for booking in bookings] == ["10:00"]


def test_customer_loyalty_is_created_on_first_access(client, program, customer, customer_headers) -> None:
    response = client.get("/api/customers/loyalty", headers=customer_headers)
    data = response.get_json()

    assert response.status_code == 200
    assert data["loyalty"]["total_points"] == 0
    assert data["loyalty"]["customer_id"] == customer.customer_id
    assert data["points_to_next_reward"] == 100
    assert data["program"]["name"] == "Salon Rewards"


def test_birthday_discount_today(client, program, customer, customer_headers) -> None:
    customer.date_of_birth = date.today().replace(year=1992)
    db.session.commit()

    data = client.get("/api/customers/birthday-discount", headers=customer_headers).get_json()

    assert data == {"eligible": True, "days_until_birthday": 0, "discount_rate": 20.0}


def test_staff_lists_and_searches_customers(client, customer, staff_headers) -> None:
    db.session.add(Customer(name="Morgan Other", email="morgan@example.com", password_hash="x", phone="555-0900"))
    db.session.commit()

    everyone = client.get("/api/customers", headers=staff_headers).get_json()
    search = client.get("/api/customers?search=0900", headers=staff_headers).get_json()
    by_name = client.get("/api/customers?sort_by=name&sort_order=asc", headers=staff_headers).get_json()

    assert everyone["pagination"]["total"] == 2
    assert [c["email"] for c in search["customers"]] == ["morgan@example.com"]
    assert [c["name"] for c in by_name["customers"]] == ["Casey Client", "Morgan Other"]
    assert client.get("/api/customers").status_code == 401


def test_loyalty_follows_customer_email_change(client, program, customer, customer_headers) -> None:
    before = client.get("/api/customers/loyalty", headers=customer_headers).get_json()["loyalty"]

    update = client.put("/api/customers/profile", json={"email": "casey.new@example.com"}, headers=customer_headers)
    response = client.get("/api/customers/loyalty", headers=customer_headers)
    after = response.get_json()["loyalty"]

    assert update.status_code == 200
    assert response.status_code == 200
    assert after["id"] == before["id"]
    assert after["customer_email"] == "casey.new@example.com"
    db.session.expire_all()
    assert CustomerLoyalty.query.count() == 1
