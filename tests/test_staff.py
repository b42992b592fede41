"""Tests for the staff directory and admin staff management."""
from __future__ import annotations

from salon.extensions import db
from salon.models import Booking, Staff


def test_list_staff_is_public_and_active_only(client, admin, stylist) -> None:
    stylist.is_active = False
    db.session.commit()

    response = client.get("/api/staff")

    assert response.status_code == 200
    assert [member["name"] for member in response.get_json()["staff"]] == ["Ada Admin"]


def test_get_staff(client, stylist) -> None:
    assert client.get(f"/api/staff/{stylist.staff_id}").get_json()["staff"]["email"] == "sam@salon.test"
    assert client.get("/api/staff/9999").status_code == 404


def test_create_staff_requires_admin(client, staff_headers) -> None:
    response = client.post("/api/staff", json={"name": "New", "email": "new@salon.test", "password": "secret1"},
                           headers=staff_headers)

    assert response.status_code == 403


def test_admin_creates_staff(client, admin_headers) -> None:
    response = client.post(
        "/api/staff",
        json={"name": "Nia New", "email": "Nia@Salon.test", "password": "secret1", "role": "staff"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.get_json()["staff"]["email"] == "nia@salon.test"
    assert "password_hash" not in response.get_json()["staff"]


def test_create_staff_duplicate_and_bad_role(client, admin, admin_headers) -> None:
    duplicate = client.post("/api/staff", json={"name": "Dup", "email": admin.email, "password": "secret1"},
                            headers=admin_headers)
    bad_role = client.post("/api/staff",
                           json={"name": "Odd", "email": "odd@salon.test", "password": "secret1", "role": "owner"},
                           headers=admin_headers)

    assert duplicate.status_code == 409
    assert bad_role.status_code == 400


def test_update_staff(client, stylist, admin_headers) -> None:
    response = client.put(f"/api/staff/{stylist.staff_id}", json={"phone": "555-0142", "role": "admin"},
                          headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["staff"]["phone"] == "555-0142"
    assert response.get_json()["staff"]["role"] == "admin"


def test_delete_staff_unassigns_bookings(client, booking_payload, stylist, admin_headers) -> None:
    booking_id = client.post("/api/bookings", json={**booking_payload, "staff_id": stylist.staff_id}).get_json()[
        "booking"]["id"]
    staff_id = stylist.staff_id

    response = client.delete(f"/api/staff/{staff_id}", headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["message"] == "Staff member deleted successfully"
    db.session.expire_all()
    assert db.session.get(Staff, staff_id) is None
    assert db.session.get(Booking, booking_id).staff_id is None
