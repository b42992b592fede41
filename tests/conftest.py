"""pytest configuration: path management plus app, database and token fixtures."""
from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest
from werkzeug.security import generate_password_hash

# Ensure the project root is available on sys.path so tests can import the salon package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from salon import create_app  # noqa: E402
from salon.config import TestingConfig  # noqa: E402
from salon.extensions import db  # noqa: E402
from salon.models import (Customer, Service, ServiceCategory,  # noqa: E402
                          ServiceVariant, Staff, User)
from salon.seeding import seed_loyalty_program  # noqa: E402
from salon.tokens import (issue_customer_token, issue_staff_token,  # noqa: E402
                          issue_user_token)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin(app) -> Staff:
    staff = Staff(
        name="Ada Admin",
        email="admin@salon.test",
        password_hash=generate_password_hash("secret123"),
        role="admin",
    )
    db.session.add(staff)
    db.session.commit()
    return staff


@pytest.fixture
def stylist(app) -> Staff:
    staff = Staff(
        name="Sam Stylist",
        email="sam@salon.test",
        password_hash=generate_password_hash("secret123"),
        role="staff",
    )
    db.session.add(staff)
    db.session.commit()
    return staff


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return auth_header(issue_staff_token(admin))


@pytest.fixture
def staff_headers(stylist) -> dict[str, str]:
    return auth_header(issue_staff_token(stylist))


@pytest.fixture
def legacy_user(app) -> User:
    user = User(
        username="lee",
        email="lee@salon.test",
        name="Lee Legacy",
        password_hash=generate_password_hash("secret123"),
        role="staff",
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user_headers(legacy_user) -> dict[str, str]:
    return auth_header(issue_user_token(legacy_user))


@pytest.fixture
def customer(app) -> Customer:
    account = Customer(
        name="Casey Client",
        email="casey@example.com",
        password_hash=generate_password_hash("secret123"),
        phone="555-0100",
        date_of_birth=date(1990, 6, 15),
    )
    db.session.add(account)
    db.session.commit()
    return account


@pytest.fixture
def customer_headers(customer) -> dict[str, str]:
    return auth_header(issue_customer_token(customer))


@pytest.fixture
def program(app):
    return seed_loyalty_program()


@pytest.fixture
def catalog(app) -> dict[str, int]:
    """One category with a $45 / 60 minute haircut and a second service."""
    category = ServiceCategory(name="Hair Services", description="Cuts and color", display_order=1)
    haircut = Service(
        category=category,
        name="Haircut",
        description="Professional cut",
        base_price_cents=4500,
        base_duration=60,
        display_order=1,
    )
    coloring = Service(
        category=category,
        name="Hair Coloring",
        base_price_cents=8500,
        base_duration=120,
        display_order=2,
    )
    wash = ServiceVariant(service=haircut, name="Wash & Cut", type="style",
                          price_modifier_cents=1000, duration_modifier=15, display_order=1)
    short = ServiceVariant(service=haircut, name="30 minutes", type="duration",
                           price_modifier_cents=-1000, duration_modifier=-30, display_order=1)
    retired = ServiceVariant(service=haircut, name="Beard Trim", type="addon",
                             price_modifier_cents=1500, duration_modifier=15, is_active=False)
    highlights = ServiceVariant(service=coloring, name="Highlights", type="style",
                                price_modifier_cents=3000, duration_modifier=30)
    db.session.add_all([category, haircut, coloring, wash, short, retired, highlights])
    db.session.commit()
    return {
        "category_id": category.category_id,
        "haircut_id": haircut.service_id,
        "coloring_id": coloring.service_id,
        "wash_id": wash.variant_id,
        "short_id": short.variant_id,
        "retired_id": retired.variant_id,
        "highlights_id": highlights.variant_id,
    }


@pytest.fixture
def booking_payload(catalog) -> dict[str, object]:
    return {
        "customer_name": "Jordan Guest",
        "customer_email": "jordan@example.com",
        "customer_phone": "555-0199",
        "service_id": catalog["haircut_id"],
        "variant_ids": [catalog["wash_id"]],
        "booking_date": "2030-06-10",
        "booking_time": "10:00",
    }
