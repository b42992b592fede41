"""Explicit bootstrap data: first admin, default catalog and loyalty program.

Nothing here runs implicitly; these are called from ``scripts/`` and the
``flask seed-*`` commands.
"""
from __future__ import annotations

from werkzeug.security import generate_password_hash

from .extensions import db
from .models import (LoyaltyProgram, Service, ServiceCategory, ServiceVariant,
                     Staff)

# Prices in dollars; converted to cents on insert.
DEFAULT_CATALOG = [
    {
        "name": "Hair Services",
        "description": "Professional hair care and styling services",
        "icon": "content_cut",
        "display_order": 1,
        "services": [
            {
                "name": "Haircut",
                "description": "Professional hair cutting and styling",
                "base_price": 45,
                "base_duration": 60,
                "variants": [
                    ("Basic Cut", "style", 0, 0),
                    ("Wash & Cut", "style", 10, 15),
                    ("Cut & Style", "style", 20, 30),
                    ("30 minutes", "duration", -10, -30),
                    ("90 minutes", "duration", 15, 30),
                ],
            },
            {
                "name": "Hair Coloring",
                "description": "Professional hair coloring and highlighting",
                "base_price": 85,
                "base_duration": 120,
                "variants": [
                    ("Touch-up", "intensity", -20, -30),
                    ("Full Color", "intensity", 0, 0),
                    ("Highlights", "intensity", 25, 30),
                    ("Balayage", "intensity", 40, 60),
                    ("Toner", "addon", 15, 20),
                ],
            },
            {
                "name": "Hair Extensions",
                "description": "Professional hair extension application",
                "base_price": 150,
                "base_duration": 180,
                "variants": [
                    ("Clip-in", "style", -50, -60),
                    ("Tape-in", "style", 0, 0),
                    ("Sew-in", "style", 50, 60),
                    ("12 inches", "length", 0, 0),
                    ("16 inches", "length", 25, 15),
                    ("20 inches", "length", 50, 30),
                ],
            },
        ],
    },
    {
        "name": "Nail Services",
        "description": "Professional nail care and nail art",
        "icon": "colorize",
        "display_order": 2,
        "services": [
            {
                "name": "Manicure",
                "description": "Professional nail care and polish",
                "base_price": 35,
                "base_duration": 45,
                "variants": [
                    ("Basic Manicure", "style", 0, 0),
                    ("Gel Manicure", "style", 15, 15),
                    ("French Tips", "addon", 10, 10),
                    ("Nail Art", "addon", 20, 20),
                    ("Gel Coating", "addon", 12, 10),
                ],
            },
            {
                "name": "Pedicure",
                "description": "Professional foot and toenail care",
                "base_price": 45,
                "base_duration": 60,
                "variants": [
                    ("Basic Pedicure", "style", 0, 0),
                    ("Spa Pedicure", "style", 20, 30),
                    ("Gel Pedicure", "style", 18, 15),
                    ("Callus Treatment", "addon", 15, 15),
                ],
            },
        ],
    },
    {
        "name": "Facial Treatments",
        "description": "Professional skincare and facial treatments",
        "icon": "face",
        "display_order": 3,
        "services": [
            {
                "name": "Classic Facial",
                "description": "Deep cleansing and moisturizing facial",
                "base_price": 75,
                "base_duration": 75,
                "variants": [
                    ("Basic Facial", "intensity", 0, 0),
                    ("Deep Cleansing", "intensity", 15, 15),
                    ("Anti-Aging", "intensity", 25, 20),
                    ("60 minutes", "duration", -10, -15),
                    ("90 minutes", "duration", 20, 15),
                ],
            },
            {
                "name": "Chemical Peel",
                "description": "Professional chemical exfoliation treatment",
                "base_price": 95,
                "base_duration": 60,
                "variants": [
                    ("Light Peel", "intensity", 0, 0),
                    ("Medium Peel", "intensity", 25, 15),
                    ("Deep Peel", "intensity", 50, 30),
                ],
            },
        ],
    },
    {
        "name": "Massage Therapy",
        "description": "Relaxing and therapeutic massage services",
        "icon": "spa",
        "display_order": 4,
        "services": [
            {
                "name": "Swedish Massage",
                "description": "Relaxing full-body massage",
                "base_price": 80,
                "base_duration": 60,
                "variants": [
                    ("30 minutes", "duration", -30, -30),
                    ("60 minutes", "duration", 0, 0),
                    ("90 minutes", "duration", 35, 30),
                    ("Light Pressure", "intensity", 0, 0),
                    ("Medium Pressure", "intensity", 0, 0),
                    ("Deep Pressure", "intensity", 10, 0),
                ],
            },
            {
                "name": "Hot Stone Massage",
                "description": "Therapeutic massage with heated stones",
                "base_price": 110,
                "base_duration": 90,
                "variants": [
                    ("60 minutes", "duration", -20, -30),
                    ("90 minutes", "duration", 0, 0),
                    ("Aromatherapy", "addon", 15, 0),
                ],
            },
        ],
    },
]

DEFAULT_LOYALTY_PROGRAM = {
    "name": "Salon Rewards",
    "description": "Earn points with every visit and redeem them for discounts.",
    "points_per_booking": 10,
    "points_per_dollar": 1,
    "reward_threshold": 100,
    "reward_amount_cents": 1000,
    "birthday_discount_rate": 20.0,
    "birthday_discount_days": 7,
}


def bootstrap_admin(name: str, email: str, password: str) -> Staff | None:
    """Create an admin staff member unless an admin already exists."""
    if Staff.query.filter_by(role="admin").first() is not None:
        return None

    admin = Staff(
        name=name,
        email=email.strip().lower(),
        password_hash=generate_password_hash(password),
        role="admin",
        is_active=True,
    )
    db.session.add(admin)
    db.session.commit()
    return admin


def seed_catalog(replace: bool = False) -> int:
    """Install the default categories, services and variants.

    Returns the number of services created; 0 when a catalog already exists
    and ``replace`` is false.
    """
    if ServiceCategory.query.count() and not replace:
        return 0
    if replace:
        ServiceVariant.query.delete()
        Service.query.delete()
        ServiceCategory.query.delete()

    created = 0
    for category_data in DEFAULT_CATALOG:
        category = ServiceCategory(
            name=category_data["name"],
            description=category_data["description"],
            icon=category_data["icon"],
            display_order=category_data["display_order"],
        )
        db.session.add(category)
        for order, service_data in enumerate(category_data["services"], start=1):
            service = Service(
                category=category,
                name=service_data["name"],
                description=service_data["description"],
                base_price_cents=service_data["base_price"] * 100,
                base_duration=service_data["base_duration"],
                display_order=order,
            )
            db.session.add(service)
            for variant_order, (name, kind, price, minutes) in enumerate(service_data["variants"], start=1):
                db.session.add(ServiceVariant(
                    service=service,
                    name=name,
                    type=kind,
                    price_modifier_cents=price * 100,
                    duration_modifier=minutes,
                    display_order=variant_order,
                ))
            created += 1

    db.session.commit()
    return created


def seed_loyalty_program() -> LoyaltyProgram:
    """Return the active program, creating the default one when none is active."""
    program = LoyaltyProgram.query.filter_by(is_active=True).first()
    if program is not None:
        return program

    program = LoyaltyProgram(is_active=True, **DEFAULT_LOYALTY_PROGRAM)
    db.session.add(program)
    db.session.commit()
    return program
