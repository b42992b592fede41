"""Tests for loyalty accrual, redemption and birthday discounts."""
from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from salon.errors import (InsufficientPointsError, NoActiveProgramError,
                          NotFoundError, ValidationError)
from salon.extensions import db
from salon.gateway import get_gateway
from salon.loyalty import LoyaltyLedger, points_to_next_reward
from salon.models import CustomerLoyalty, LoyaltyProgram, LoyaltyTransaction


@pytest.fixture
def ledger(app) -> LoyaltyLedger:
    return LoyaltyLedger(get_gateway())


def test_ensure_customer_record_is_idempotent(ledger) -> None:
    first = ledger.ensure_customer_record("Pat@Example.com ", "Pat")
    second = ledger.ensure_customer_record("pat@example.com", "Someone Else")
    db.session.commit()

    assert first.loyalty_id == second.loyalty_id
    assert first.customer_email == "pat@example.com"
    assert first.customer_name == "Pat"
    assert CustomerLoyalty.query.count() == 1


def test_ensure_customer_record_links_customer_id(ledger, customer) -> None:
    ledger.ensure_customer_record(customer.email, customer.name)
    record = ledger.ensure_customer_record(customer.email, customer_id=customer.customer_id)
    db.session.commit()

    assert record.customer_id == customer.customer_id


def test_add_points_updates_balance_and_history(ledger) -> None:
    ledger.ensure_customer_record("pat@example.com", "Pat")
    record = ledger.add_points("pat@example.com", 25, "manual", description="Welcome bonus")
    db.session.commit()

    assert record.total_points == 25
    assert record.lifetime_points == 25
    transaction = LoyaltyTransaction.query.one()
    assert transaction.kind == "earned"
    assert transaction.source == "manual"
    assert transaction.description == "Welcome bonus"


def test_add_points_unknown_reason_is_recorded_as_other(ledger) -> None:
    ledger.add_points("pat@example.com", 5, "promo", create=True, name="Pat")
    db.session.commit()

    assert LoyaltyTransaction.query.one().source == "other"


def test_add_points_rejects_negative_and_unknown_customers(ledger) -> None:
    with pytest.raises(NotFoundError):
        ledger.add_points("ghost@example.com", 10, "manual")

    ledger.ensure_customer_record("pat@example.com", "Pat")
    with pytest.raises(ValidationError):
        ledger.add_points("pat@example.com", -5, "manual")


def test_redeem_deducts_threshold(ledger, program) -> None:
    ledger.add_points("pat@example.com", 120, "manual", create=True, name="Pat")
    db.session.commit()

    result = ledger.redeem("pat@example.com")
    db.session.commit()

    assert result == {"reward_amount": 10.0, "remaining_points": 20}
    record = ledger.get_record("pat@example.com")
    assert record.total_points == 20
    assert record.lifetime_points == 120
    assert record.rewards_redeemed == 1
    assert record.points_redeemed == 100
    redeemed = LoyaltyTransaction.query.filter_by(kind="redeemed").one()
    assert redeemed.points == -100
    assert redeemed.source == "reward"


def test_redeem_exactly_at_threshold_leaves_zero(ledger, program) -> None:
    ledger.add_points("pat@example.com", 100, "manual", create=True, name="Pat")
    db.session.commit()

    assert ledger.redeem("pat@example.com")["remaining_points"] == 0
    db.session.commit()

    with pytest.raises(InsufficientPointsError):
        ledger.redeem("pat@example.com")
    assert ledger.get_record("pat@example.com").lifetime_points == 100


def test_redeem_with_insufficient_points(ledger, program) -> None:
    ledger.add_points("pat@example.com", 40, "manual", create=True, name="Pat")
    db.session.commit()

    with pytest.raises(InsufficientPointsError) as excinfo:
        ledger.redeem("pat@example.com")

    assert excinfo.value.details == {"current_points": 40, "required_points": 100}
    assert ledger.get_record("pat@example.com").total_points == 40


def test_redeem_without_program(ledger) -> None:
    ledger.ensure_customer_record("pat@example.com", "Pat")

    with pytest.raises(NoActiveProgramError):
        ledger.redeem("pat@example.com")


def test_points_to_next_reward(program) -> None:
    record = SimpleNamespace(total_points=130)

    assert points_to_next_reward(SimpleNamespace(total_points=30), program) == 70
    assert points_to_next_reward(record, program) == 0
    assert points_to_next_reward(record, None) is None


def _program(days: int = 7) -> LoyaltyProgram:
    return LoyaltyProgram(name="Rewards", birthday_discount_rate=20.0, birthday_discount_days=days)


@pytest.mark.parametrize(
    ("birthday", "today", "distance"),
    [
        (date(1990, 6, 15), date(2024, 6, 15), 0),
        (date(1990, 6, 15), date(2024, 6, 10), 5),
        (date(2000, 1, 2), date(2024, 12, 30), 3),
        (date(1985, 12, 30), date(2025, 1, 2), 3),
        (date(1996, 2, 29), date(2023, 2, 25), 3),
    ],
)
def test_birthday_window_is_eligible(birthday, today, distance) -> None:
    result = LoyaltyLedger.birthday_eligible(SimpleNamespace(date_of_birth=birthday), _program(), today)

    assert result == {"eligible": True, "days_until_birthday": distance, "discount_rate": 20.0}


def test_birthday_outside_window() -> None:
    customer = SimpleNamespace(date_of_birth=date(1990, 6, 15))

    result = LoyaltyLedger.birthday_eligible(customer, _program(), date(2024, 7, 1))

    assert result == {"eligible": False, "days_until_birthday": 16, "discount_rate": 0}


def test_birthday_without_date_of_birth_or_program() -> None:
    customer = SimpleNamespace(date_of_birth=None)

    assert LoyaltyLedger.birthday_eligible(customer, _program(), date(2024, 1, 1))["eligible"] is False
    assert LoyaltyLedger.birthday_eligible(
        SimpleNamespace(date_of_birth=date(1990, 1, 1)), None, date(2024, 1, 1)
    )["eligible"] is False


def test_award_booking_completion_creates_record_and_points(ledger, program) -> None:
    booking = SimpleNamespace(
        booking_id=None,
        customer_email="walkin@example.com",
        customer_name="Walk In",
        customer_phone="555-0111",
        customer_id=None,
    )

    ledger.award_booking_completion(booking)

    record = ledger.get_record("walkin@example.com")
    assert record.total_points == program.points_per_booking
    assert LoyaltyTransaction.query.one().source == "booking"


def test_award_booking_completion_without_program_does_nothing(ledger) -> None:
    booking = SimpleNamespace(booking_id=1, customer_email="walkin@example.com",
                              customer_name="Walk In", customer_phone=None, customer_id=None)

    ledger.award_booking_completion(booking)

    assert CustomerLoyalty.query.count() == 0


def test_ensure_customer_record_prefers_linked_account(ledger, customer) -> None:
    linked = ledger.ensure_customer_record("old@example.com", "Casey", customer_id=customer.customer_id)
    db.session.commit()

    record = ledger.ensure_customer_record("casey.new@example.com", "Casey", customer_id=customer.customer_id)

    assert record.loyalty_id == linked.loyalty_id
    assert record.customer_email == "old@example.com"
    assert CustomerLoyalty.query.count() == 1


def test_change_email_moves_linked_record(ledger, customer) -> None:
    ledger.ensure_customer_record("old@example.com", "Casey", customer_id=customer.customer_id)

    record = ledger.change_email(customer.customer_id, "Casey.New@example.com")

    assert record.customer_email == "casey.new@example.com"
    assert ledger.get_record("old@example.com") is None


def test_change_email_keeps_record_when_new_email_is_taken(ledger, customer) -> None:
    ledger.ensure_customer_record("old@example.com", "Casey", customer_id=customer.customer_id)
    ledger.ensure_customer_record("guest@example.com", "Guest")

    record = ledger.change_email(customer.customer_id, "guest@example.com")

    assert record.customer_email == "old@example.com"
    assert CustomerLoyalty.query.count() == 2


def test_award_booking_completion_after_email_change(ledger, program, customer) -> None:
    linked = ledger.ensure_customer_record("old@example.com", "Casey", customer_id=customer.customer_id)
    db.session.commit()
    booking = SimpleNamespace(booking_id=None, customer_email="casey.new@example.com",
                              customer_name="Casey", customer_phone=None, customer_id=customer.customer_id)

    ledger.award_booking_completion(booking)

    db.session.expire_all()
    assert CustomerLoyalty.query.count() == 1
    assert db.session.get(CustomerLoyalty, linked.loyalty_id).total_points == program.points_per_booking
