"""Loyalty ledger: point accrual, redemption and birthday discounts."""
from __future__ import annotations

import calendar
from datetime import date

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .errors import (InsufficientPointsError, NoActiveProgramError, NotFoundError,
                     SalonError, ValidationError)
from .models import LOYALTY_SOURCES, CustomerLoyalty, LoyaltyProgram


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _birthday_in_year(date_of_birth: date, year: int) -> date:
    day = date_of_birth.day
    if date_of_birth.month == 2 and day == 29 and not calendar.isleap(year):
        day = 28
    return date(year, date_of_birth.month, day)


class LoyaltyLedger:
    """Reads and mutates loyalty balances through the persistence gateway.

    Methods flush but never commit; the caller owns the transaction, except
    for the booking side effects which commit or roll back on their own.
    """

    def __init__(self, gateway) -> None:
        self.gateway = gateway

    def active_program(self) -> LoyaltyProgram | None:
        return self.gateway.programs.find_first(
            is_active=True, order_by=LoyaltyProgram.updated_at.desc()
        )

    def get_record(self, email: str) -> CustomerLoyalty | None:
        return self.gateway.loyalty.find_first(customer_email=normalize_email(email))

    def ensure_customer_record(self, email: str, name: str | None = None, phone: str | None = None,
                               customer_id: int | None = None) -> CustomerLoyalty:
        email = normalize_email(email)
        if not email:
            raise ValidationError(
                "Customer email is required",
                errors=[{"field": "email", "message": "is required"}],
            )

        # A linked account keeps its record even after the account email changes.
        if customer_id is not None:
            record = self.gateway.loyalty.find_first(customer_id=customer_id)
            if record is not None:
                return record

        record = self.gateway.loyalty.find_first(customer_email=email)
        if record is not None:
            if customer_id is not None and record.customer_id is None:
                self.gateway.loyalty.update(record, customer_id=customer_id)
            return record

        return self.gateway.loyalty.create(
            customer_email=email,
            customer_name=(name or email.split("@")[0]).strip(),
            customer_phone=phone,
            customer_id=customer_id,
            total_points=0,
            lifetime_points=0,
            rewards_redeemed=0,
            points_redeemed=0,
        )

    def change_email(self, customer_id: int, email: str) -> CustomerLoyalty | None:
        """Move a linked record to the account's new email.

        The record stays on the old email when another record already
        holds the new one; lookups by ``customer_id`` still find it.
        """
        record = self.gateway.loyalty.find_first(customer_id=customer_id)
        email = normalize_email(email)
        if record is None or record.customer_email == email:
            return record
        if self.gateway.loyalty.count(customer_email=email):
            current_app.logger.warning(
                "Loyalty record %s kept on %s; %s already has a record",
                record.loyalty_id, record.customer_email, email,
            )
            return record
        return self.gateway.loyalty.update(record, customer_email=email)

    def add_points(self, email: str, points: int, reason: str, description: str | None = None,
                   booking_id: int | None = None, create: bool = False, name: str | None = None,
                   phone: str | None = None) -> CustomerLoyalty:
        try:
            points = int(points)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                "Points must be a number",
                errors=[{"field": "points", "message": "must be a number"}],
            ) from exc
        if points < 0:
            raise ValidationError(
                "Points must be non-negative",
                errors=[{"field": "points", "message": "must be non-negative"}],
            )

        if create:
            record = self.ensure_customer_record(email, name, phone)
        else:
            record = self.get_record(email)
            if record is None:
                raise NotFoundError("Customer not found in loyalty program")

        self.gateway.loyalty.increment(record.loyalty_id, total_points=points, lifetime_points=points)
        self.gateway.loyalty_transactions.create(
            loyalty_id=record.loyalty_id,
            points=points,
            kind="earned",
            source=reason if reason in LOYALTY_SOURCES else "other",
            booking_id=booking_id,
            description=description or f"Earned {points} points",
        )
        return record

    def redeem(self, email: str, booking_id: int | None = None) -> dict[str, object]:
        program = self.active_program()
        if program is None:
            raise NoActiveProgramError()

        record = self.get_record(email)
        if record is None:
            raise NotFoundError("Customer not found in loyalty program")

        threshold = program.reward_threshold
        insufficient = InsufficientPointsError(
            "Insufficient points for redemption",
            details={"current_points": record.total_points, "required_points": threshold},
        )
        if record.total_points < threshold:
            raise insufficient

        redeemed = self.gateway.loyalty.decrement(
            record.loyalty_id,
            guard=CustomerLoyalty.total_points >= threshold,
            total_points=threshold,
        )
        if not redeemed:
            raise insufficient

        self.gateway.loyalty.increment(record.loyalty_id, rewards_redeemed=1, points_redeemed=threshold)
        self.gateway.loyalty_transactions.create(
            loyalty_id=record.loyalty_id,
            points=-threshold,
            kind="redeemed",
            source="reward",
            booking_id=booking_id,
            description=f"Redeemed {threshold} points for ${program.reward_amount:.2f} discount",
        )
        return {"reward_amount": program.reward_amount, "remaining_points": record.total_points}

    def history(self, email: str) -> list:
        record = self.get_record(email)
        if record is None:
            raise NotFoundError("Customer not found in loyalty program")
        return list(record.transactions)

    @staticmethod
    def birthday_eligible(customer, program: LoyaltyProgram | None, today: date) -> dict[str, object]:
        """Check whether ``today`` is within the program's window around the birthday.

        The distance is measured against the birthday in the previous, current
        and next year so windows wrap across New Year. February 29 birthdays
        fall on February 28 in common years.
        """
        date_of_birth = getattr(customer, "date_of_birth", None)
        if program is None or date_of_birth is None:
            return {"eligible": False, "days_until_birthday": None, "discount_rate": 0}

        distance = min(
            abs((_birthday_in_year(date_of_birth, year) - today).days)
            for year in (today.year - 1, today.year, today.year + 1)
        )
        eligible = distance <= program.birthday_discount_days
        return {
            "eligible": eligible,
            "days_until_birthday": distance,
            "discount_rate": program.birthday_discount_rate if eligible else 0,
        }

    # -- booking side effects ---------------------------------------------

    def enroll_on_booking(self, booking) -> None:
        """Create the loyalty record for a new booking's contact when a program runs."""
        try:
            if self.active_program() is None:
                return
            self.ensure_customer_record(
                booking.customer_email,
                booking.customer_name,
                booking.customer_phone,
                customer_id=booking.customer_id,
            )
            self.gateway.commit()
        except (SQLAlchemyError, SalonError) as exc:
            self.gateway.rollback()
            current_app.logger.warning("Loyalty enrollment failed for booking %s: %s", booking.booking_id, exc)

    def award_booking_completion(self, booking) -> None:
        """Grant the per-booking points once a booking is completed.

        Runs after the status change has been committed; errors are logged
        and discarded.
        """
        try:
            program = self.active_program()
            if program is None:
                return
            record = self.ensure_customer_record(
                booking.customer_email,
                booking.customer_name,
                booking.customer_phone,
                customer_id=booking.customer_id,
            )
            self.add_points(
                record.customer_email,
                program.points_per_booking,
                "booking",
                description=f"Completed booking #{booking.booking_id}",
                booking_id=booking.booking_id,
            )
            self.gateway.commit()
        except (SQLAlchemyError, SalonError) as exc:
            self.gateway.rollback()
            current_app.logger.exception(
                "Failed to award loyalty points for booking %s", booking.booking_id, exc_info=exc
            )


def points_to_next_reward(record: CustomerLoyalty, program: LoyaltyProgram | None) -> int | None:
    if program is None:
        return None
    return max(0, program.reward_threshold - record.total_points)
