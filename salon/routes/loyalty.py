"""Loyalty program settings, balances, accrual and redemption."""
from __future__ import annotations

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..auth import admin_required, authenticate_request, staff_required
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..extensions import db
from ..gateway import get_gateway
from ..loyalty import LoyaltyLedger, normalize_email, points_to_next_reward
from ..models import CustomerLoyalty, LoyaltyProgram
from ..tokens import CUSTOMER, STAFF, USER
from . import database_error, get_payload, optional_int, pagination_meta, parse_pagination
from .catalog import to_cents

bp = Blueprint("loyalty", __name__)

LOYALTY_SORT_FIELDS = {
    "points": CustomerLoyalty.total_points,
    "lifetime_points": CustomerLoyalty.lifetime_points,
    "name": CustomerLoyalty.customer_name,
    "created_at": CustomerLoyalty.created_at,
}

PROGRAM_INT_FIELDS = ("points_per_booking", "points_per_dollar", "reward_threshold", "birthday_discount_days")


def _non_negative_int(payload: dict[str, object], field: str) -> int:
    try:
        value = int(payload[field])
    except (TypeError, ValueError) as exc:
        raise ValidationError.for_fields([{"field": field, "message": "must be a number"}]) from exc
    if value < 0:
        raise ValidationError.for_fields([{"field": field, "message": "must not be negative"}])
    return value


@bp.get("/program")
def get_program() -> tuple[dict[str, object], int]:
    """Return the active loyalty program.
    ---
    tags:
      - Loyalty
    responses:
      200:
        description: Active program
      404:
        description: No active loyalty program found
    """
    program = LoyaltyLedger(get_gateway()).active_program()
    if program is None:
        return jsonify({"error": "no_active_program", "message": "No active loyalty program found"}), 404
    return jsonify({"program": program.to_dict()}), 200


@bp.post("/program")
@admin_required
def save_program() -> tuple[dict[str, object], int]:
    """Create or update the loyalty program (admin only).
    Saving an active program deactivates every other program.
    ---
    tags:
      - Loyalty
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            description:
              type: string
            points_per_booking:
              type: integer
            points_per_dollar:
              type: integer
            reward_threshold:
              type: integer
            reward_amount:
              type: number
            birthday_discount_rate:
              type: number
            birthday_discount_days:
              type: integer
            is_active:
              type: boolean
          required:
            - name
            - points_per_booking
            - points_per_dollar
            - reward_threshold
            - reward_amount
    responses:
      200:
        description: Program saved
      400:
        description: Validation failed
    """
    payload = get_payload()
    missing = [
        {"field": field, "message": f"{field} is required"}
        for field in ("name", "points_per_booking", "points_per_dollar", "reward_threshold", "reward_amount")
        if payload.get(field) in (None, "")
    ]
    if missing:
        raise ValidationError.for_fields(missing)

    values: dict[str, object] = {
        "name": str(payload["name"]).strip(),
        "description": payload.get("description"),
        "reward_amount_cents": to_cents(payload["reward_amount"], "reward_amount"),
    }
    for field in PROGRAM_INT_FIELDS:
        if payload.get(field) not in (None, ""):
            values[field] = _non_negative_int(payload, field)
    if values.get("reward_threshold") == 0:
        raise ValidationError.for_fields([{"field": "reward_threshold", "message": "must be positive"}])
    if payload.get("birthday_discount_rate") not in (None, ""):
        try:
            rate = float(payload["birthday_discount_rate"])
        except (TypeError, ValueError) as exc:
            raise ValidationError.for_fields([
                {"field": "birthday_discount_rate", "message": "must be a number"}
            ]) from exc
        if not 0 <= rate <= 100:
            raise ValidationError.for_fields([
                {"field": "birthday_discount_rate", "message": "must be between 0 and 100"}
            ])
        values["birthday_discount_rate"] = rate
    is_active = bool(payload.get("is_active", True))

    try:
        program = (
            LoyaltyProgram.query
            .order_by(LoyaltyProgram.is_active.desc(), LoyaltyProgram.updated_at.desc())
            .first()
        )
        if program is None:
            program = LoyaltyProgram(**values)
            db.session.add(program)
        else:
            for field, value in values.items():
                setattr(program, field, value)
        program.is_active = is_active
        db.session.flush()
        if is_active:
            LoyaltyProgram.query.filter(
                LoyaltyProgram.program_id != program.program_id,
                LoyaltyProgram.is_active.is_(True),
            ).update({LoyaltyProgram.is_active: False}, synchronize_session="fetch")
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to save loyalty program")

    return jsonify({"message": "Loyalty program settings updated", "program": program.to_dict()}), 200


@bp.get("/customer/<email>")
def get_customer_loyalty(email: str) -> tuple[dict[str, object], int]:
    """Points balance for a customer email.
    ---
    tags:
      - Loyalty
    parameters:
      - name: email
        in: path
        type: string
        required: true
    responses:
      200:
        description: Balance and progress to the next reward
      404:
        description: Customer not found in loyalty program
    """
    ledger = LoyaltyLedger(get_gateway())
    record = ledger.get_record(email)
    if record is None:
        return jsonify({"error": "not_found", "message": "Customer not found in loyalty program"}), 404

    program = ledger.active_program()
    return jsonify({
        "customer_email": record.customer_email,
        "customer_name": record.customer_name,
        "points": record.total_points,
        "lifetime_points": record.lifetime_points,
        "rewards_redeemed": record.rewards_redeemed,
        "points_redeemed": record.points_redeemed,
        "points_to_next_reward": points_to_next_reward(record, program),
        "reward_amount": program.reward_amount if program else None,
    }), 200


@bp.get("/customer/<email>/history")
@staff_required
def get_customer_history(email: str) -> tuple[dict[str, object], int]:
    """Points history for a customer, newest first (staff only).
    ---
    tags:
      - Loyalty
    security:
      - Bearer: []
    parameters:
      - name: email
        in: path
        type: string
        required: true
    responses:
      200:
        description: Transactions
      404:
        description: Customer not found in loyalty program
    """
    ledger = LoyaltyLedger(get_gateway())
    transactions = ledger.history(email)
    record = ledger.get_record(email)
    return jsonify({
        "customer_email": record.customer_email,
        "points": record.total_points,
        "history": [transaction.to_dict() for transaction in transactions],
    }), 200


@bp.post("/customer/<email>/add-points")
@staff_required
def add_points(email: str) -> tuple[dict[str, object], int]:
    """Manually credit points (staff only).
    ---
    tags:
      - Loyalty
    security:
      - Bearer: []
    parameters:
      - name: email
        in: path
        type: string
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            points:
              type: integer
            description:
              type: string
    responses:
      200:
        description: Points added
      400:
        description: Points missing or negative
      404:
        description: Customer not found in loyalty program
    """
    payload = get_payload()
    if payload.get("points") in (None, ""):
        raise ValidationError.for_fields([{"field": "points", "message": "Points must be a number"}])

    gateway = get_gateway()
    ledger = LoyaltyLedger(gateway)
    try:
        record = ledger.add_points(
            email,
            payload["points"],
            "manual",
            description=payload.get("description") or "Manual points adjustment",
        )
        gateway.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to add loyalty points")

    return jsonify({"message": "Points added successfully", "current_points": record.total_points}), 200


@bp.post("/customer/<email>/redeem")
def redeem_points(email: str) -> tuple[dict[str, object], int]:
    """Exchange reward_threshold points for the program's reward amount.
    Staff may redeem for anyone; customers only for their own email.
    ---
    tags:
      - Loyalty
    security:
      - Bearer: []
    parameters:
      - name: email
        in: path
        type: string
        required: true
      - name: body
        in: body
        schema:
          type: object
          properties:
            booking_id:
              type: integer
    responses:
      200:
        description: Reward amount and remaining points
      400:
        description: Insufficient points for redemption
      401:
        description: Not signed in
      403:
        description: Customer redeeming for another email, or a booking owned by someone else
      404:
        description: No active program, customer or booking not found
    """
    principal = authenticate_request((STAFF, USER, CUSTOMER))
    if principal.kind == CUSTOMER and normalize_email(g.account.email) != normalize_email(email):
        raise AuthorizationError("Customers can only redeem their own points")

    booking_id = optional_int(get_payload().get("booking_id"), "booking_id")
    gateway = get_gateway()
    if booking_id is not None:
        booking = gateway.bookings.find_unique(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if normalize_email(booking.customer_email) != normalize_email(email):
            raise AuthorizationError("Booking belongs to another customer")

    try:
        result = LoyaltyLedger(gateway).redeem(email, booking_id=booking_id)
        gateway.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to redeem loyalty points")

    return jsonify({"message": "Points redeemed successfully", **result}), 200


@bp.get("/customers")
@staff_required
def list_loyalty_customers() -> tuple[dict[str, object], int]:
    """List loyalty members with sorting and pagination (staff only).
    ---
    tags:
      - Loyalty
    security:
      - Bearer: []
    parameters:
      - name: sort
        in: query
        type: string
        enum: [points, lifetime_points, name, created_at]
        default: points
      - name: order
        in: query
        type: string
        enum: [asc, desc]
        default: desc
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 10
        maximum: 100
    responses:
      200:
        description: Loyalty members
    """
    page, limit = parse_pagination()
    column = LOYALTY_SORT_FIELDS.get(request.args.get("sort", "points"), CustomerLoyalty.total_points)
    ascending = request.args.get("order", "desc").lower() == "asc"

    query = CustomerLoyalty.query
    total = query.count()
    records = (
        query.order_by(column.asc() if ascending else column.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return jsonify({
        "customers": [record.to_dict() for record in records],
        "pagination": pagination_meta(page, limit, total),
    }), 200


@bp.post("/customers")
def register_loyalty_customer() -> tuple[dict[str, object], int]:
    """Enroll a contact in the loyalty program; idempotent per email.
    ---
    tags:
      - Loyalty
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            name:
              type: string
            phone:
              type: string
          required:
            - email
            - name
    responses:
      201:
        description: Loyalty record created
      200:
        description: Loyalty record already existed
      400:
        description: Validation failed
    """
    payload = get_payload()
    email = normalize_email(payload.get("email"))
    name = str(payload.get("name") or "").strip()
    phone = str(payload.get("phone") or "").strip() or None

    errors = []
    if not email or "@" not in email:
        errors.append({"field": "email", "message": "Valid email is required"})
    if not name:
        errors.append({"field": "name", "message": "Name is required"})
    if errors:
        raise ValidationError.for_fields(errors)

    gateway = get_gateway()
    ledger = LoyaltyLedger(gateway)
    existed = ledger.get_record(email) is not None
    try:
        record = ledger.ensure_customer_record(email, name, phone)
        gateway.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to register loyalty customer")

    return jsonify({"customer": record.to_dict()}), 200 if existed else 201
