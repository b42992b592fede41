"""Appointment booking, status workflow and slot availability."""
from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..auth import customer_optional, staff_required
from ..availability import (SUNDAY, is_valid_slot, load_active_bookings, parse_date,
                            resolve_availability, resolve_availability_for_date, slot_taken)
from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..gateway import get_gateway
from ..loyalty import LoyaltyLedger
from ..models import ACTIVE_BOOKING_STATUSES, BOOKING_STATUSES, Booking, Staff
from ..notifications import get_email_sender
from ..pricing import normalize_variant_ids, quote
from . import database_error, get_payload, optional_int, pagination_meta, parse_pagination
from .analytics import record_event, request_metadata

bp = Blueprint("bookings", __name__)


@bp.post("")
@customer_optional
def create_booking() -> tuple[dict[str, object], int]:
    """Book a slot. A customer token fills in missing contact details.
    ---
    tags:
      - Bookings
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            customer_name:
              type: string
            customer_email:
              type: string
            customer_phone:
              type: string
            service_id:
              type: integer
            variant_ids:
              type: array
              items:
                type: integer
            staff_id:
              type: integer
            booking_date:
              type: string
              format: date
            booking_time:
              type: string
              example: "10:30"
            notes:
              type: string
          required:
            - service_id
            - booking_date
            - booking_time
    responses:
      201:
        description: Booking created with its quoted price and duration
      400:
        description: Validation failed
      404:
        description: Service or staff member not found
      409:
        description: Time slot already booked
    """
    payload = get_payload()
    customer = g.account

    name = str(payload.get("customer_name") or (customer.name if customer else "")).strip()
    email = str(payload.get("customer_email") or (customer.email if customer else "")).strip().lower()
    phone = str(payload.get("customer_phone") or (customer.phone if customer else "") or "").strip()
    booking_time = str(payload.get("booking_time") or "").strip()

    errors = []
    if not name:
        errors.append({"field": "customer_name", "message": "Customer name is required"})
    if not email or "@" not in email:
        errors.append({"field": "customer_email", "message": "Valid email is required"})
    if not phone:
        errors.append({"field": "customer_phone", "message": "Phone number is required"})
    if payload.get("service_id") in (None, ""):
        errors.append({"field": "service_id", "message": "Service is required"})
    if not payload.get("booking_date"):
        errors.append({"field": "booking_date", "message": "Valid date is required"})
    if not is_valid_slot(booking_time):
        errors.append({"field": "booking_time", "message": "Appointment time must be a valid slot"})
    if errors:
        raise ValidationError.for_fields(errors)

    booking_date = parse_date(payload["booking_date"], "booking_date")
    if booking_date.weekday() == SUNDAY:
        raise ValidationError.for_fields([{"field": "booking_date", "message": "The salon is closed on Sundays"}])

    gateway = get_gateway()
    service_quote = quote(
        gateway,
        optional_int(payload.get("service_id"), "service_id"),
        normalize_variant_ids(payload.get("variant_ids")),
    )

    staff_id = optional_int(payload.get("staff_id"), "staff_id")
    if staff_id is not None:
        staff = db.session.get(Staff, staff_id)
        if staff is None or not staff.is_active:
            return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

    booking = Booking(
        customer_id=customer.customer_id if customer else None,
        customer_name=name,
        customer_email=email,
        customer_phone=phone,
        service_id=service_quote.service.service_id,
        staff_id=staff_id,
        booking_date=booking_date,
        booking_time=booking_time,
        status="pending",
        notes=payload.get("notes"),
        variant_ids=[variant.variant_id for variant in service_quote.variants],
        total_price_cents=service_quote.total_price_cents,
        total_duration=service_quote.total_duration,
    )
    booking.refresh_slot_key()
    slot_key = booking.slot_key
    if slot_taken(gateway, booking_date, booking_time, staff_id):
        raise ConflictError("Time slot already booked")

    try:
        db.session.add(booking)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.info("Slot %s rejected: %s", slot_key, exc.orig)
        raise ConflictError("Time slot already booked") from exc
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to create booking")

    current_app.logger.info("Created booking %s for %s", booking.booking_id, slot_key)

    record_event("booking_created", request_metadata(), booking_id=booking.booking_id)
    LoyaltyLedger(gateway).enroll_on_booking(booking)

    data = booking.to_dict()
    get_email_sender().send("booking_confirmation", booking.customer_email, data)

    return jsonify({"message": "Booking created successfully", "booking": data}), 201


@bp.get("")
@staff_required
def list_bookings() -> tuple[dict[str, object], int]:
    """List bookings with filters. A date range returns every match without pagination.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: status
        in: query
        type: string
        enum: [pending, confirmed, completed, cancelled]
      - name: date
        in: query
        type: string
        format: date
      - name: start_date
        in: query
        type: string
        format: date
      - name: end_date
        in: query
        type: string
        format: date
      - name: staff_id
        in: query
        type: integer
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
        description: Bookings, with pagination unless a range was given
      400:
        description: Invalid filters
    """
    query = Booking.query

    status = request.args.get("status")
    if status:
        if status not in BOOKING_STATUSES:
            return jsonify({"error": "invalid_payload", "message": "Invalid status"}), 400
        query = query.filter(Booking.status == status)

    start = request.args.get("start_date")
    end = request.args.get("end_date")
    use_range = bool(start and end)
    if use_range:
        query = query.filter(
            Booking.booking_date >= parse_date(start, "start_date"),
            Booking.booking_date <= parse_date(end, "end_date"),
        )
    elif request.args.get("date"):
        query = query.filter(Booking.booking_date == parse_date(request.args["date"], "date"))

    staff_id = optional_int(request.args.get("staff_id"), "staff_id")
    if staff_id is not None:
        query = query.filter(Booking.staff_id == staff_id)

    query = query.order_by(Booking.booking_date.asc(), Booking.booking_time.asc())
    total = query.count()

    if use_range:
        bookings = query.all()
        return jsonify({"bookings": [booking.to_dict() for booking in bookings], "total": total}), 200

    page, limit = parse_pagination()
    bookings = query.limit(limit).offset((page - 1) * limit).all()
    return jsonify({
        "bookings": [booking.to_dict() for booking in bookings],
        "pagination": pagination_meta(page, limit, total),
    }), 200


@bp.get("/<int:booking_id>")
@staff_required
def get_booking(booking_id: int) -> tuple[dict[str, object], int]:
    """Get one booking.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: booking_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Booking
      404:
        description: Booking not found
    """
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        return jsonify({"error": "not_found", "message": "Booking not found"}), 404
    return jsonify({"booking": booking.to_dict()}), 200


@bp.patch("/<int:booking_id>/status")
@staff_required
def update_booking_status(booking_id: int) -> tuple[dict[str, object], int]:
    """Move a booking through pending, confirmed, completed or cancelled.
    Completing a booking awards the loyalty program's per-booking points.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: booking_id
        in: path
        type: integer
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [pending, confirmed, completed, cancelled]
    responses:
      200:
        description: Status updated
      400:
        description: Invalid status
      404:
        description: Booking not found
      409:
        description: Reactivating the booking would double-book its slot
    """
    payload = get_payload()
    status = payload.get("status")
    if status not in BOOKING_STATUSES:
        return jsonify({"error": "invalid_payload", "message": "Invalid status"}), 400

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        return jsonify({"error": "not_found", "message": "Booking not found"}), 404

    previous = booking.status
    reactivating = status in ACTIVE_BOOKING_STATUSES and previous not in ACTIVE_BOOKING_STATUSES
    if reactivating and slot_taken(get_gateway(), booking.booking_date, booking.booking_time,
                                   booking.staff_id, exclude_booking_id=booking.booking_id):
        raise ConflictError("Time slot already booked")
    booking.status = status
    booking.refresh_slot_key()

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Time slot already booked") from exc
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to update booking status")

    completed_now = status == "completed" and previous != "completed"
    if completed_now:
        LoyaltyLedger(get_gateway()).award_booking_completion(booking)

    return jsonify({
        "message": "Booking status updated",
        "booking": booking.to_dict(),
        "loyalty_points_added": completed_now,
    }), 200


@bp.get("/availability/<date_str>")
def availability_for_date(date_str: str) -> tuple[dict[str, object], int]:
    """Free slots for one date. Sundays have none.
    ---
    tags:
      - Bookings
    parameters:
      - name: date_str
        in: path
        type: string
        format: date
        required: true
      - name: staff_id
        in: query
        type: integer
    responses:
      200:
        description: Available slot strings in grid order
      400:
        description: Invalid date
    """
    day = parse_date(date_str)
    staff_id = optional_int(request.args.get("staff_id"), "staff_id")
    bookings = load_active_bookings(get_gateway(), day, day, staff_id)
    return jsonify({
        "date": day.isoformat(),
        "available_slots": resolve_availability_for_date(day, bookings, staff_id),
    }), 200


@bp.get("/availability")
def availability_for_range() -> tuple[dict[str, object], int]:
    """Free slots per date for an inclusive range of at most 14 days.
    ---
    tags:
      - Bookings
    parameters:
      - name: start_date
        in: query
        type: string
        format: date
        required: true
      - name: end_date
        in: query
        type: string
        format: date
        required: true
      - name: staff_id
        in: query
        type: integer
    responses:
      200:
        description: Map of ISO date to available slots
      400:
        description: Missing, invalid, reversed or too large range
    """
    start = request.args.get("start_date")
    end = request.args.get("end_date")
    if not start or not end:
        return jsonify({"error": "invalid_payload", "message": "Start date and end date are required"}), 400

    start_date = parse_date(start, "start_date")
    end_date = parse_date(end, "end_date")
    staff_id = optional_int(request.args.get("staff_id"), "staff_id")

    bookings = load_active_bookings(get_gateway(), start_date, end_date, staff_id)
    slots = resolve_availability(start_date, end_date, bookings, staff_id)
    return jsonify({"available_slots": slots}), 200
