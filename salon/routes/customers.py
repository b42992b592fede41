"""Registered customer accounts and their self-service endpoints."""
from __future__ import annotations

from datetime import date

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from ..auth import customer_required, staff_required
from ..availability import parse_date
from ..extensions import db
from ..gateway import get_gateway
from ..loyalty import LoyaltyLedger, points_to_next_reward
from ..models import Booking, Customer
from ..tokens import issue_customer_token
from . import database_error, get_payload, pagination_meta, parse_pagination

bp = Blueprint("customers", __name__)

CUSTOMER_SORT_FIELDS = {
    "created_at": Customer.created_at,
    "name": Customer.name,
    "email": Customer.email,
}


def _customer_payload(customer: Customer) -> dict[str, object]:
    data = customer.to_dict()
    loyalty = customer.loyalty
    data["loyalty"] = (
        {"total_points": loyalty.total_points, "lifetime_points": loyalty.lifetime_points}
        if loyalty is not None
        else None
    )
    return data


@bp.get("")
@staff_required
def list_customers() -> tuple[dict[str, object], int]:
    """List customers with search, sorting and pagination (staff only).
    ---
    tags:
      - Customers
    security:
      - Bearer: []
    parameters:
      - name: search
        in: query
        type: string
        description: Case-insensitive match on name, email or phone
      - name: sort_by
        in: query
        type: string
        enum: [created_at, name, email]
        default: created_at
      - name: sort_order
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
        description: Customers with pagination
      400:
        description: Invalid parameters
    """
    page, limit = parse_pagination()
    search = (request.args.get("search") or "").strip()
    sort_column = CUSTOMER_SORT_FIELDS.get(request.args.get("sort_by", "created_at"), Customer.created_at)
    descending = request.args.get("sort_order", "desc").lower() != "asc"

    query = Customer.query
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Customer.name.ilike(pattern),
            Customer.email.ilike(pattern),
            Customer.phone.ilike(pattern),
        ))

    total = query.count()
    customers = (
        query.order_by(sort_column.desc() if descending else sort_column.asc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return jsonify({
        "customers": [_customer_payload(customer) for customer in customers],
        "pagination": pagination_meta(page, limit, total),
    }), 200


@bp.post("/register")
def register_customer() -> tuple[dict[str, object], int]:
    """Create a customer account and its loyalty record.
    ---
    tags:
      - Customers
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            password:
              type: string
            phone:
              type: string
            date_of_birth:
              type: string
              format: date
          required:
            - name
            - email
            - password
    responses:
      201:
        description: Customer registered, returns a 7-day token
      400:
        description: Validation failed
      409:
        description: Email already registered
    """
    payload = get_payload()
    name = str(payload.get("name") or "").strip()
    email = str(payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    phone = str(payload.get("phone") or "").strip() or None

    errors = []
    if not name:
        errors.append({"field": "name", "message": "Name is required"})
    if not email or "@" not in email:
        errors.append({"field": "email", "message": "Please provide a valid email"})
    if len(password) < 6:
        errors.append({"field": "password", "message": "Password must be at least 6 characters"})
    date_of_birth = None
    if payload.get("date_of_birth"):
        date_of_birth = parse_date(payload["date_of_birth"], "date_of_birth")
    if errors:
        return jsonify({"error": "invalid_payload", "message": "Validation failed", "errors": errors}), 400

    if Customer.query.filter_by(email=email).first():
        return jsonify({"error": "conflict", "message": "Customer with this email already exists"}), 409

    gateway = get_gateway()
    try:
        customer = gateway.customers.create(
            name=name,
            email=email,
            password_hash=generate_password_hash(password),
            phone=phone,
            date_of_birth=date_of_birth,
        )
        LoyaltyLedger(gateway).ensure_customer_record(email, name, phone, customer_id=customer.customer_id)
        gateway.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to register customer")

    current_app.logger.info("Registered customer %s", customer.customer_id)
    return jsonify({
        "message": "Customer registered successfully",
        "customer": _customer_payload(customer),
        "token": issue_customer_token(customer),
    }), 201


@bp.post("/login")
def login_customer() -> tuple[dict[str, object], int]:
    """Authenticate a customer by email and password.
    ---
    tags:
      - Customers
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Login successful
      400:
        description: Missing credentials
      401:
        description: Invalid email or password
    """
    payload = get_payload()
    email = str(payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return jsonify({"error": "invalid_payload", "message": "email and password are required"}), 400

    customer = Customer.query.filter_by(email=email).first()
    if customer is None or not check_password_hash(customer.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "Invalid email or password"}), 401
    if not customer.is_active:
        return jsonify({"error": "unauthorized", "message": "Account is inactive"}), 401

    return jsonify({
        "message": "Login successful",
        "customer": _customer_payload(customer),
        "token": issue_customer_token(customer),
    }), 200


@bp.get("/profile")
@customer_required
def get_profile() -> tuple[dict[str, object], int]:
    """Return the signed-in customer's profile.
    ---
    tags:
      - Customers
    security:
      - Bearer: []
    responses:
      200:
        description: Profile with loyalty summary
      401:
        description: Missing or invalid customer token
    """
    return jsonify({"customer": _customer_payload(g.account)}), 200


@bp.put("/profile")
@customer_required
def update_profile() -> tuple[dict[str, object], int]:
    """Update the signed-in customer's profile.
    ---
    tags:
      - Customers
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            phone:
              type: string
            date_of_birth:
              type: string
              format: date
            address:
              type: string
    responses:
      200:
        description: Updated profile
      400:
        description: Validation failed
      409:
        description: Email already in use
    """
    customer: Customer = g.account
    payload = get_payload()

    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            return jsonify({"error": "invalid_payload", "message": "Name cannot be empty"}), 400
        customer.name = name
    if payload.get("email"):
        email = str(payload["email"]).strip().lower()
        if "@" not in email:
            return jsonify({"error": "invalid_payload", "message": "Please include a valid email"}), 400
        clash = Customer.query.filter(Customer.email == email, Customer.customer_id != customer.customer_id).first()
        if clash:
            return jsonify({"error": "conflict", "message": "Email already exists"}), 409
        customer.email = email
    if "phone" in payload:
        customer.phone = str(payload.get("phone") or "").strip() or None
    if payload.get("date_of_birth"):
        customer.date_of_birth = parse_date(payload["date_of_birth"], "date_of_birth")
    if "address" in payload:
        customer.address = str(payload.get("address") or "").strip() or None

    try:
        LoyaltyLedger(get_gateway()).change_email(customer.customer_id, customer.email)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to update customer profile")

    return jsonify({"customer": _customer_payload(customer)}), 200


@bp.get("/bookings")
@customer_required
def customer_bookings() -> tuple[dict[str, object], int]:
    """List the signed-in customer's bookings, newest date first.
    ---
    tags:
      - Customers
    security:
      - Bearer: []
    responses:
      200:
        description: Bookings linked by account or email
    """
    customer: Customer = g.account
    bookings = (
        Booking.query.filter(or_(
            Booking.customer_id == customer.customer_id,
            Booking.customer_email == customer.email,
        ))
        .order_by(Booking.booking_date.desc(), Booking.booking_time.desc())
        .all()
    )
    return jsonify({"bookings": [booking.to_dict() for booking in bookings]}), 200


@bp.get("/loyalty")
@customer_required
def customer_loyalty() -> tuple[dict[str, object], int]:
    """Return the customer's loyalty balance, creating the record on first access.
    ---
    tags:
      - Customers
    security:
      - Bearer: []
    responses:
      200:
        description: Loyalty record and active program
    """
    customer: Customer = g.account
    gateway = get_gateway()
    ledger = LoyaltyLedger(gateway)
    try:
        record = ledger.ensure_customer_record(
            customer.email, customer.name, customer.phone, customer_id=customer.customer_id
        )
        gateway.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to load customer loyalty")

    program = ledger.active_program()
    return jsonify({
        "loyalty": record.to_dict(),
        "program": program.to_dict() if program else None,
        "points_to_next_reward": points_to_next_reward(record, program),
    }), 200


@bp.get("/birthday-discount")
@customer_required
def birthday_discount() -> tuple[dict[str, object], int]:
    """Report whether today falls inside the customer's birthday discount window.
    ---
    tags:
      - Customers
    security:
      - Bearer: []
    responses:
      200:
        description: Eligibility, distance in days and discount rate
    """
    ledger = LoyaltyLedger(get_gateway())
    result = ledger.birthday_eligible(g.account, ledger.active_program(), date.today())
    return jsonify(result), 200
