"""Staff directory and admin-only staff management."""
from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

from ..auth import admin_required
from ..extensions import db
from ..models import STAFF_ROLES, Booking, Staff
from . import database_error, get_payload

bp = Blueprint("staff", __name__)


@bp.get("")
def list_staff() -> tuple[dict[str, object], int]:
    """List active staff members ordered by name.
    ---
    tags:
      - Staff
    responses:
      200:
        description: Active staff members
    """
    staff = Staff.query.filter_by(is_active=True).order_by(Staff.name.asc()).all()
    return jsonify({"staff": [member.to_dict() for member in staff]}), 200


@bp.get("/<int:staff_id>")
def get_staff(staff_id: int) -> tuple[dict[str, object], int]:
    """Get one staff member.
    ---
    tags:
      - Staff
    parameters:
      - name: staff_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Staff member
      404:
        description: Staff member not found
    """
    staff = db.session.get(Staff, staff_id)
    if staff is None:
        return jsonify({"error": "not_found", "message": "Staff member not found"}), 404
    return jsonify({"staff": staff.to_dict()}), 200


@bp.post("")
@admin_required
def create_staff() -> tuple[dict[str, object], int]:
    """Create a staff member (admin only).
    ---
    tags:
      - Staff
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
            email:
              type: string
            phone:
              type: string
            password:
              type: string
            role:
              type: string
              enum: [admin, staff]
          required:
            - name
            - email
            - password
    responses:
      201:
        description: Staff member created
      400:
        description: Invalid payload
      409:
        description: Email already exists
    """
    payload = get_payload()
    name = str(payload.get("name") or "").strip()
    email = str(payload.get("email") or "").strip().lower()
    phone = str(payload.get("phone") or "").strip() or None
    password = payload.get("password") or ""
    role = str(payload.get("role") or "staff").strip().lower()

    if not name or not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "Please provide name, email, and password"}),
            400,
        )
    if role not in STAFF_ROLES:
        return jsonify({"error": "invalid_payload", "message": "role must be 'admin' or 'staff'"}), 400
    if Staff.query.filter_by(email=email).first():
        return jsonify({"error": "conflict", "message": "Email already exists"}), 409

    try:
        staff = Staff(
            name=name,
            email=email,
            phone=phone,
            password_hash=generate_password_hash(password),
            role=role,
        )
        db.session.add(staff)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to create staff member")

    return jsonify({"staff": staff.to_dict()}), 201


@bp.put("/<int:staff_id>")
@admin_required
def update_staff(staff_id: int) -> tuple[dict[str, object], int]:
    """Update a staff member (admin only). A blank password is ignored.
    ---
    tags:
      - Staff
    security:
      - Bearer: []
    parameters:
      - name: staff_id
        in: path
        type: integer
        required: true
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
            is_active:
              type: boolean
            password:
              type: string
            role:
              type: string
    responses:
      200:
        description: Staff member updated
      404:
        description: Staff member not found
      409:
        description: Email already in use
    """
    staff = db.session.get(Staff, staff_id)
    if staff is None:
        return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

    payload = get_payload()
    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            return jsonify({"error": "invalid_payload", "message": "name cannot be empty"}), 400
        staff.name = name
    if "email" in payload:
        email = str(payload.get("email") or "").strip().lower()
        if not email:
            return jsonify({"error": "invalid_payload", "message": "email cannot be empty"}), 400
        clash = Staff.query.filter(Staff.email == email, Staff.staff_id != staff_id).first()
        if clash:
            return jsonify({"error": "conflict", "message": "Email already exists"}), 409
        staff.email = email
    if "phone" in payload:
        staff.phone = str(payload.get("phone") or "").strip() or None
    if "is_active" in payload:
        staff.is_active = bool(payload["is_active"])
    if "role" in payload:
        role = str(payload.get("role") or "").strip().lower()
        if role not in STAFF_ROLES:
            return jsonify({"error": "invalid_payload", "message": "role must be 'admin' or 'staff'"}), 400
        staff.role = role
    password = payload.get("password")
    if password and str(password).strip():
        staff.password_hash = generate_password_hash(password)

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to update staff member")

    return jsonify({"staff": staff.to_dict()}), 200


@bp.delete("/<int:staff_id>")
@admin_required
def delete_staff(staff_id: int) -> tuple[dict[str, object], int]:
    """Delete a staff member (admin only). Their bookings are kept unassigned.
    ---
    tags:
      - Staff
    security:
      - Bearer: []
    parameters:
      - name: staff_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Staff member deleted
      404:
        description: Staff member not found
    """
    staff = db.session.get(Staff, staff_id)
    if staff is None:
        return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

    try:
        Booking.query.filter_by(staff_id=staff_id).update({Booking.staff_id: None}, synchronize_session="fetch")
        db.session.delete(staff)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to delete staff member")

    return jsonify({"message": "Staff member deleted successfully"}), 200
