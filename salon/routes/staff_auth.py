"""Staff sign-in and password management."""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from flask import Blueprint, current_app, g, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from ..auth import authenticate_request
from ..extensions import db
from ..models import Staff, utc_now
from ..notifications import get_email_sender
from ..tokens import STAFF, issue_staff_token
from . import database_error, get_payload

bp = Blueprint("staff_auth", __name__)

MIN_PASSWORD_LENGTH = 6


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _staff_summary(staff: Staff) -> dict[str, object]:
    return {"id": staff.staff_id, "name": staff.name, "email": staff.email, "role": staff.role}


@bp.post("/login")
def staff_login() -> tuple[dict[str, object], int]:
    """Authenticate a staff member by email or name.
    ---
    tags:
      - Staff Auth
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            identifier:
              type: string
              description: Email address or display name
            password:
              type: string
          required:
            - identifier
            - password
    responses:
      200:
        description: Login successful, returns a staff token
      400:
        description: Missing credentials
      401:
        description: Invalid credentials or inactive account
    """
    payload = get_payload()
    identifier = str(payload.get("identifier") or payload.get("email") or "").strip()
    password = payload.get("password") or ""

    if not identifier or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "identifier and password are required"}),
            400,
        )

    if "@" in identifier:
        staff = Staff.query.filter_by(email=identifier.lower()).first()
    else:
        staff = Staff.query.filter_by(name=identifier).first()

    if staff is None or not check_password_hash(staff.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "Invalid credentials"}), 401
    if not staff.is_active:
        return jsonify({"error": "unauthorized", "message": "Account is inactive"}), 401

    current_app.logger.info("Staff %s signed in", staff.staff_id)
    return jsonify({
        "message": "Login successful",
        "token": issue_staff_token(staff),
        "staff": _staff_summary(staff),
    }), 200


@bp.put("/change-password")
def change_password() -> tuple[dict[str, object], int]:
    """Change the signed-in staff member's password and issue a fresh token.
    ---
    tags:
      - Staff Auth
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            current_password:
              type: string
            new_password:
              type: string
    responses:
      200:
        description: Password changed
      400:
        description: Missing fields or wrong current password
      401:
        description: Missing or invalid staff token
    """
    authenticate_request((STAFF,))
    staff: Staff = g.account

    payload = get_payload()
    current_password = payload.get("current_password") or payload.get("currentPassword") or ""
    new_password = payload.get("new_password") or payload.get("newPassword") or ""

    if not current_password or not new_password:
        return (
            jsonify({"error": "invalid_payload", "message": "Current and new passwords are required"}),
            400,
        )
    if len(new_password) < MIN_PASSWORD_LENGTH:
        return (
            jsonify({
                "error": "invalid_payload",
                "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            }),
            400,
        )
    if not check_password_hash(staff.password_hash, current_password):
        return jsonify({"error": "invalid_payload", "message": "Current password is incorrect"}), 400

    try:
        staff.password_hash = generate_password_hash(new_password)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to change staff password")

    return jsonify({
        "message": "Password changed successfully",
        "token": issue_staff_token(staff),
        "staff": _staff_summary(staff),
    }), 200


@bp.post("/forgot-password")
def forgot_password() -> tuple[dict[str, object], int]:
    """Email a one-hour password reset link.
    ---
    tags:
      - Staff Auth
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
    responses:
      200:
        description: Same response whether or not the account exists
      400:
        description: Invalid email
    """
    payload = get_payload()
    email = str(payload.get("email") or "").strip().lower()
    if not email or "@" not in email:
        return jsonify({"error": "invalid_payload", "message": "Valid email is required"}), 400

    response = {"message": "If an account exists with this email, a password reset link has been sent"}

    staff = Staff.query.filter_by(email=email).first()
    if staff is None:
        return jsonify(response), 200

    ttl = current_app.config.get("PASSWORD_RESET_TTL_SECONDS", 3600)
    try:
        staff.reset_token = secrets.token_hex(32)
        staff.reset_token_expiry = utc_now() + timedelta(seconds=ttl)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to store password reset token")

    reset_url = (
        f"{current_app.config['CLIENT_URL']}/reset-password"
        f"?token={staff.reset_token}&id={staff.staff_id}"
    )
    get_email_sender().send("password_reset", staff.email, {"reset_url": reset_url})
    return jsonify(response), 200


@bp.post("/reset-password")
def reset_password() -> tuple[dict[str, object], int]:
    """Set a new password using an emailed reset token.
    ---
    tags:
      - Staff Auth
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            token:
              type: string
            staff_id:
              type: integer
            new_password:
              type: string
    responses:
      200:
        description: Password reset
      400:
        description: Invalid or expired token
    """
    payload = get_payload()
    token = str(payload.get("token") or "")
    staff_id = payload.get("staff_id") or payload.get("staffId")
    new_password = payload.get("new_password") or payload.get("newPassword") or ""

    errors = []
    if not token:
        errors.append({"field": "token", "message": "Token is required"})
    if not staff_id:
        errors.append({"field": "staff_id", "message": "Staff ID is required"})
    if len(new_password) < MIN_PASSWORD_LENGTH:
        errors.append({
            "field": "new_password",
            "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        })
    if errors:
        return jsonify({"error": "invalid_payload", "message": "Validation failed", "errors": errors}), 400

    try:
        staff = db.session.get(Staff, int(staff_id))
    except (TypeError, ValueError):
        staff = None

    expiry = _as_utc(staff.reset_token_expiry) if staff else None
    if (
        staff is None
        or not staff.reset_token
        or not secrets.compare_digest(staff.reset_token, token)
        or expiry is None
        or expiry < utc_now()
    ):
        return jsonify({"error": "invalid_payload", "message": "Invalid or expired reset token"}), 400

    try:
        staff.password_hash = generate_password_hash(new_password)
        staff.reset_token = None
        staff.reset_token_expiry = None
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to reset staff password")

    return jsonify({"message": "Password has been reset successfully"}), 200
