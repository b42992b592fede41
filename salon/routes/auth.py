"""Legacy back-office accounts: username/password and Google sign-in."""
from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from ..auth import exchange_oauth_profile, user_required, verify_google_id_token
from ..extensions import db
from ..gateway import get_gateway
from ..models import User
from ..tokens import issue_user_token
from . import database_error, get_payload

bp = Blueprint("auth", __name__)


@bp.post("/register")
def register_user() -> tuple[dict[str, object], int]:
    """Register a back-office user. New accounts always get the staff role.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            username:
              type: string
            email:
              type: string
            password:
              type: string
            name:
              type: string
          required:
            - username
            - email
            - password
            - name
    responses:
      201:
        description: User registered, returns a token
      400:
        description: Invalid payload
      409:
        description: Username or email already in use
    """
    payload = get_payload()
    username = str(payload.get("username") or "").strip()
    email = str(payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    name = str(payload.get("name") or "").strip()

    if not username or not email or not password or not name:
        return (
            jsonify({"error": "invalid_payload", "message": "username, email, password and name are required"}),
            400,
        )
    if "@" not in email:
        return jsonify({"error": "invalid_payload", "message": "Valid email is required"}), 400
    if len(password) < 6:
        return jsonify({"error": "invalid_payload", "message": "Password must be at least 6 characters"}), 400

    if User.query.filter(or_(User.email == email, User.username == username)).first():
        return jsonify({"error": "conflict", "message": "User already exists"}), 409

    try:
        user = User(
            username=username,
            email=email,
            name=name,
            password_hash=generate_password_hash(password),
            role="staff",
        )
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to register user")

    return jsonify({"token": issue_user_token(user), "user": user.to_dict_basic()}), 201


@bp.post("/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate by username (or email) and password.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            username:
              type: string
            password:
              type: string
    responses:
      200:
        description: Login successful
      400:
        description: Missing credentials
      401:
        description: Invalid credentials
    """
    payload = get_payload()
    username = str(payload.get("username") or "").strip()
    password = payload.get("password") or ""

    if not username or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "Username and password are required"}),
            400,
        )

    user = User.query.filter(or_(User.username == username, User.email == username.lower())).first()
    if user is None or not user.password_hash or not check_password_hash(user.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "Invalid credentials"}), 401
    if not user.is_active:
        return jsonify({"error": "forbidden", "message": "Your account has been deactivated"}), 403

    return jsonify({"token": issue_user_token(user), "user": user.to_dict_basic()}), 200


@bp.get("/me")
@user_required
def me() -> tuple[dict[str, object], int]:
    """Return the signed-in user.
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    responses:
      200:
        description: Current user
      401:
        description: Missing or invalid token
    """
    return jsonify({"user": g.account.to_dict_basic()}), 200


@bp.post("/google-token")
def google_token_login() -> tuple[dict[str, object], int]:
    """Exchange a Google ID token for a session token.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            token:
              type: string
              description: Google ID token from the client-side sign-in
    responses:
      200:
        description: Signed in, returns token and user
      400:
        description: Token missing
      401:
        description: Google rejected the token
      403:
        description: Account deactivated
    """
    payload = get_payload()
    id_token = payload.get("token")
    if not id_token:
        return jsonify({"error": "invalid_payload", "message": "Token is required"}), 400

    profile = verify_google_id_token(id_token)
    gateway = get_gateway()
    try:
        principal = exchange_oauth_profile(gateway, profile)
        gateway.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to sign in with Google")

    user = gateway.users.find_unique(principal.principal_id)
    current_app.logger.info("User %s signed in with Google", user.user_id)
    return jsonify({"token": issue_user_token(user), "user": user.to_dict_basic()}), 200


@bp.post("/link-google")
@user_required
def link_google() -> tuple[dict[str, object], int]:
    """Attach a Google account to the signed-in user.
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            token:
              type: string
              description: Google ID token
    responses:
      200:
        description: Google account linked
      400:
        description: Missing token
      409:
        description: Google account already linked to another user
    """
    payload = get_payload()
    id_token = payload.get("token")
    if not id_token:
        return jsonify({"error": "invalid_payload", "message": "Google token is required"}), 400

    profile = verify_google_id_token(id_token)
    user: User = g.account

    existing = User.query.filter(User.google_id == profile["sub"], User.user_id != user.user_id).first()
    if existing is not None:
        return (
            jsonify({"error": "conflict", "message": "This Google account is already linked to another user"}),
            409,
        )

    try:
        user.google_id = profile["sub"]
        user.google_profile = {"name": profile.get("name"), "email": profile.get("email")}
        if profile.get("picture"):
            user.avatar = profile["picture"]
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to link Google account")

    return jsonify({"message": "Google account linked successfully", "user": user.to_dict_basic()}), 200


@bp.post("/unlink-google")
@user_required
def unlink_google() -> tuple[dict[str, object], int]:
    """Detach the Google account; requires a password to remain signed-in capable.
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    responses:
      200:
        description: Google account unlinked
      400:
        description: No password set on the account
    """
    user: User = g.account
    if not user.password_hash:
        return (
            jsonify({
                "error": "invalid_payload",
                "message": "Cannot unlink Google account without setting a password first",
            }),
            400,
        )

    try:
        user.google_id = None
        user.google_profile = None
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to unlink Google account")

    return jsonify({"message": "Google account unlinked successfully", "user": user.to_dict_basic()}), 200
