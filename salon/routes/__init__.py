"""Blueprint registration and small helpers shared by the route modules."""
from __future__ import annotations

from flask import Blueprint, Flask, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ValidationError
from ..extensions import db

MAX_PAGE_LIMIT = 100


def get_payload() -> dict[str, object]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def parse_pagination(default_limit: int = 10) -> tuple[int, int]:
    """Read ``page``/``limit`` query parameters; limit is capped at 100."""
    try:
        page = max(1, int(request.args.get("page", 1)))
        limit = min(MAX_PAGE_LIMIT, max(1, int(request.args.get("limit", default_limit))))
    except (TypeError, ValueError) as exc:
        raise ValidationError("page and limit must be integers") from exc
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }


def optional_int(value, field: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError.for_fields([{"field": field, "message": "must be an integer"}]) from exc


def require_fields(payload: dict[str, object], *fields: str) -> None:
    """Raise a field-level validation error for every blank required field."""
    missing = [
        {"field": field, "message": f"{field} is required"}
        for field in fields
        if payload.get(field) is None or (isinstance(payload.get(field), str) and not payload[field].strip())
    ]
    if missing:
        raise ValidationError.for_fields(missing)


def database_error(exc: SQLAlchemyError, message: str) -> tuple[dict[str, object], int]:
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"error": "database_error", "message": message}), 500


def register_routes(app: Flask) -> None:
    from .analytics import bp as analytics_bp
    from .auth import bp as auth_bp
    from .bookings import bp as bookings_bp
    from .catalog import bp as catalog_bp
    from .customers import bp as customers_bp
    from .feedback import bp as feedback_bp
    from .loyalty import bp as loyalty_bp
    from .qr import bp as qr_bp
    from .staff import bp as staff_bp
    from .staff_auth import bp as staff_auth_bp

    health_bp = Blueprint("health", __name__)
    health_bp.add_url_rule("/health", view_func=health_check, methods=["GET"])
    health_bp.add_url_rule("/db-health", view_func=database_health, methods=["GET"])

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(staff_auth_bp, url_prefix="/api/staff-auth")
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(staff_bp, url_prefix="/api/staff")
    app.register_blueprint(customers_bp, url_prefix="/api/customers")
    app.register_blueprint(catalog_bp, url_prefix="/api/services")
    app.register_blueprint(bookings_bp, url_prefix="/api/bookings")
    app.register_blueprint(loyalty_bp, url_prefix="/api/loyalty")
    app.register_blueprint(feedback_bp, url_prefix="/api/feedback")
    app.register_blueprint(analytics_bp, url_prefix="/api/analytics")
    app.register_blueprint(qr_bp, url_prefix="/api/qr")


def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
    """
    return jsonify({"status": "ok"}), 200


def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200
