"""Customer feedback submission and reporting."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..auth import staff_required
from ..errors import ValidationError
from ..extensions import db
from ..models import Feedback
from . import database_error, get_payload, pagination_meta, parse_pagination
from .analytics import record_event, request_metadata

bp = Blueprint("feedback", __name__)

MAX_COMMENT_LENGTH = 1000


@bp.post("")
def submit_feedback() -> tuple[dict[str, object], int]:
    """Submit a rating with an optional comment.
    Anonymous feedback never stores the reviewer's name or email.
    ---
    tags:
      - Feedback
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            rating:
              type: integer
              minimum: 1
              maximum: 5
            comment:
              type: string
            customer_email:
              type: string
            customer_name:
              type: string
            service:
              type: string
            stylist:
              type: string
            is_anonymous:
              type: boolean
          required:
            - rating
    responses:
      201:
        description: Feedback stored
      400:
        description: Validation failed
    """
    payload = get_payload()
    errors = []

    rating = payload.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, (int, str)):
        rating = None
    try:
        rating = int(rating) if rating is not None else None
    except ValueError:
        rating = None
    if rating is None or not 1 <= rating <= 5:
        errors.append({"field": "rating", "message": "Rating must be between 1 and 5"})

    comment = payload.get("comment")
    comment = str(comment).strip() if comment else None
    if comment and len(comment) > MAX_COMMENT_LENGTH:
        errors.append({"field": "comment", "message": "Comment must be less than 1000 characters"})

    email = str(payload.get("customer_email") or "").strip().lower() or None
    if email and "@" not in email:
        errors.append({"field": "customer_email", "message": "Invalid email"})
    if errors:
        raise ValidationError.for_fields(errors)

    is_anonymous = bool(payload.get("is_anonymous", False))
    feedback = Feedback(
        rating=rating,
        comment=comment,
        customer_email=None if is_anonymous else email,
        customer_name=None if is_anonymous else (str(payload.get("customer_name") or "").strip() or None),
        service=payload.get("service"),
        stylist=payload.get("stylist"),
        is_anonymous=is_anonymous,
    )
    try:
        db.session.add(feedback)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to submit feedback")

    current_app.logger.info("Feedback %s submitted with rating %s", feedback.feedback_id, rating)
    record_event("feedback_submitted", request_metadata(), feedback_id=feedback.feedback_id)

    return jsonify({"message": "Feedback submitted successfully", "feedback_id": feedback.feedback_id}), 201


@bp.get("")
@staff_required
def list_feedback() -> tuple[dict[str, object], int]:
    """List feedback, newest first (staff only).
    ---
    tags:
      - Feedback
    security:
      - Bearer: []
    parameters:
      - name: rating
        in: query
        type: integer
      - name: service
        in: query
        type: string
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
        description: Feedback with pagination
    """
    page, limit = parse_pagination()
    query = Feedback.query

    rating = request.args.get("rating", type=int)
    if rating is not None:
        query = query.filter(Feedback.rating == rating)
    service = request.args.get("service")
    if service:
        query = query.filter(Feedback.service == service)

    total = query.count()
    items = (
        query.order_by(Feedback.created_at.desc(), Feedback.feedback_id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return jsonify({
        "feedback": [item.to_dict() for item in items],
        "pagination": pagination_meta(page, limit, total),
    }), 200


@bp.get("/stats")
@staff_required
def feedback_stats() -> tuple[dict[str, object], int]:
    """Average rating and per-star distribution (staff only).
    ---
    tags:
      - Feedback
    security:
      - Bearer: []
    responses:
      200:
        description: Feedback statistics
    """
    total, average = db.session.query(func.count(Feedback.feedback_id), func.avg(Feedback.rating)).one()
    distribution = {str(star): 0 for star in range(1, 6)}
    for star, count in db.session.query(Feedback.rating, func.count(Feedback.feedback_id)).group_by(Feedback.rating):
        distribution[str(star)] = count

    return jsonify({
        "average_rating": round(float(average), 2) if average is not None else 0,
        "total_feedback": total,
        "rating_distribution": distribution,
    }), 200
