"""Event tracking and dashboard aggregates."""
from __future__ import annotations

from datetime import timedelta

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..auth import staff_required
from ..extensions import db
from ..models import AnalyticsEvent, Booking, Feedback, utc_now

bp = Blueprint("analytics", __name__)

MAX_PERIOD_DAYS = 365


def request_metadata(include_referrer: bool = False) -> dict[str, object]:
    metadata: dict[str, object] = {
        "user_agent": request.headers.get("User-Agent"),
        "ip_address": request.remote_addr,
    }
    if include_referrer:
        metadata["referrer"] = request.headers.get("Referer")
    return metadata


def record_event(event_type: str, metadata: dict[str, object] | None = None,
                 booking_id: int | None = None, feedback_id: int | None = None) -> AnalyticsEvent | None:
    """Persist a tracking event in its own commit; failures are logged, never raised."""
    try:
        event = AnalyticsEvent(
            type=event_type,
            event_metadata=metadata or {},
            booking_id=booking_id,
            feedback_id=feedback_id,
        )
        db.session.add(event)
        db.session.commit()
        return event
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to record %s event", event_type, exc_info=exc)
        return None


def _period_start():
    try:
        period = int(request.args.get("period", 30))
    except (TypeError, ValueError):
        period = 30
    period = min(MAX_PERIOD_DAYS, max(1, period))
    return period, utc_now() - timedelta(days=period)


def _count_events(event_type: str, since) -> int:
    return AnalyticsEvent.query.filter(
        AnalyticsEvent.type == event_type,
        AnalyticsEvent.created_at >= since,
    ).count()


@bp.get("/dashboard")
@staff_required
def dashboard() -> tuple[dict[str, object], int]:
    """Summary counts, booking status breakdown and daily event series.
    ---
    tags:
      - Analytics
    security:
      - Bearer: []
    parameters:
      - name: period
        in: query
        type: integer
        default: 30
        description: Look-back window in days
    responses:
      200:
        description: Dashboard data
    """
    period, since = _period_start()

    bookings_by_status = dict(
        db.session.query(Booking.status, func.count(Booking.booking_id))
        .filter(Booking.created_at >= since)
        .group_by(Booking.status)
        .all()
    )
    feedback_count, average_rating = (
        db.session.query(func.count(Feedback.feedback_id), func.avg(Feedback.rating))
        .filter(Feedback.created_at >= since)
        .one()
    )

    day = func.date(AnalyticsEvent.created_at)
    daily_rows = (
        db.session.query(day, AnalyticsEvent.type, func.count(AnalyticsEvent.event_id))
        .filter(AnalyticsEvent.created_at >= since)
        .group_by(day, AnalyticsEvent.type)
        .order_by(day)
        .all()
    )

    return jsonify({
        "period": period,
        "summary": {
            "qr_scans": _count_events("qr_scan", since),
            "review_clicks": _count_events("google_review_click", since),
            "bookings_count": sum(bookings_by_status.values()),
            "feedback_count": feedback_count,
            "average_rating": round(float(average_rating), 2) if average_rating is not None else 0,
        },
        "bookings_by_status": bookings_by_status,
        "daily_analytics": [
            {"date": str(event_day), "type": event_type, "count": count}
            for event_day, event_type, count in daily_rows
        ],
    }), 200


@bp.get("/funnel")
@staff_required
def funnel() -> tuple[dict[str, object], int]:
    """Scan to review, booking and feedback conversion rates.
    ---
    tags:
      - Analytics
    security:
      - Bearer: []
    parameters:
      - name: period
        in: query
        type: integer
        default: 30
    responses:
      200:
        description: Funnel counts and percentages
    """
    period, since = _period_start()
    qr_scans = _count_events("qr_scan", since)
    review_clicks = _count_events("google_review_click", since)
    bookings = _count_events("booking_created", since)
    feedback = _count_events("feedback_submitted", since)

    def rate(count: int) -> float:
        return round(count / qr_scans * 100, 2) if qr_scans else 0

    return jsonify({
        "period": period,
        "funnel": {
            "qr_scans": qr_scans,
            "review_clicks": review_clicks,
            "bookings": bookings,
            "feedback": feedback,
        },
        "conversion_rates": {
            "scan_to_review": rate(review_clicks),
            "scan_to_booking": rate(bookings),
            "scan_to_feedback": rate(feedback),
        },
    }), 200
