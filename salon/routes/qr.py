"""QR code generation and scan/review tracking."""
from __future__ import annotations

import base64
from io import BytesIO

import qrcode
import qrcode.image.svg
from flask import Blueprint, current_app, jsonify

from ..auth import staff_required
from .analytics import record_event, request_metadata

bp = Blueprint("qr", __name__)


def build_qr_data_url(url: str) -> str:
    """Render ``url`` as an SVG QR code and return it as a base64 data URL."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
        image_factory=qrcode.image.svg.SvgPathImage,
    )
    qr.add_data(url)
    qr.make(fit=True)
    buffer = BytesIO()
    qr.make_image().save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


@bp.get("/generate")
@staff_required
def generate_qr() -> tuple[dict[str, object], int]:
    """Generate the in-salon QR code pointing at the scan landing page (staff only).
    ---
    tags:
      - QR
    security:
      - Bearer: []
    responses:
      200:
        description: Data URL of the QR image and the encoded URL
    """
    url = f"{current_app.config['CLIENT_URL'].rstrip('/')}/scan"
    return jsonify({"qr_code": build_qr_data_url(url), "url": url}), 200


@bp.post("/scan")
def track_scan() -> tuple[dict[str, object], int]:
    """Record a QR scan. Tracking failures still answer 200.
    ---
    tags:
      - QR
    responses:
      200:
        description: Whether the scan was recorded
    """
    event = record_event("qr_scan", request_metadata(include_referrer=True))
    if event is None:
        return jsonify({"success": False, "message": "Scan could not be tracked"}), 200
    return jsonify({"success": True, "message": "Scan tracked"}), 200


@bp.post("/google-review-click")
def track_review_click() -> tuple[dict[str, object], int]:
    """Record a click through to the Google review page.
    ---
    tags:
      - QR
    responses:
      200:
        description: Whether the click was recorded
    """
    event = record_event("google_review_click", request_metadata())
    if event is None:
        return jsonify({"success": False, "message": "Click could not be tracked"}), 200
    return jsonify({"success": True, "message": "Review click tracked"}), 200
