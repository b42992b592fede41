"""Transactional email through Resend."""
from __future__ import annotations

from html import escape

import resend
from flask import current_app

BRAND = "Hair Studio"


def _layout(heading: str, body: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; background-color: #f9f9f9;">
      <div style="background-color: #2D1B69; color: white; padding: 20px; text-align: center; border-radius: 10px 10px 0 0;">
        <h1 style="margin: 0;">{BRAND}</h1>
        <p style="margin: 10px 0 0 0;">{heading}</p>
      </div>
      <div style="background-color: white; padding: 30px; border-radius: 0 0 10px 10px;">
        {body}
      </div>
    </div>
    """


def render_booking_confirmation(data: dict[str, object]) -> tuple[str, str]:
    rows = [
        f"<p><strong>Service:</strong> {escape(str(data.get('service_name') or ''))}</p>",
        f"<p><strong>Date:</strong> {escape(str(data.get('booking_date') or ''))}</p>",
        f"<p><strong>Time:</strong> {escape(str(data.get('booking_time') or ''))}</p>",
    ]
    if data.get("staff_name"):
        rows.append(f"<p><strong>Stylist:</strong> {escape(str(data['staff_name']))}</p>")
    if data.get("total_price") is not None:
        rows.append(f"<p><strong>Estimated price:</strong> ${float(data['total_price']):.2f}</p>")
    if data.get("notes"):
        rows.append(f"<p><strong>Notes:</strong> {escape(str(data['notes']))}</p>")

    body = f"""
        <h2 style="color: #2D1B69; margin-top: 0;">Hello {escape(str(data.get('customer_name') or ''))}!</h2>
        <p>Thank you for booking with us. Here are your appointment details:</p>
        <div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
          {''.join(rows)}
        </div>
        <ul>
          <li>Please arrive 10 minutes early for your appointment</li>
          <li>If you need to reschedule, please call us at least 24 hours in advance</li>
        </ul>
        <p style="color: #2D1B69; font-weight: bold;">{BRAND} Team</p>
    """
    return f"Booking Confirmation - {BRAND}", _layout("Booking Confirmation", body)


def render_password_reset(data: dict[str, object]) -> tuple[str, str]:
    reset_url = escape(str(data.get("reset_url") or ""))
    body = f"""
        <h2 style="color: #2D1B69; margin-top: 0;">Reset Your Password</h2>
        <p>We received a request to reset your password. Use the link below to set a new one:</p>
        <p style="text-align: center; margin: 30px 0;">
          <a href="{reset_url}" style="background-color: #2D1B69; color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px;">Reset Password</a>
        </p>
        <p>If you didn't request this, you can ignore this email.</p>
        <p style="font-size: 12px; color: #777;">This link expires in 1 hour.</p>
    """
    return f"Password Reset - {BRAND}", _layout("Password Reset Request", body)


TEMPLATES = {
    "booking_confirmation": render_booking_confirmation,
    "password_reset": render_password_reset,
}


class EmailSender:
    """Render a template and deliver it with Resend; skipped when unconfigured."""

    def __init__(self, api_key: str | None, from_email: str, enabled: bool = True) -> None:
        self.api_key = api_key
        self.from_email = from_email
        self.disabled = not (enabled and api_key)

    def send(self, template_kind: str, recipient: str, data: dict[str, object]) -> dict[str, object]:
        renderer = TEMPLATES.get(template_kind)
        if renderer is None:
            raise ValueError(f"unknown email template: {template_kind}")
        subject, html = renderer(data)

        if self.disabled:
            current_app.logger.info("Email disabled, skipping %s to %s", template_kind, recipient)
            return {"success": False, "skipped": True}

        try:
            resend.api_key = self.api_key
            response = resend.Emails.send({
                "from": self.from_email,
                "to": [recipient],
                "subject": subject,
                "html": html,
            })
        except Exception as exc:  # delivery failures never reach the caller
            current_app.logger.exception("Failed to send %s email to %s", template_kind, recipient, exc_info=exc)
            return {"success": False, "error": str(exc)}

        current_app.logger.info("Sent %s email to %s", template_kind, recipient)
        return {"success": True, "email_id": response.get("id") if isinstance(response, dict) else None}


def get_email_sender() -> EmailSender:
    sender = current_app.extensions.get("email_sender")
    if sender is None:
        config = current_app.config
        sender = EmailSender(
            config.get("RESEND_API_KEY"),
            config.get("RESEND_FROM_EMAIL", "onboarding@resend.dev"),
            enabled=config.get("EMAIL_ENABLED", True),
        )
        current_app.extensions["email_sender"] = sender
    return sender
