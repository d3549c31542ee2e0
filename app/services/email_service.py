import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.api.schemas.contact import ContactRequest
from app.core.config import settings
from app.models.booking import BookingPublic
from app.services.availability_service import as_utc, get_policy

logger = logging.getLogger(__name__)


def _send_email_sync(to_email: str, subject: str, html_body: str, reply_to: str | None = None) -> None:
    """Send email via SMTP (blocking). Use from background task."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send: %s", subject)
        return
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email], msg.as_string())
        logger.info("Email sent to %s: %s", to_email, subject)
    except Exception as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)


def _html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def format_slot(slot_time: datetime) -> str:
    """e.g. 'Monday, March 10, 2025 at 9:00 AM EDT' in the business timezone."""
    local = as_utc(slot_time).astimezone(get_policy().timezone)
    hour = local.strftime("%I").lstrip("0")
    return f"{local.strftime('%A, %B')} {local.day}, {local.year} at {hour}:{local.strftime('%M %p %Z')}"


def _wrap_html(title: str, body_html: str) -> str:
    logo_html = ""
    if settings.email_logo_url:
        logo_html = f'<img src="{settings.email_logo_url}" alt="{_html_escape(settings.site_name)}" width="120" style="display:block;margin-bottom:24px;" />'
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{_html_escape(title)}</title>
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background-color:#f3f4f6;">
  <div style="max-width:560px;margin:40px auto;background:#ffffff;border-radius:12px;padding:32px;line-height:1.6;color:#374151;">
    {logo_html}
    <h2 style="margin:0 0 16px 0;color:#111827;">{_html_escape(title)}</h2>
    {body_html}
    <p style="margin:24px 0 0 0;font-size:13px;color:#6b7280;">
      {_html_escape(settings.site_name)} &nbsp;·&nbsp; {_html_escape(settings.contact_email)}
    </p>
  </div>
</body>
</html>
"""


def send_booking_request_received_email(booking: BookingPublic) -> None:
    """Public request acknowledgement; the booking is still pending review."""
    when = format_slot(booking.slot_time)
    body = f"""
    <p>Hi {_html_escape(booking.first_name)},</p>
    <p>We've received your request for a consultation on <strong>{when}</strong>.</p>
    <p>Our team will review it shortly and send a separate confirmation email once it's approved.</p>
    """
    _send_email_sync(
        booking.email,
        f"Consultation Request Received - {settings.site_name}",
        _wrap_html("Thank you for your request!", body),
    )


def send_admin_new_booking_email(admin_email: str, booking: BookingPublic) -> None:
    when = format_slot(booking.slot_time)
    notes = _html_escape(booking.notes) if booking.notes else "N/A"
    admin_link = f"{settings.site_url.rstrip('/')}/admin/bookings"
    body = f"""
    <p>A new consultation has been requested with status: <strong>{booking.status.upper()}</strong>.</p>
    <ul style="list-style-type:none;padding:0;">
      <li><strong>Name:</strong> {_html_escape(booking.first_name)} {_html_escape(booking.last_name)}</li>
      <li><strong>Email:</strong> {_html_escape(booking.email)}</li>
      <li><strong>Requested Time:</strong> {when}</li>
      <li><strong>Notes:</strong> {notes}</li>
    </ul>
    <p><a href="{admin_link}">View in Admin Panel</a></p>
    """
    _send_email_sync(
        admin_email,
        f"New Consultation Request: {booking.first_name} {booking.last_name}",
        _wrap_html("New Consultation Request", body),
    )


def send_booking_confirmed_email(booking: BookingPublic) -> None:
    when = format_slot(booking.slot_time)
    body = f"""
    <p>Hi {_html_escape(booking.first_name)},</p>
    <p>Your consultation with {_html_escape(settings.site_name)} is confirmed for <strong>{when}</strong>.</p>
    <p>If you have any questions before then, reply to {_html_escape(settings.contact_email)}.</p>
    """
    _send_email_sync(booking.email, "Your Consultation is Confirmed!", _wrap_html("Booking Confirmed", body))


def send_booking_cancelled_email(booking: BookingPublic) -> None:
    body = f"""
    <p>Hi {_html_escape(booking.first_name)},</p>
    <p>Your consultation with {_html_escape(settings.site_name)} has been cancelled.</p>
    <p>If you believe this was in error, or would like a new time, please visit our booking page.</p>
    """
    _send_email_sync(booking.email, "Your Consultation Has Been Cancelled", _wrap_html("Booking Cancelled", body))


def send_booking_rescheduled_email(booking: BookingPublic) -> None:
    when = format_slot(booking.slot_time)
    body = f"""
    <p>Hi {_html_escape(booking.first_name)},</p>
    <p>Your consultation has been rescheduled to <strong>{when}</strong>. This new time is confirmed.</p>
    """
    _send_email_sync(
        booking.email, "Your Consultation Has Been Rescheduled", _wrap_html("Booking Rescheduled", body)
    )


def send_contact_message_email(business_email: str, contact: ContactRequest) -> None:
    """Website contact form message; replies go straight to the visitor."""
    message_html = _html_escape(contact.message).replace("\n", "<br>")
    body = f"""
    <p>You have received a new message from your website's contact form.</p>
    <ul style="list-style-type:none;padding:0;">
      <li><strong>Name:</strong> {_html_escape(contact.first_name)} {_html_escape(contact.last_name)}</li>
      <li><strong>Email:</strong> {_html_escape(contact.email)}</li>
      <li><strong>Phone:</strong> {_html_escape(contact.phone or "Not provided")}</li>
    </ul>
    <p style="padding:15px;border-left:4px solid #eee;">{message_html}</p>
    """
    _send_email_sync(
        business_email,
        f"New Contact Form Message from {contact.first_name} {contact.last_name}",
        _wrap_html("New Message from Website Contact Form", body),
        reply_to=contact.email,
    )


def send_contact_acknowledgement_email(contact: ContactRequest) -> None:
    body = f"""
    <p>Hi {_html_escape(contact.first_name)},</p>
    <p>This is an automated confirmation that we have received your message.
    Our team will review it and get back to you as soon as possible.</p>
    """
    _send_email_sync(contact.email, "We've Received Your Message!", _wrap_html("Thank You For Reaching Out!", body))
