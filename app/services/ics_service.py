from datetime import datetime, timedelta

from app.core.config import settings
from app.models.booking import Booking
from app.services.availability_service import as_utc

ICS_DATETIME_FORMAT = "%Y%m%dT%H%M%SZ"


def _ics_time(dt: datetime) -> str:
    return as_utc(dt).strftime(ICS_DATETIME_FORMAT)


def _ics_text(value: str) -> str:
    """Escape a TEXT value (RFC 5545 3.3.11)."""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _fold(line: str) -> str:
    """Split a content line into 75-octet pieces joined by CRLF + space (RFC 5545 3.1)."""
    pieces: list[str] = []
    current = ""
    size = 0
    limit = 75
    for ch in line:
        width = len(ch.encode("utf-8"))
        if size + width > limit:
            pieces.append(current)
            current, size = "", 0
            limit = 74  # continuation lines start with a space
        current += ch
        size += width
    pieces.append(current)
    return "\r\n ".join(pieces)


def build_booking_ics(booking: Booking, now: datetime) -> str:
    """Single-event VCALENDAR for a booking, CRLF line endings."""
    start = as_utc(booking.slot_time)
    end = start + timedelta(minutes=settings.consultation_duration_minutes)
    full_name = f"{booking.first_name} {booking.last_name}"
    attendee = full_name.replace('"', "")
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:-//{settings.calendar_uid_domain}//Consultation Booking//EN",
        "BEGIN:VEVENT",
        f"UID:{booking.id}@{settings.calendar_uid_domain}",
        f"DTSTAMP:{_ics_time(now)}",
        f"DTSTART:{_ics_time(start)}",
        f"DTEND:{_ics_time(end)}",
        f"SUMMARY:{_ics_text(f'Consultation: {full_name}')}",
        f"DESCRIPTION:{_ics_text(booking.notes or 'No additional notes.')}",
        f'ATTENDEE;CN="{attendee}";ROLE=REQ-PARTICIPANT:mailto:{booking.email}',
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(_fold(line) for line in lines) + "\r\n"
