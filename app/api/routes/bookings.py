import logging
import secrets
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_availability_policy, get_now, get_session
from app.core.config import settings
from app.core.errors import BookingNotFoundError
from app.models.booking import BookingCreate, BookingPublic, BookingStatus
from app.services.availability_service import AvailabilityPolicy
from app.services.booking_service import booking_to_public, create_booking, get_booking
from app.services.email_service import (
    send_admin_new_booking_email,
    send_booking_request_received_email,
)
from app.services.ics_service import build_booking_ics

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])


def calendar_response(content: str) -> Response:
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="appointment.ics"'},
    )


@router.post("", response_model=BookingPublic, status_code=status.HTTP_201_CREATED)
async def request_booking(
    body: BookingCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
    policy: AvailabilityPolicy = Depends(get_availability_policy),
) -> BookingPublic:
    """Public booking request. Starts pending until an admin confirms it."""
    booking = await create_booking(session, body, status=BookingStatus.PENDING, now=now, policy=policy)
    public = booking_to_public(booking)
    background_tasks.add_task(send_booking_request_received_email, public)
    background_tasks.add_task(send_admin_new_booking_email, settings.notification_recipient, public)
    return public


@router.get("/{booking_id}/ics")
async def booking_calendar_file(
    booking_id: int,
    token: str = Query(...),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> Response:
    """Calendar file for the client; ``token`` is the booking's calendar_token."""
    booking = await get_booking(session, booking_id)
    if not secrets.compare_digest(token.encode(), booking.calendar_token.encode()):
        # Same answer as a missing booking so ids cannot be probed
        raise BookingNotFoundError("Booking not found")
    return calendar_response(build_booking_ics(booking, now))
