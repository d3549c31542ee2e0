import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BookingNotFoundError, BookingStateError, SlotConflictError
from app.models.booking import Booking, BookingCreate, BookingPublic, BookingStatus
from app.services.availability_service import (
    AvailabilityPolicy,
    SqlAvailabilityStore,
    as_utc,
    is_slot_available,
    to_naive_utc,
)

logger = logging.getLogger(__name__)

SLOT_TAKEN = "This time slot is no longer available. Please select another time."

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def booking_to_public(b: Booking) -> BookingPublic:
    """Public shape with timezone-aware UTC datetimes."""
    return BookingPublic(
        id=b.id,
        slot_time=as_utc(b.slot_time),
        first_name=b.first_name,
        last_name=b.last_name,
        email=b.email,
        notes=b.notes,
        status=b.status,
        created_at=as_utc(b.created_at),
        calendar_token=b.calendar_token,
    )


async def _flush_or_conflict(session: AsyncSession, slot_time: datetime) -> None:
    """Flush pending writes; the active-slot unique index turns races into conflicts."""
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        logger.info("Slot %s taken concurrently: %s", slot_time.isoformat(), e.orig)
        raise SlotConflictError(SLOT_TAKEN) from e


async def get_booking(session: AsyncSession, booking_id: int) -> Booking:
    result = await session.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFoundError("Booking not found")
    return booking


async def create_booking(
    session: AsyncSession,
    data: BookingCreate,
    *,
    status: BookingStatus,
    now: datetime,
    policy: AvailabilityPolicy,
) -> Booking:
    """Book ``data.slot_time`` if it is still offered. Public bookings start
    pending; admin bookings are confirmed immediately."""
    slot_time = as_utc(data.slot_time)
    if not await is_slot_available(SqlAvailabilityStore(session), slot_time, now, policy):
        raise SlotConflictError(SLOT_TAKEN)
    booking = Booking(
        slot_time=to_naive_utc(slot_time),
        first_name=data.client.first_name.strip(),
        last_name=data.client.last_name.strip(),
        email=str(data.client.email),
        notes=data.client.notes or None,
        status=status.value,
    )
    session.add(booking)
    await _flush_or_conflict(session, slot_time)
    await session.refresh(booking)
    logger.info("Booking %s created for %s (%s)", booking.id, slot_time.isoformat(), status.value)
    return booking


async def update_booking_status(
    session: AsyncSession, booking_id: int, new_status: BookingStatus
) -> Booking:
    booking = await get_booking(session, booking_id)
    current = BookingStatus(booking.status)
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise BookingStateError(f"Cannot change a {current.value} booking to {new_status.value}")
    booking.status = new_status.value
    booking.updated_at = _utc_naive_now()
    session.add(booking)
    await session.flush()
    await session.refresh(booking)
    return booking


async def reschedule_booking(
    session: AsyncSession,
    booking_id: int,
    new_slot_time: datetime,
    *,
    now: datetime,
    policy: AvailabilityPolicy,
) -> Booking:
    """Move a booking to another offered slot; the result is always confirmed."""
    booking = await get_booking(session, booking_id)
    if booking.status == BookingStatus.CANCELLED.value:
        raise BookingStateError("Cannot reschedule a cancelled booking")
    slot_time = as_utc(new_slot_time)
    if not await is_slot_available(SqlAvailabilityStore(session), slot_time, now, policy):
        raise SlotConflictError("This time slot is not available for rescheduling.")
    booking.slot_time = to_naive_utc(slot_time)
    booking.status = BookingStatus.CONFIRMED.value
    booking.updated_at = _utc_naive_now()
    session.add(booking)
    await _flush_or_conflict(session, slot_time)
    await session.refresh(booking)
    return booking


async def list_upcoming_bookings(session: AsyncSession, now: datetime) -> list[Booking]:
    result = await session.execute(
        select(Booking)
        .where(Booking.slot_time >= to_naive_utc(now))
        .order_by(Booking.slot_time)
    )
    return list(result.scalars().all())
