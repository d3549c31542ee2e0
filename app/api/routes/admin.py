import logging
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_availability_policy, get_current_admin, get_now, get_session
from app.api.routes.bookings import calendar_response
from app.api.schemas.availability import (
    OverrideBatchRequest,
    OverrideBatchResponse,
    ReplaceRulesRequest,
)
from app.api.schemas.booking import AdminBookingsResponse, BookingUpdateRequest
from app.core.config import settings
from app.models.availability import (
    AvailabilityOverrideCreate,
    AvailabilityOverridePublic,
    RecurringRulePublic,
)
from app.models.booking import BookingCreate, BookingPublic, BookingStatus
from app.models.user import User
from app.services.availability_service import AvailabilityPolicy
from app.services.booking_service import (
    booking_to_public,
    create_booking,
    get_booking,
    list_upcoming_bookings,
    reschedule_booking,
    update_booking_status,
)
from app.services.email_service import (
    send_booking_cancelled_email,
    send_booking_confirmed_email,
    send_booking_rescheduled_email,
)
from app.services.ics_service import build_booking_ics
from app.services.schedule_service import (
    apply_override_batch,
    create_override,
    delete_override,
    list_rules,
    list_upcoming_overrides,
    override_to_public,
    replace_rules,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_current_admin)])


# --- Bookings ---

@router.get("/bookings", response_model=AdminBookingsResponse)
async def admin_list_bookings(
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> AdminBookingsResponse:
    bookings = await list_upcoming_bookings(session, now)
    return AdminBookingsResponse(
        bookings=[booking_to_public(b) for b in bookings],
        business_email=settings.contact_email,
    )


@router.post("/bookings", response_model=BookingPublic, status_code=status.HTTP_201_CREATED)
async def admin_create_booking(
    body: BookingCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
    policy: AvailabilityPolicy = Depends(get_availability_policy),
) -> BookingPublic:
    """Booking entered by staff; confirmed immediately."""
    booking = await create_booking(session, body, status=BookingStatus.CONFIRMED, now=now, policy=policy)
    public = booking_to_public(booking)
    background_tasks.add_task(send_booking_confirmed_email, public)
    return public


@router.patch("/bookings/{booking_id}", response_model=BookingPublic)
async def admin_update_booking(
    booking_id: int,
    body: BookingUpdateRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
    policy: AvailabilityPolicy = Depends(get_availability_policy),
) -> BookingPublic:
    """Confirm, cancel, or move a booking to another offered slot."""
    if body.new_slot_time is not None:
        booking = await reschedule_booking(session, booking_id, body.new_slot_time, now=now, policy=policy)
        public = booking_to_public(booking)
        background_tasks.add_task(send_booking_rescheduled_email, public)
        return public

    new_status = BookingStatus(body.status)
    booking = await update_booking_status(session, booking_id, new_status)
    public = booking_to_public(booking)
    if new_status is BookingStatus.CONFIRMED:
        background_tasks.add_task(send_booking_confirmed_email, public)
    else:
        background_tasks.add_task(send_booking_cancelled_email, public)
    return public


@router.get("/bookings/{booking_id}/ics")
async def admin_booking_calendar_file(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> Response:
    booking = await get_booking(session, booking_id)
    return calendar_response(build_booking_ics(booking, now))


# --- Weekly schedule ---

@router.get("/availability/rules", response_model=list[RecurringRulePublic])
async def admin_list_rules(session: AsyncSession = Depends(get_session)) -> list[RecurringRulePublic]:
    rules = await list_rules(session)
    return [RecurringRulePublic(day_of_week=r.day_of_week, available_slots=r.available_slots) for r in rules]


@router.put("/availability/rules", response_model=list[RecurringRulePublic])
async def admin_replace_rules(
    body: ReplaceRulesRequest,
    session: AsyncSession = Depends(get_session),
    current_admin: User = Depends(get_current_admin),
) -> list[RecurringRulePublic]:
    rules = await replace_rules(session, body.rules)
    logger.info("Schedule updated by %s", current_admin.email)
    return [RecurringRulePublic(day_of_week=r.day_of_week, available_slots=r.available_slots) for r in rules]


# --- Overrides ---

@router.get("/availability/overrides", response_model=list[AvailabilityOverridePublic])
async def admin_list_overrides(
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> list[AvailabilityOverridePublic]:
    return [override_to_public(o) for o in await list_upcoming_overrides(session, now)]


@router.post(
    "/availability/overrides",
    response_model=AvailabilityOverridePublic,
    status_code=status.HTTP_201_CREATED,
)
async def admin_create_override(
    body: AvailabilityOverrideCreate,
    session: AsyncSession = Depends(get_session),
) -> AvailabilityOverridePublic:
    return override_to_public(await create_override(session, body))


@router.delete("/availability/overrides", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_override(
    override_id: int = Query(..., alias="id"),
    session: AsyncSession = Depends(get_session),
) -> None:
    if not await delete_override(session, override_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Override not found")


@router.post("/availability/overrides/batch", response_model=OverrideBatchResponse)
async def admin_override_batch(
    body: OverrideBatchRequest,
    session: AsyncSession = Depends(get_session),
) -> OverrideBatchResponse:
    deleted, added = await apply_override_batch(session, body.overrides_to_add, body.ids_to_delete)
    return OverrideBatchResponse(deleted=deleted, added=added)
