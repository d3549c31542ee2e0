from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_availability_policy, get_now, get_session
from app.api.schemas.availability import AvailableSlotsResponse, SlotInfo, UnavailableDaysResponse
from app.core.config import settings
from app.core.errors import SlotValidationError
from app.services.availability_service import (
    AvailabilityPolicy,
    SqlAvailabilityStore,
    parse_calendar_date,
    resolve_slots,
    resolve_unavailable_days,
)

router = APIRouter(prefix="/availability", tags=["availability"])


def _local_label(slot: datetime, policy: AvailabilityPolicy) -> str:
    return slot.astimezone(policy.timezone).strftime("%I:%M %p").lstrip("0")


@router.get("", response_model=AvailableSlotsResponse | UnavailableDaysResponse)
async def availability(
    date_param: str | None = Query(None, alias="date"),
    start: str | None = Query(None),
    end: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
    policy: AvailabilityPolicy = Depends(get_availability_policy),
) -> AvailableSlotsResponse | UnavailableDaysResponse:
    """Bookable slots for ``date``, or the unavailable dates between ``start`` and ``end``."""
    store = SqlAvailabilityStore(session)
    if date_param:
        day = parse_calendar_date(date_param)
        slots = await resolve_slots(store, day, now, policy)
        duration = timedelta(minutes=settings.consultation_duration_minutes)
        return AvailableSlotsResponse(
            date=day.isoformat(),
            timezone=policy.timezone.key,
            slots=[
                SlotInfo(start_utc=s, end_utc=s + duration, local_time=_local_label(s, policy))
                for s in slots
            ],
        )
    if start and end:
        start_day = parse_calendar_date(start)
        end_day = parse_calendar_date(end)
        unavailable = await resolve_unavailable_days(store, start_day, end_day, now, policy)
        return UnavailableDaysResponse(start=start_day, end=end_day, unavailable_dates=unavailable)
    raise SlotValidationError(
        "Request must include either a 'date' parameter or both 'start' and 'end' parameters."
    )
