"""Availability resolution.

Bookable slots for a calendar date are the weekday's recurring rule labels,
interpreted as wall-clock times in the business timezone and converted to UTC,
minus anything inside the booking lead time, already held by an active
booking, or covered by a blackout override ``[start, end)``.

The resolver reads its inputs through an ``AvailabilityStore`` and takes
``now`` and the policy as arguments, so the same inputs always give the same
ordered output.
"""
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from functools import lru_cache
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import SlotValidationError, StoreUnavailableError
from app.models.availability import AvailabilityOverride, RecurringRule
from app.models.booking import ACTIVE_STATUSES, Booking

logger = logging.getLogger(__name__)

SLOT_LABEL_FORMAT = "%H:%M:%S"


@dataclass(frozen=True)
class AvailabilityPolicy:
    timezone: ZoneInfo
    lead_time: timedelta


def build_policy(timezone_name: str, lead_time_hours: int) -> AvailabilityPolicy:
    try:
        tz = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown IANA timezone: {timezone_name!r}") from e
    return AvailabilityPolicy(timezone=tz, lead_time=timedelta(hours=lead_time_hours))


@lru_cache
def get_policy() -> AvailabilityPolicy:
    """Process-wide policy from settings (BUSINESS_TIMEZONE, BOOKING_LEAD_TIME_HOURS)."""
    return build_policy(settings.business_timezone, settings.booking_lead_time_hours)


# --- Parsing and conversion ---

def parse_calendar_date(value: str | None) -> date:
    """Parse ``YYYY-MM-DD`` or an ISO-8601 datetime into a calendar date.

    Datetimes with an offset are reduced to their UTC calendar date, so a
    client sending local midnight as ``...T00:00:00.000Z`` gets the day it meant.
    """
    raw = (value or "").strip()
    if not raw:
        raise SlotValidationError("A date is required")
    try:
        if len(raw) == 10:
            return date.fromisoformat(raw)
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as e:
        raise SlotValidationError(f"Invalid date format: {raw!r}") from e
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.date()


def parse_slot_label(label: str) -> time:
    """Strict ``HH:MM:SS``; anything else is a validation error."""
    if not isinstance(label, str) or len(label) != 8:
        raise SlotValidationError(f"Invalid time label {label!r}; expected HH:MM:SS")
    try:
        return datetime.strptime(label, SLOT_LABEL_FORMAT).time()
    except ValueError as e:
        raise SlotValidationError(f"Invalid time label {label!r}; expected HH:MM:SS") from e


def normalize_slot_labels(labels: Iterable[str]) -> list[str]:
    """Validate, de-duplicate and sort labels (string order == time order)."""
    checked = set()
    for label in labels:
        parse_slot_label(label)
        checked.add(label)
    return sorted(checked)


def weekday_of(day: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def as_utc(dt: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to already be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return as_utc(dt).replace(tzinfo=None)


def local_slot_to_utc(day: date, slot: time, tz: ZoneInfo) -> datetime:
    # Wall-clock times skipped by a DST jump resolve with the pre-transition
    # offset, i.e. 02:30 on spring-forward day becomes 03:30 daylight time.
    return datetime.combine(day, slot, tzinfo=tz).astimezone(UTC)


def slot_date(instant: datetime, tz: ZoneInfo) -> date:
    """Calendar date (in the business timezone) whose rule produces ``instant``."""
    return as_utc(instant).astimezone(tz).date()


def day_window(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC bounds [start, end) of ``day`` in the business timezone."""
    start = datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz).astimezone(UTC)
    return start, end


def candidate_instants(day: date, labels: Iterable[str], tz: ZoneInfo) -> list[datetime]:
    # Re-sort after conversion: a DST gap can push a label past its successor.
    return sorted({local_slot_to_utc(day, parse_slot_label(label), tz) for label in labels})


def filter_slots(
    candidates: Sequence[datetime],
    *,
    now: datetime,
    lead_time: timedelta,
    booked: Iterable[datetime],
    overrides: Iterable[tuple[datetime, datetime]],
) -> list[datetime]:
    """Keep instants strictly after now + lead_time, not booked, not blocked."""
    earliest = as_utc(now) + lead_time
    taken = {as_utc(b) for b in booked}
    blocks = [(as_utc(start), as_utc(end)) for start, end in overrides]
    return [
        slot
        for slot in candidates
        if slot > earliest
        and slot not in taken
        and not any(start <= slot < end for start, end in blocks)
    ]


# --- Store ---

class AvailabilityStore(Protocol):
    async def get_rule(self, weekday: int) -> list[str] | None: ...

    async def get_overrides(
        self, start: datetime, end: datetime
    ) -> list[tuple[datetime, datetime]]: ...

    async def get_active_booking_times(self, start: datetime, end: datetime) -> list[datetime]: ...


class SqlAvailabilityStore:
    """AvailabilityStore over the rule, override and booking tables."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _execute(self, stmt):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.exception("Availability lookup failed: %s", e)
            raise StoreUnavailableError("Availability data is temporarily unavailable") from e

    async def get_rule(self, weekday: int) -> list[str] | None:
        result = await self._execute(
            select(RecurringRule.available_slots).where(RecurringRule.day_of_week == weekday)
        )
        slots = result.scalar_one_or_none()
        return list(slots) if slots is not None else None

    async def get_overrides(
        self, start: datetime, end: datetime
    ) -> list[tuple[datetime, datetime]]:
        result = await self._execute(
            select(AvailabilityOverride.start_time, AvailabilityOverride.end_time).where(
                AvailabilityOverride.start_time < to_naive_utc(end),
                AvailabilityOverride.end_time > to_naive_utc(start),
            )
        )
        return [(as_utc(s), as_utc(e)) for s, e in result.all()]

    async def get_active_booking_times(self, start: datetime, end: datetime) -> list[datetime]:
        result = await self._execute(
            select(Booking.slot_time).where(
                Booking.slot_time >= to_naive_utc(start),
                Booking.slot_time < to_naive_utc(end),
                Booking.status.in_(ACTIVE_STATUSES),
            )
        )
        return [as_utc(row[0]) for row in result.all()]


# --- Resolution ---

async def resolve_slots(
    store: AvailabilityStore, day: date, now: datetime, policy: AvailabilityPolicy
) -> list[datetime]:
    """Bookable UTC instants for ``day``, ascending. Empty when nothing is open."""
    labels = await store.get_rule(weekday_of(day))
    if not labels:
        return []
    candidates = candidate_instants(day, labels, policy.timezone)

    window_start, window_end = day_window(day, policy.timezone)
    window_start = min(window_start, candidates[0])
    window_end = max(window_end, candidates[-1] + timedelta(microseconds=1))

    overrides = await store.get_overrides(window_start, window_end)
    booked = await store.get_active_booking_times(window_start, window_end)
    return filter_slots(
        candidates,
        now=now,
        lead_time=policy.lead_time,
        booked=booked,
        overrides=overrides,
    )


async def is_slot_available(
    store: AvailabilityStore, candidate: datetime, now: datetime, policy: AvailabilityPolicy
) -> bool:
    """Re-run the full resolution for the candidate's day; never cached."""
    instant = as_utc(candidate)
    slots = await resolve_slots(store, slot_date(instant, policy.timezone), now, policy)
    return instant in slots


async def resolve_unavailable_days(
    store: AvailabilityStore,
    start: date,
    end: date,
    now: datetime,
    policy: AvailabilityPolicy,
    max_days: int | None = None,
) -> list[date]:
    """Dates in [start, end] that are in the past or have no bookable slot."""
    if end < start:
        raise SlotValidationError("Range end must not be before range start")
    span = (end - start).days + 1
    limit = max_days if max_days is not None else settings.max_availability_range_days
    if span > limit:
        raise SlotValidationError(f"Date range too long ({span} days, max {limit})")

    today = slot_date(now, policy.timezone)
    unavailable: list[date] = []
    day = start
    while day <= end:
        if day < today or not await resolve_slots(store, day, now, policy):
            unavailable.append(day)
        day += timedelta(days=1)
    return unavailable
