import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import SlotValidationError
from app.models.availability import (
    AvailabilityOverride,
    AvailabilityOverrideCreate,
    AvailabilityOverridePublic,
    RecurringRule,
    RecurringRulePublic,
)
from app.services.availability_service import as_utc, normalize_slot_labels, to_naive_utc

logger = logging.getLogger(__name__)


async def list_rules(session: AsyncSession) -> list[RecurringRule]:
    result = await session.execute(select(RecurringRule).order_by(RecurringRule.day_of_week))
    return list(result.scalars().all())


async def replace_rules(
    session: AsyncSession, rules: Sequence[RecurringRulePublic]
) -> list[RecurringRule]:
    """Replace the whole weekly schedule (delete all, insert new) in the
    caller's transaction. Everything is validated before the delete runs."""
    seen: set[int] = set()
    rows: list[RecurringRule] = []
    for rule in rules:
        if not 0 <= rule.day_of_week <= 6:
            raise SlotValidationError(f"day_of_week must be 0-6, got {rule.day_of_week}")
        if rule.day_of_week in seen:
            raise SlotValidationError(f"Duplicate rule for day_of_week {rule.day_of_week}")
        seen.add(rule.day_of_week)
        rows.append(
            RecurringRule(
                day_of_week=rule.day_of_week,
                available_slots=normalize_slot_labels(rule.available_slots),
            )
        )

    await session.execute(delete(RecurringRule))
    session.add_all(rows)
    await session.flush()
    logger.info("Weekly schedule replaced: %d rule(s)", len(rows))
    return sorted(rows, key=lambda r: r.day_of_week)


def override_to_public(o: AvailabilityOverride) -> AvailabilityOverridePublic:
    return AvailabilityOverridePublic(
        id=o.id, start_time=as_utc(o.start_time), end_time=as_utc(o.end_time), type=o.type
    )


def _validated_override(data: AvailabilityOverrideCreate) -> AvailabilityOverride:
    start = to_naive_utc(data.start_time)
    end = to_naive_utc(data.end_time)
    if start >= end:
        raise SlotValidationError("Override start_time must be before end_time")
    return AvailabilityOverride(start_time=start, end_time=end, type=data.type.value)


async def list_upcoming_overrides(session: AsyncSession, now: datetime) -> list[AvailabilityOverride]:
    """Overrides that have not ended yet, by start time."""
    result = await session.execute(
        select(AvailabilityOverride)
        .where(AvailabilityOverride.end_time > to_naive_utc(now))
        .order_by(AvailabilityOverride.start_time)
    )
    return list(result.scalars().all())


async def create_override(
    session: AsyncSession, data: AvailabilityOverrideCreate
) -> AvailabilityOverride:
    override = _validated_override(data)
    session.add(override)
    await session.flush()
    await session.refresh(override)
    return override


async def delete_override(session: AsyncSession, override_id: int) -> bool:
    result = await session.execute(
        select(AvailabilityOverride).where(AvailabilityOverride.id == override_id)
    )
    override = result.scalar_one_or_none()
    if not override:
        return False
    await session.delete(override)
    await session.flush()
    return True


async def apply_override_batch(
    session: AsyncSession,
    overrides_to_add: Sequence[AvailabilityOverrideCreate],
    ids_to_delete: Sequence[int],
) -> tuple[int, int]:
    """Delete and insert overrides as one unit. Returns (deleted, added).

    Runs inside the request transaction, so a failure in either half rolls
    back both.
    """
    new_rows = [_validated_override(o) for o in overrides_to_add]
    deleted = 0
    if ids_to_delete:
        result = await session.execute(
            delete(AvailabilityOverride).where(AvailabilityOverride.id.in_(list(ids_to_delete)))
        )
        deleted = result.rowcount or 0
        if deleted != len(set(ids_to_delete)):
            logger.warning(
                "Override batch: %d of %d id(s) did not exist",
                len(set(ids_to_delete)) - deleted,
                len(set(ids_to_delete)),
            )
    session.add_all(new_rows)
    await session.flush()
    return deleted, len(new_rows)
