"""Availability resolution: rules, lead time, bookings, overrides, DST."""
from datetime import UTC, date, datetime, time
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import SlotValidationError, StoreUnavailableError
from app.services.availability_service import (
    SqlAvailabilityStore,
    build_policy,
    is_slot_available,
    normalize_slot_labels,
    parse_calendar_date,
    parse_slot_label,
    resolve_slots,
    resolve_unavailable_days,
    weekday_of,
)
from conftest import MONDAY, MONDAY_SLOTS, NOW, FakeStore, local


def _monday_store(**kwargs) -> FakeStore:
    return FakeStore(rules={1: list(MONDAY_SLOTS)}, **kwargs)


# --- Scenarios ---

async def test_all_rule_slots_returned_in_utc_ascending(policy) -> None:
    slots = await resolve_slots(_monday_store(), MONDAY, NOW, policy)

    assert slots == [
        datetime(2025, 3, 10, 13, 0, tzinfo=UTC),
        datetime(2025, 3, 10, 13, 30, tzinfo=UTC),
        datetime(2025, 3, 10, 14, 0, tzinfo=UTC),
    ]


async def test_booked_slot_is_excluded(policy) -> None:
    store = _monday_store(bookings=[local(2025, 3, 10, 9, 30)])

    slots = await resolve_slots(store, MONDAY, NOW, policy)

    assert slots == [local(2025, 3, 10, 9, 0), local(2025, 3, 10, 10, 0)]


async def test_override_blocks_half_open_interval(policy) -> None:
    store = _monday_store(overrides=[(local(2025, 3, 10, 9, 0), local(2025, 3, 10, 10, 0))])

    slots = await resolve_slots(store, MONDAY, NOW, policy)

    assert slots == [local(2025, 3, 10, 10, 0)]


async def test_override_end_is_exclusive(policy) -> None:
    store = _monday_store(overrides=[(local(2025, 3, 10, 9, 0), local(2025, 3, 10, 9, 30))])

    slots = await resolve_slots(store, MONDAY, NOW, policy)

    assert slots == [local(2025, 3, 10, 9, 30), local(2025, 3, 10, 10, 0)]


async def test_lead_time_excludes_everything(policy) -> None:
    now = local(2025, 3, 10, 8, 30)  # earliest bookable 10:30

    assert await resolve_slots(_monday_store(), MONDAY, now, policy) == []


async def test_lead_time_boundary_is_not_inclusive(policy) -> None:
    now = local(2025, 3, 10, 7, 30)  # earliest bookable exactly 09:30

    slots = await resolve_slots(_monday_store(), MONDAY, now, policy)

    assert slots == [local(2025, 3, 10, 10, 0)]


async def test_day_without_rule_is_empty_and_skips_other_lookups(policy) -> None:
    store = _monday_store()

    assert await resolve_slots(store, date(2025, 3, 11), NOW, policy) == []
    assert store.calls == ["rule"]


async def test_rule_with_no_slots_is_empty(policy) -> None:
    store = FakeStore(rules={1: []})

    assert await resolve_slots(store, MONDAY, NOW, policy) == []


async def test_resolution_is_repeatable(policy) -> None:
    store = _monday_store(bookings=[local(2025, 3, 10, 9, 0)])

    first = await resolve_slots(store, MONDAY, NOW, policy)
    second = await resolve_slots(store, MONDAY, NOW, policy)

    assert first == second


# --- Timezone handling ---

async def test_spring_forward_gap_and_sort_order(policy) -> None:
    # 2025-03-09 is a Sunday; clocks jump 02:00 EST -> 03:00 EDT.
    store = FakeStore(rules={0: ["01:30:00", "02:30:00", "03:00:00"]})

    slots = await resolve_slots(store, date(2025, 3, 9), local(2025, 3, 1, 9), policy)

    assert slots == [
        datetime(2025, 3, 9, 6, 30, tzinfo=UTC),  # 01:30 EST
        datetime(2025, 3, 9, 7, 0, tzinfo=UTC),  # 03:00 EDT
        datetime(2025, 3, 9, 7, 30, tzinfo=UTC),  # 02:30 does not exist; lands on 03:30 EDT
    ]
    assert slots[-1] == local(2025, 3, 9, 3, 30)


async def test_labels_that_collapse_across_gap_are_deduplicated(policy) -> None:
    store = FakeStore(rules={0: ["02:30:00", "03:30:00"]})

    slots = await resolve_slots(store, date(2025, 3, 9), local(2025, 3, 1, 9), policy)

    assert slots == [datetime(2025, 3, 9, 7, 30, tzinfo=UTC)]


async def test_fall_back_ambiguous_time_uses_first_occurrence(policy) -> None:
    store = FakeStore(rules={0: ["01:30:00"]})

    slots = await resolve_slots(store, date(2025, 11, 2), local(2025, 11, 1, 9), policy)

    assert slots == [datetime(2025, 11, 2, 5, 30, tzinfo=UTC)]


async def test_winter_offset_applies_before_dst(policy) -> None:
    store = FakeStore(rules={1: ["09:00:00"]})

    slots = await resolve_slots(store, date(2025, 3, 3), local(2025, 3, 1, 9), policy)

    assert slots == [datetime(2025, 3, 3, 14, 0, tzinfo=UTC)]


async def test_alternate_timezone_policy() -> None:
    store = FakeStore(rules={1: ["09:00:00"]})
    tokyo = build_policy("Asia/Tokyo", 2)

    slots = await resolve_slots(store, MONDAY, datetime(2025, 3, 1, tzinfo=UTC), tokyo)

    assert slots == [datetime(2025, 3, 10, 0, 0, tzinfo=UTC)]


async def test_evening_slot_past_utc_midnight_sees_its_booking(policy) -> None:
    # 21:00 EDT Monday is 01:00 UTC Tuesday
    evening = local(2025, 3, 10, 21, 0)
    store = FakeStore(rules={1: ["21:00:00"]}, bookings=[evening])

    assert await resolve_slots(store, MONDAY, NOW, policy) == []
    assert await is_slot_available(store, evening, NOW, policy) is False


# --- Single-slot check ---

async def test_is_slot_available_matches_resolution(policy) -> None:
    store = _monday_store(
        bookings=[local(2025, 3, 10, 9, 30)],
        overrides=[(local(2025, 3, 10, 10, 0), local(2025, 3, 10, 11, 0))],
    )
    resolved = await resolve_slots(store, MONDAY, NOW, policy)

    for hour, minute in [(9, 0), (9, 15), (9, 30), (10, 0)]:
        candidate = local(2025, 3, 10, hour, minute)
        assert await is_slot_available(store, candidate, NOW, policy) is (candidate in resolved)
    assert resolved == [local(2025, 3, 10, 9, 0)]


async def test_is_slot_available_accepts_any_offset(policy) -> None:
    candidate = local(2025, 3, 10, 9, 0).astimezone(ZoneInfo("Europe/Paris"))

    assert await is_slot_available(_monday_store(), candidate, NOW, policy) is True


async def test_is_slot_available_rereads_store(policy) -> None:
    store = _monday_store()
    slot = local(2025, 3, 10, 9, 0)
    assert await is_slot_available(store, slot, NOW, policy) is True

    store.bookings.append(slot)

    assert await is_slot_available(store, slot, NOW, policy) is False


# --- Calendar range ---

async def test_unavailable_days_in_range(policy) -> None:
    store = _monday_store()

    days = await resolve_unavailable_days(store, date(2025, 3, 9), date(2025, 3, 11), NOW, policy)

    assert days == [date(2025, 3, 9), date(2025, 3, 11)]


async def test_fully_blocked_day_is_unavailable(policy) -> None:
    store = _monday_store(overrides=[(local(2025, 3, 10, 0, 0), local(2025, 3, 11, 0, 0))])

    assert await resolve_slots(store, MONDAY, NOW, policy) == []
    assert await resolve_unavailable_days(store, MONDAY, MONDAY, NOW, policy) == [MONDAY]


async def test_past_days_are_unavailable(policy) -> None:
    store = FakeStore(rules={d: ["12:00:00"] for d in range(7)})

    days = await resolve_unavailable_days(store, date(2025, 3, 7), date(2025, 3, 12), NOW, policy)

    assert days == [date(2025, 3, 7), date(2025, 3, 8), date(2025, 3, 9)]


async def test_unavailable_days_rejects_reversed_range(policy) -> None:
    with pytest.raises(SlotValidationError):
        await resolve_unavailable_days(FakeStore(), date(2025, 3, 12), date(2025, 3, 10), NOW, policy)


async def test_unavailable_days_rejects_long_range(policy) -> None:
    with pytest.raises(SlotValidationError):
        await resolve_unavailable_days(
            FakeStore(), date(2025, 1, 1), date(2025, 12, 31), NOW, policy, max_days=31
        )


# --- Store failures ---

async def test_store_error_aborts_resolution(policy) -> None:
    store = _monday_store()
    store.get_active_booking_times = AsyncMock(side_effect=StoreUnavailableError("down"))

    with pytest.raises(StoreUnavailableError):
        await resolve_slots(store, MONDAY, NOW, policy)


async def test_sql_store_wraps_database_errors(policy) -> None:
    session = MagicMock()
    session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("gone")))

    with pytest.raises(StoreUnavailableError):
        await resolve_slots(SqlAvailabilityStore(session), MONDAY, NOW, policy)


# --- Parsing ---

def test_weekday_of_counts_from_sunday() -> None:
    assert weekday_of(date(2025, 3, 9)) == 0
    assert weekday_of(date(2025, 3, 10)) == 1
    assert weekday_of(date(2025, 3, 15)) == 6


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2025-03-10", date(2025, 3, 10)),
        ("2025-03-10T00:00:00.000Z", date(2025, 3, 10)),
        ("2025-03-10T23:30:00-05:00", date(2025, 3, 11)),
        (" 2025-03-10 ", date(2025, 3, 10)),
    ],
)
def test_parse_calendar_date(raw, expected) -> None:
    assert parse_calendar_date(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "tomorrow", "2025-13-01", "2025-02-30"])
def test_parse_calendar_date_rejects(raw) -> None:
    with pytest.raises(SlotValidationError):
        parse_calendar_date(raw)


def test_parse_slot_label() -> None:
    assert parse_slot_label("09:30:00") == time(9, 30)


@pytest.mark.parametrize("label", ["9:00:00", "09:00", "25:00:00", "09:60:00", "nine", 900])
def test_parse_slot_label_rejects(label) -> None:
    with pytest.raises(SlotValidationError):
        parse_slot_label(label)


def test_normalize_slot_labels_sorts_and_dedupes() -> None:
    assert normalize_slot_labels(["10:00:00", "09:00:00", "10:00:00"]) == ["09:00:00", "10:00:00"]


def test_unknown_timezone_is_rejected() -> None:
    with pytest.raises(ValueError):
        build_policy("Mars/Olympus_Mons", 2)
