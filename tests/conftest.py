import os

# Settings are read at import time; point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BUSINESS_TIMEZONE"] = "America/Toronto"
os.environ["BOOKING_LEAD_TIME_HOURS"] = "2"
os.environ["SMTP_HOST"] = ""
os.environ["ENV"] = "test"

from datetime import UTC, date, datetime  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import app.models  # noqa: E402,F401 - register tables
from app.api.deps import get_now, get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.models.availability import RecurringRule  # noqa: E402
from app.services.availability_service import AvailabilityPolicy, build_policy  # noqa: E402

TORONTO = ZoneInfo("America/Toronto")
MONDAY = date(2025, 3, 10)  # first Monday after the 2025-03-09 DST change (EDT, UTC-4)
MONDAY_SLOTS = ["09:00:00", "09:30:00", "10:00:00"]


def local(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    """Wall-clock time in the business timezone, as aware UTC."""
    return datetime(year, month, day, hour, minute, tzinfo=TORONTO).astimezone(UTC)


# Monday 06:00 local
NOW = local(2025, 3, 10, 6, 0)


class FakeStore:
    """In-memory AvailabilityStore with the same window semantics as the SQL one."""

    def __init__(self, rules=None, overrides=(), bookings=()):
        self.rules = dict(rules or {})
        self.overrides = list(overrides)
        self.bookings = list(bookings)
        self.calls: list[str] = []

    async def get_rule(self, weekday):
        self.calls.append("rule")
        return self.rules.get(weekday)

    async def get_overrides(self, start, end):
        self.calls.append("overrides")
        return [(s, e) for s, e in self.overrides if s < end and e > start]

    async def get_active_booking_times(self, start, end):
        self.calls.append("bookings")
        return [t for t in self.bookings if start <= t < end]


@pytest.fixture
def policy() -> AvailabilityPolicy:
    return build_policy("America/Toronto", 2)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def monday_rule(session_maker):
    async with session_maker() as s:
        s.add(RecurringRule(day_of_week=1, available_slots=list(MONDAY_SLOTS)))
        await s.commit()


@pytest.fixture
async def client(session_maker):
    async def _get_session():
        async with session_maker() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_now] = lambda: NOW
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
