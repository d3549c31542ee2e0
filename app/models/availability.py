from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class OverrideType(str, Enum):
    BLOCKED = "blocked"


class RecurringRule(SQLModel, table=True):
    """Weekly template for one weekday (0=Sunday .. 6=Saturday).

    ``available_slots`` holds ``HH:MM:SS`` wall-clock labels in the business
    timezone, kept sorted so string order equals time-of-day order.
    """

    __tablename__ = "recurring_availability_rules"
    id: int | None = Field(default=None, primary_key=True)
    day_of_week: int = Field(unique=True, index=True, ge=0, le=6)
    available_slots: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))


class RecurringRulePublic(SQLModel):
    day_of_week: int
    available_slots: list[str]


class AvailabilityOverride(SQLModel, table=True):
    """Absolute blackout interval [start_time, end_time), naive UTC."""

    __tablename__ = "availability_overrides"
    id: int | None = Field(default=None, primary_key=True)
    start_time: datetime = Field(index=True, sa_type=DateTime())
    end_time: datetime = Field(index=True, sa_type=DateTime())
    type: str = Field(default=OverrideType.BLOCKED.value, max_length=32)
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime())


class AvailabilityOverrideCreate(SQLModel):
    start_time: datetime
    end_time: datetime
    type: OverrideType = OverrideType.BLOCKED


class AvailabilityOverridePublic(SQLModel):
    id: int
    start_time: datetime
    end_time: datetime
    type: str
