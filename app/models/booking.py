import secrets
from datetime import UTC, datetime
from enum import Enum

from pydantic import EmailStr
from sqlalchemy import DateTime, Index, text
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _calendar_token() -> str:
    return secrets.token_urlsafe(24)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# Statuses that occupy their slot_time
ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

_ACTIVE_ONLY = text("status <> 'cancelled'")


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # At most one non-cancelled booking per instant
        Index(
            "uq_bookings_active_slot_time",
            "slot_time",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    # Timestamps are naive UTC (TIMESTAMP WITHOUT TIME ZONE in the migration)
    slot_time: datetime = Field(index=True, sa_type=DateTime())
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    email: str = Field(max_length=320, index=True)
    notes: str | None = None
    status: str = Field(default=BookingStatus.PENDING.value, max_length=16, index=True)
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime())
    # Unguessable key for the public calendar download
    calendar_token: str = Field(default_factory=_calendar_token, max_length=64, unique=True, index=True)


class ClientDetails(SQLModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    notes: str | None = Field(default=None, max_length=2000)


class BookingCreate(SQLModel):
    slot_time: datetime
    client: ClientDetails


class BookingPublic(SQLModel):
    id: int
    slot_time: datetime
    first_name: str
    last_name: str
    email: str
    notes: str | None = None
    status: str
    created_at: datetime
    calendar_token: str
