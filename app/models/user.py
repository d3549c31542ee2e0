from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class User(SQLModel, table=True):
    """Back-office account. Every user manages the schedule and bookings."""

    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    full_name: str | None = None
    hashed_password: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime())


class UserPublic(SQLModel):
    id: int
    email: str
    full_name: str | None = None
