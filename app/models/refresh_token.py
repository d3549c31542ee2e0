from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC)
    return dt.replace(tzinfo=None)


class RefreshToken(SQLModel, table=True):
    """Issued refresh token, tracked by jti so it can be rotated or revoked."""

    __tablename__ = "refresh_tokens"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    jti: str = Field(unique=True, index=True, max_length=64)
    expires_at: datetime = Field(index=True, sa_type=DateTime())
    revoked: bool = False

    def model_post_init(self, __context: object) -> None:
        if self.expires_at is not None:
            self.expires_at = _as_naive_utc(self.expires_at)

    def is_usable(self, now: datetime) -> bool:
        return not self.revoked and self.expires_at > _as_naive_utc(now)
