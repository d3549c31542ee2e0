import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from app.models.refresh_token import RefreshToken
from app.models.user import User, UserPublic

logger = logging.getLogger(__name__)

TokenBundle = tuple[User, str, str, int]


def _utc_naive() -> datetime:
    """Naive UTC datetime for DB columns that are TIMESTAMP WITHOUT TIME ZONE."""
    return datetime.now(UTC).replace(tzinfo=None)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def ensure_admin_user(session: AsyncSession, email: str, password: str) -> User | None:
    """Create the bootstrap admin account if it does not exist yet."""
    if not email or not password:
        return None
    existing = await get_user_by_email(session, email)
    if existing:
        return existing
    user = User(email=email.lower(), hashed_password=hash_password(password))
    session.add(user)
    await session.flush()
    await session.refresh(user)
    logger.info("Created admin account %s", user.email)
    return user


def user_to_public(user: User) -> UserPublic:
    return UserPublic(id=user.id, email=user.email, full_name=user.full_name)


async def _issue_tokens(session: AsyncSession, user: User) -> TokenBundle:
    access = create_access_token(user.id)
    refresh = create_refresh_token(user.id)
    _, jti = decode_refresh_token(refresh)
    expires_at = _utc_naive() + timedelta(days=settings.refresh_token_expire_days)
    session.add(RefreshToken(user_id=user.id, jti=jti, expires_at=expires_at))
    await session.flush()
    return user, access, refresh, settings.access_token_expire_minutes * 60


async def login_user(session: AsyncSession, email: str, password: str) -> TokenBundle | None:
    user = await get_user_by_email(session, email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return await _issue_tokens(session, user)


async def revoke_refresh_token(session: AsyncSession, jti: str) -> None:
    result = await session.execute(select(RefreshToken).where(RefreshToken.jti == jti))
    row = result.scalar_one_or_none()
    if row:
        row.revoked = True
        session.add(row)


async def refresh_tokens(session: AsyncSession, refresh_token: str) -> TokenBundle | None:
    """Rotate a refresh token: the presented one is revoked, a new pair issued."""
    user_id_str, jti = decode_refresh_token(refresh_token)
    if not user_id_str or not jti:
        return None
    result = await session.execute(select(RefreshToken).where(RefreshToken.jti == jti))
    token_row = result.scalar_one_or_none()
    if not token_row or not token_row.is_usable(datetime.now(UTC)):
        if token_row:
            logger.info("Rejected refresh for user %s: token revoked or expired", token_row.user_id)
        return None
    result = await session.execute(select(User).where(User.id == int(user_id_str)))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        return None
    token_row.revoked = True
    session.add(token_row)
    return await _issue_tokens(session, user)
