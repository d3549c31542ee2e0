from datetime import UTC, datetime, timedelta
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _encode(subject: str | int, token_type: str, expires_in: timedelta, **claims: str) -> str:
    payload = {
        "sub": str(subject),
        "exp": datetime.now(UTC) + expires_in,
        "type": token_type,
        **claims,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def _decode(token: str, token_type: str) -> dict | None:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != token_type or not payload.get("sub"):
        return None
    return payload


def create_access_token(admin_id: str | int) -> str:
    return _encode(admin_id, ACCESS_TOKEN, timedelta(minutes=settings.access_token_expire_minutes))


def create_refresh_token(admin_id: str | int) -> str:
    return _encode(
        admin_id,
        REFRESH_TOKEN,
        timedelta(days=settings.refresh_token_expire_days),
        jti=str(uuid4()),
    )


def decode_access_token(token: str) -> str | None:
    payload = _decode(token, ACCESS_TOKEN)
    return str(payload["sub"]) if payload else None


def decode_refresh_token(token: str) -> tuple[str | None, str | None]:
    """Returns (admin_id_str, jti) or (None, None)."""
    payload = _decode(token, REFRESH_TOKEN)
    if not payload:
        return None, None
    return str(payload["sub"]), payload.get("jti")
