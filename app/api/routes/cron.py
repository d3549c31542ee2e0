import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cron", tags=["cron"])


@router.get("/keep-alive")
async def keep_alive(
    secret: str = Query(...),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Cheap read so an external scheduler can keep the database warm."""
    expected = settings.cron_secret
    if not expected or not secrets.compare_digest(secret.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret")
    await session.execute(text("SELECT 1"))
    return {"message": "Database pinged successfully"}
