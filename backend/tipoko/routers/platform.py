"""Public platform information for clients (no auth)."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.database import get_db
from tipoko.services.platform_settings import get_all_settings

router = APIRouter()


@router.get("/settings")
async def public_settings(db: AsyncSession = Depends(get_db)):
    """Settings flagged public, e.g. platform name and feature switches."""
    return await get_all_settings(db, public_only=True)
