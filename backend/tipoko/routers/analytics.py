"""Creator analytics endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.config import settings
from tipoko.database import get_db
from tipoko.models.channel import Channel
from tipoko.models.user import User
from tipoko.auth.dependencies import get_current_active_user
from tipoko.services import analytics
from tipoko.services.videos import can_manage, get_channel_by_handle, get_video_with_channel

router = APIRouter()

PERIOD = Query(settings.ANALYTICS_DEFAULT_DAYS, ge=1, le=365, description="Window length in days")


async def _analytics_channel(db: AsyncSession, user: User, handle: Optional[str]) -> Channel:
    """The channel named by ``handle``, or the caller's first channel; owner or admin only."""
    if handle:
        channel = await get_channel_by_handle(db, handle)
    else:
        result = await db.execute(
            select(Channel).where(Channel.user_id == user.uuid).order_by(Channel.created_at).limit(1)
        )
        channel = result.scalar_one_or_none()
        if channel is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Channel not found"
            )
    if not can_manage(user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to view analytics for this channel"
        )
    return channel


@router.get("/channel")
async def channel_analytics(
    days: int = PERIOD,
    channel: Optional[str] = Query(None, description="Channel handle"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    target = await _analytics_channel(db, current_user, channel)
    return await analytics.channel_analytics(db, target, days)


@router.get("/video/{video_id}")
async def video_analytics(
    video_id: str,
    days: int = PERIOD,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    video, channel = await get_video_with_channel(db, video_id)
    if not can_manage(current_user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to view analytics for this video"
        )
    return await analytics.video_analytics(db, video, days)


@router.get("/revenue")
async def revenue_analytics(
    days: int = PERIOD,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's own earnings over the period."""
    return await analytics.revenue_analytics(db, current_user, days)


@router.get("/realtime")
async def realtime_analytics(
    channel: Optional[str] = Query(None, description="Channel handle"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    target = await _analytics_channel(db, current_user, channel)
    return await analytics.realtime_analytics(db, target)


@router.get("/dashboard")
async def creator_dashboard(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    return await analytics.creator_dashboard(db, current_user)
