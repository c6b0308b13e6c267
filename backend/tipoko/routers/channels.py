"""Channel endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.database import get_db
from tipoko.models.channel import Channel
from tipoko.models.subscription import Subscription
from tipoko.models.user import User
from tipoko.models.video import Video
from tipoko.schemas.channels import ChannelCreate, ChannelUpdate, ChannelResponse, ChannelDetailResponse
from tipoko.schemas.videos import VideoResponse, VideoListResponse
from tipoko.auth.dependencies import get_current_active_user, get_optional_user
from tipoko.services.videos import (
    HIDDEN_STATUSES, listed_clause, owns_channel, can_manage, get_channel_by_handle,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/my", response_model=List[ChannelResponse])
async def list_my_channels(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Channels owned by the current user, oldest first."""
    result = await db.execute(
        select(Channel).where(Channel.user_id == current_user.uuid).order_by(Channel.created_at)
    )
    return result.scalars().all()


@router.post("", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def create_channel(
    channel_data: ChannelCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Create an additional channel for the current user."""
    result = await db.execute(select(Channel.uuid).where(Channel.handle == channel_data.handle))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Handle already taken"
        )

    channel = Channel(
        user_id=current_user.uuid,
        name=channel_data.name,
        handle=channel_data.handle,
        description=channel_data.description,
        country=channel_data.country.upper() if channel_data.country else None,
        avatar_url=channel_data.avatar_url,
        banner_url=channel_data.banner_url,
    )
    db.add(channel)
    await db.commit()
    await db.refresh(channel)
    logger.info(f"Channel @{channel.handle} created by {current_user.uuid}")
    return channel


@router.get("/{handle}", response_model=ChannelDetailResponse)
async def get_channel(
    handle: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Channel page, with the caller's subscription state."""
    channel = await get_channel_by_handle(db, handle)

    is_subscribed = False
    if current_user is not None:
        result = await db.execute(
            select(Subscription).where(
                Subscription.subscriber_id == current_user.uuid,
                Subscription.channel_id == channel.uuid,
            )
        )
        is_subscribed = result.scalar_one_or_none() is not None

    response = ChannelDetailResponse.model_validate(channel)
    response.is_subscribed = is_subscribed
    response.is_owner = owns_channel(current_user, channel)
    return response


@router.get("/{handle}/videos", response_model=VideoListResponse)
async def list_channel_videos(
    handle: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Videos of a channel, newest first.

    The owner also sees private, unlisted and processing videos.
    """
    channel = await get_channel_by_handle(db, handle)

    conditions = [Video.channel_id == channel.uuid]
    if owns_channel(current_user, channel):
        conditions.append(Video.status.not_in(HIDDEN_STATUSES))
    else:
        conditions.append(listed_clause())

    count_result = await db.execute(select(func.count(Video.uuid)).where(*conditions))
    total = count_result.scalar()

    result = await db.execute(
        select(Video)
        .where(*conditions)
        .order_by(desc(Video.created_at))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    videos = result.scalars().all()

    return VideoListResponse(
        items=[VideoResponse.model_validate(v) for v in videos],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size
    )


@router.put("/{handle}", response_model=ChannelResponse)
async def update_channel(
    handle: str,
    channel_update: ChannelUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    channel = await get_channel_by_handle(db, handle)
    if not owns_channel(current_user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to edit this channel"
        )

    for field, value in channel_update.model_dump(exclude_unset=True).items():
        if field == "country" and value:
            value = value.upper()
        setattr(channel, field, value)

    await db.commit()
    await db.refresh(channel)
    return channel


@router.delete("/{handle}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_channel(
    handle: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a channel and its videos (owner or admin)."""
    channel = await get_channel_by_handle(db, handle)
    if not can_manage(current_user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to delete this channel"
        )

    await db.delete(channel)
    await db.commit()
    logger.info(f"Channel @{channel.handle} deleted by {current_user.uuid}")
