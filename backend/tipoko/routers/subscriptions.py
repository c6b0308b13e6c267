"""Channel subscription endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from tipoko.database import get_db
from tipoko.models.channel import Channel
from tipoko.models.subscription import Subscription
from tipoko.models.user import User
from tipoko.schemas.channels import ChannelResponse
from tipoko.auth.dependencies import get_current_active_user
from tipoko.services.notifications import notify

router = APIRouter()


async def _get_channel(db: AsyncSession, channel_id: str) -> Channel:
    channel = await db.get(Channel, channel_id)
    if channel is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Channel not found"
        )
    return channel


@router.get("", response_model=List[ChannelResponse])
async def list_subscriptions(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Channels the current user is subscribed to, most recent first."""
    result = await db.execute(
        select(Channel)
        .join(Subscription, Subscription.channel_id == Channel.uuid)
        .where(Subscription.subscriber_id == current_user.uuid)
        .order_by(desc(Subscription.created_at))
    )
    return result.scalars().all()


@router.post("/{channel_id}", status_code=status.HTTP_201_CREATED)
async def subscribe(
    channel_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Subscribe to a channel.

    - Own channels cannot be subscribed to
    - Subscribing twice is rejected
    """
    channel = await _get_channel(db, channel_id)

    if channel.user_id == current_user.uuid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot subscribe to your own channel"
        )

    if await db.get(Subscription, (current_user.uuid, channel.uuid)) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Already subscribed"
        )

    db.add(Subscription(subscriber_id=current_user.uuid, channel_id=channel.uuid))
    channel.subscriber_count = (channel.subscriber_count or 0) + 1
    await notify(
        db,
        channel.user_id,
        "subscription",
        "New subscriber",
        message=f"{current_user.display_name or current_user.username} subscribed to {channel.name}",
        link=f"/channel/{channel.handle}",
    )
    await db.commit()

    return {"subscribed": True, "subscriber_count": channel.subscriber_count}


@router.delete("/{channel_id}")
async def unsubscribe(
    channel_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    channel = await _get_channel(db, channel_id)

    subscription = await db.get(Subscription, (current_user.uuid, channel.uuid))
    if subscription is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not subscribed"
        )

    await db.delete(subscription)
    channel.subscriber_count = max((channel.subscriber_count or 0) - 1, 0)
    await db.commit()

    return {"subscribed": False, "subscriber_count": channel.subscriber_count}
