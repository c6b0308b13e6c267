"""Notification feed producers."""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.models.channel import Channel
from tipoko.models.notification import Notification
from tipoko.models.subscription import Subscription
from tipoko.models.video import Video

logger = logging.getLogger(__name__)


async def notify(
    db: AsyncSession,
    user_id: str,
    type: str,
    title: str,
    message: Optional[str] = None,
    link: Optional[str] = None,
    thumbnail_url: Optional[str] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        link=link,
        thumbnail_url=thumbnail_url,
    )
    db.add(notification)
    return notification


async def notify_subscribers(db: AsyncSession, channel: Channel, video: Video) -> int:
    """
    Tell a channel's subscribers about a newly published video.

    Only subscriptions with notifications enabled are notified. Returns the
    number of notifications created.
    """
    result = await db.execute(
        select(Subscription.subscriber_id).where(
            Subscription.channel_id == channel.uuid,
            Subscription.notifications_enabled.is_(True),
        )
    )
    subscriber_ids = result.scalars().all()
    for subscriber_id in subscriber_ids:
        await notify(
            db,
            subscriber_id,
            "new_video",
            "New video",
            message=f"{channel.name} published: {video.title}",
            link=f"/watch/{video.uuid}",
            thumbnail_url=video.thumbnail_url,
        )
    if subscriber_ids:
        logger.info(f"Video {video.uuid}: notified {len(subscriber_ids)} subscribers of @{channel.handle}")
    return len(subscriber_ids)
