"""Video lookup and visibility rules shared by the catalogue routers."""
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.models.channel import Channel
from tipoko.models.user import User
from tipoko.models.video import Video

# Statuses never shown outside the admin console
HIDDEN_STATUSES = ("deleted", "blocked")


def listed_clause():
    """Videos that appear in public listings."""
    return (Video.status == "published") & (Video.visibility == "public")


def owns_channel(user: Optional[User], channel: Channel) -> bool:
    return user is not None and channel.user_id == user.uuid


def can_manage(user: Optional[User], channel: Channel) -> bool:
    """Channel owner, or an admin."""
    return owns_channel(user, channel) or (user is not None and user.is_admin)


def can_view(video: Video, channel: Channel, user: Optional[User]) -> bool:
    """Private videos are visible to their owner only; unlisted ones to anyone with the link."""
    if video.status in HIDDEN_STATUSES:
        return False
    if owns_channel(user, channel):
        return True
    return video.visibility != "private" and video.status == "published"


async def get_video_with_channel(db: AsyncSession, video_id: str) -> tuple[Video, Channel]:
    """Fetch a video and its channel, 404 when missing or deleted."""
    result = await db.execute(
        select(Video, Channel)
        .join(Channel, Channel.uuid == Video.channel_id)
        .where(Video.uuid == video_id)
    )
    row = result.first()
    if row is None or row[0].status == "deleted":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found"
        )
    return row[0], row[1]


async def get_viewable_video(db: AsyncSession, video_id: str, user: Optional[User]) -> tuple[Video, Channel]:
    video, channel = await get_video_with_channel(db, video_id)
    if not can_view(video, channel, user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found"
        )
    return video, channel


async def get_channel_by_handle(db: AsyncSession, handle: str) -> Channel:
    result = await db.execute(select(Channel).where(Channel.handle == handle.lower()))
    channel = result.scalar_one_or_none()
    if channel is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Channel not found"
        )
    return channel


def parse_user_agent(user_agent: Optional[str]) -> dict:
    """Rough browser / OS / device classification of a User-Agent header."""
    if not user_agent:
        return {"browser": None, "os": None, "device_type": "other"}

    if "Edg" in user_agent:
        browser = "Edge"
    elif "OPR" in user_agent or "Opera" in user_agent:
        browser = "Opera"
    elif "Chrome" in user_agent:
        browser = "Chrome"
    elif "Firefox" in user_agent:
        browser = "Firefox"
    elif "Safari" in user_agent:
        browser = "Safari"
    else:
        browser = "Other"

    if "Windows" in user_agent:
        os_name = "Windows"
    elif "Android" in user_agent:
        os_name = "Android"
    elif "iPhone" in user_agent or "iPad" in user_agent:
        os_name = "iOS"
    elif "Mac OS" in user_agent:
        os_name = "macOS"
    elif "Linux" in user_agent:
        os_name = "Linux"
    else:
        os_name = "Other"

    if "iPad" in user_agent or "Tablet" in user_agent:
        device_type = "tablet"
    elif "Mobile" in user_agent or "Android" in user_agent:
        device_type = "mobile"
    elif "SmartTV" in user_agent or "TV" in user_agent:
        device_type = "tv"
    else:
        device_type = "desktop"

    return {"browser": browser, "os": os_name, "device_type": device_type}
