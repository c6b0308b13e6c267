"""Full-catalogue search over videos, channels and playlists."""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, case, desc, or_
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.models.channel import Channel
from tipoko.models.playlist import Playlist
from tipoko.models.video import Category, Tag, Video, VideoTag
from tipoko.services.videos import listed_clause

# Results per secondary section when searching everything at once
MIXED_SECTION_LIMIT = 5

DURATION_FILTERS = {
    "short": lambda: Video.duration < 240,
    "medium": lambda: (Video.duration >= 240) & (Video.duration <= 1200),
    "long": lambda: Video.duration > 1200,
}

UPLOAD_WINDOWS = {
    "hour": timedelta(hours=1),
    "today": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


def _relevance(term: str):
    """Exact title match ranks above a title prefix, then any title hit, then description/tag hits."""
    return case(
        (Video.title.ilike(term), 3),
        (Video.title.ilike(f"{term}%"), 2),
        (Video.title.ilike(f"%{term}%"), 1),
        else_=0,
    )


async def search_videos(
    db: AsyncSession,
    term: str,
    sort: str = "relevance",
    duration: Optional[str] = None,
    upload_date: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
    now: Optional[datetime] = None,
) -> list[Video]:
    pattern = f"%{term}%"
    tagged = (
        select(VideoTag.video_id)
        .join(Tag, Tag.id == VideoTag.tag_id)
        .where(Tag.name.ilike(pattern))
    )
    query = select(Video).where(
        listed_clause(),
        or_(Video.title.ilike(pattern), Video.description.ilike(pattern), Video.uuid.in_(tagged)),
    )

    if duration in DURATION_FILTERS:
        query = query.where(DURATION_FILTERS[duration]())
    if upload_date in UPLOAD_WINDOWS:
        query = query.where(Video.published_at >= (now or datetime.utcnow()) - UPLOAD_WINDOWS[upload_date])
    if category:
        query = query.join(Category, Category.id == Video.category_id).where(Category.slug == category)

    if sort == "date":
        query = query.order_by(desc(Video.published_at))
    elif sort == "views":
        query = query.order_by(desc(Video.view_count))
    elif sort == "rating":
        query = query.order_by(desc(Video.like_count))
    else:
        query = query.order_by(desc(_relevance(term)), desc(Video.view_count))

    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    return list(result.scalars().all())


async def search_channels(db: AsyncSession, term: str, limit: int) -> list[Channel]:
    pattern = f"%{term}%"
    result = await db.execute(
        select(Channel)
        .where(or_(Channel.name.ilike(pattern), Channel.handle.ilike(pattern), Channel.description.ilike(pattern)))
        .order_by(desc(Channel.subscriber_count))
        .limit(limit)
    )
    return list(result.scalars().all())


async def search_playlists(db: AsyncSession, term: str, limit: int) -> list[Playlist]:
    pattern = f"%{term}%"
    result = await db.execute(
        select(Playlist)
        .where(
            Playlist.visibility == "public",
            or_(Playlist.title.ilike(pattern), Playlist.description.ilike(pattern)),
        )
        .order_by(desc(Playlist.video_count))
        .limit(limit)
    )
    return list(result.scalars().all())


async def suggestions(db: AsyncSession, prefix: str) -> list[dict]:
    """Up to 5 video titles, 3 channel names and 3 tags starting with ``prefix``."""
    prefix = prefix.strip()
    if len(prefix) < 2:
        return []
    pattern = f"{prefix}%"

    videos = await db.execute(
        select(Video.title).where(listed_clause(), Video.title.ilike(pattern)).distinct().limit(5)
    )
    channels = await db.execute(
        select(Channel.name).where(Channel.name.ilike(pattern)).distinct().limit(3)
    )
    tags = await db.execute(
        select(Tag.name).where(Tag.name.ilike(pattern)).order_by(desc(Tag.usage_count)).limit(3)
    )
    return (
        [{"suggestion": title, "type": "video"} for title in videos.scalars().all()]
        + [{"suggestion": name, "type": "channel"} for name in channels.scalars().all()]
        + [{"suggestion": name, "type": "tag"} for name in tags.scalars().all()]
    )


async def trending_tags(db: AsyncSession, limit: int = 10) -> list[Tag]:
    result = await db.execute(
        select(Tag).where(Tag.usage_count > 0).order_by(desc(Tag.usage_count), Tag.name).limit(limit)
    )
    return list(result.scalars().all())
