"""Watch history, saved videos and video tags."""
from datetime import datetime
from typing import Iterable

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.models.library import WatchHistory
from tipoko.models.video import Tag, Video, VideoTag

# Share of the video that counts as watched to the end
COMPLETED_PERCENT = 90.0
MAX_TAGS = 15


def progress_percent(watch_time: int, duration: int) -> float:
    if not duration or duration <= 0:
        return 0.0
    return round(min(watch_time / duration * 100, 100.0), 2)


async def record_watch(db: AsyncSession, user_id: str, video: Video, watch_time: int) -> WatchHistory:
    """
    Upsert the user's history entry for a video.

    The entry moves to the top of the history on every call; watch time only
    grows.
    """
    entry = await db.get(WatchHistory, (user_id, video.uuid))
    if entry is None:
        entry = WatchHistory(user_id=user_id, video_id=video.uuid, watch_time=0)
        db.add(entry)

    entry.watch_time = max(entry.watch_time or 0, watch_time)
    entry.progress_percent = progress_percent(entry.watch_time, video.duration)
    entry.completed = entry.progress_percent >= COMPLETED_PERCENT
    entry.watched_at = datetime.utcnow()
    return entry


def normalize_tags(names: Iterable[str]) -> list[str]:
    """Lowercased, stripped, de-duplicated tags in input order, capped at MAX_TAGS."""
    seen = []
    for name in names:
        tag = " ".join(name.strip().lower().split()).lstrip("#")
        if tag and len(tag) <= 50 and tag not in seen:
            seen.append(tag)
    return seen[:MAX_TAGS]


async def set_tags(db: AsyncSession, video: Video, names: Iterable[str]) -> list[str]:
    """Replace a video's tags, keeping every tag's usage_count in step."""
    wanted = normalize_tags(names)

    current = await db.execute(
        select(Tag).join(VideoTag, VideoTag.tag_id == Tag.id).where(VideoTag.video_id == video.uuid)
    )
    current_tags = {tag.name: tag for tag in current.scalars().all()}

    removed = [tag for name, tag in current_tags.items() if name not in wanted]
    if removed:
        await db.execute(
            delete(VideoTag).where(
                VideoTag.video_id == video.uuid,
                VideoTag.tag_id.in_([tag.id for tag in removed]),
            )
        )
        for tag in removed:
            tag.usage_count = max((tag.usage_count or 0) - 1, 0)

    for name in wanted:
        if name in current_tags:
            continue
        result = await db.execute(select(Tag).where(Tag.name == name))
        tag = result.scalar_one_or_none()
        if tag is None:
            tag = Tag(name=name, usage_count=0)
            db.add(tag)
            await db.flush()
        tag.usage_count = (tag.usage_count or 0) + 1
        db.add(VideoTag(video_id=video.uuid, tag_id=tag.id))

    await db.flush()
    return wanted


async def get_tags(db: AsyncSession, video_id: str) -> list[str]:
    result = await db.execute(
        select(Tag.name)
        .join(VideoTag, VideoTag.tag_id == Tag.id)
        .where(VideoTag.video_id == video_id)
        .order_by(Tag.name)
    )
    return list(result.scalars().all())
