"""
Creator analytics computed from watch sessions and the earnings ledger.

Time series are bucketed in Python rather than with database date
functions, so the same code runs on PostgreSQL and SQLite.
"""
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.config import settings
from tipoko.models.channel import Channel
from tipoko.models.comment import Comment
from tipoko.models.earning import UserEarning
from tipoko.models.library import Report
from tipoko.models.notification import Notification
from tipoko.models.subscription import Subscription
from tipoko.models.user import User
from tipoko.models.video import Video, VideoView

TOP_LIMIT = 10
# Watch-time distribution buckets, as a share of the video's duration
RETENTION_BUCKETS = ((0, 25), (25, 50), (50, 75), (75, 100))


def period_start(days: int, now: Optional[datetime] = None) -> datetime:
    """Midnight UTC at the start of a ``days`` long window ending today."""
    now = now or datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return today - timedelta(days=days - 1)


def _daily(start: datetime, days: int) -> dict:
    return {(start + timedelta(days=i)).date().isoformat(): 0 for i in range(days)}


def _top(counter: Counter, limit: int = TOP_LIMIT) -> list[dict]:
    return [{"name": name, "count": count} for name, count in counter.most_common(limit)]


def _viewer_key(view: VideoView) -> str:
    return view.user_id or view.session_id


def _internal_hosts() -> set[str]:
    return {urlparse(origin.strip()).netloc for origin in settings.CORS_ORIGINS.split(",") if origin.strip()}


def traffic_source(referrer: Optional[str]) -> str:
    """
    Classify a view's Referer header.

    Pages of our own front end map to search, suggested (another watch
    page), channel_page or browse; anything else is external.
    """
    if not referrer:
        return "direct"
    parsed = urlparse(referrer)
    if parsed.netloc not in _internal_hosts():
        return "external"
    if parsed.path.startswith("/search"):
        return "search"
    if parsed.path.startswith("/watch"):
        return "suggested"
    if parsed.path.startswith("/channel"):
        return "channel_page"
    return "browse"


async def _views_since(
    db: AsyncSession, start: datetime, channel_id: Optional[str] = None, video_id: Optional[str] = None
) -> list[VideoView]:
    query = select(VideoView).where(VideoView.viewed_at >= start)
    if channel_id:
        query = query.where(VideoView.channel_id == channel_id)
    if video_id:
        query = query.where(VideoView.video_id == video_id)
    result = await db.execute(query.order_by(VideoView.viewed_at))
    return list(result.scalars().all())


async def _returning_viewers(db: AsyncSession, channel_id: str, start: datetime, keys: set[str]) -> int:
    """How many of ``keys`` watched the channel before ``start``."""
    if not keys:
        return 0
    key = func.coalesce(VideoView.user_id, VideoView.session_id)
    result = await db.execute(
        select(key).where(VideoView.channel_id == channel_id, VideoView.viewed_at < start, key.in_(keys)).distinct()
    )
    return len(result.scalars().all())


async def channel_analytics(db: AsyncSession, channel: Channel, days: int, now: Optional[datetime] = None) -> dict:
    """Views, watch time, audience and subscriber growth for one channel."""
    start = period_start(days, now)
    views = await _views_since(db, start, channel_id=channel.uuid)

    views_per_day = _daily(start, days)
    minutes_per_day = _daily(start, days)
    by_hour = [0] * 24
    per_video = Counter()
    minutes_per_video = Counter()
    for view in views:
        day = view.viewed_at.date().isoformat()
        if day in views_per_day:
            views_per_day[day] += 1
            minutes_per_day[day] += (view.watch_duration or 0) / 60
        by_hour[view.viewed_at.hour] += 1
        per_video[view.video_id] += 1
        minutes_per_video[view.video_id] += (view.watch_duration or 0) / 60

    watch_seconds = sum(view.watch_duration or 0 for view in views)
    viewers = {_viewer_key(view) for view in views}
    returning = await _returning_viewers(db, channel.uuid, start, viewers)

    subs = await db.execute(
        select(Subscription.created_at).where(Subscription.channel_id == channel.uuid, Subscription.created_at >= start)
    )
    subs_per_day = _daily(start, days)
    for (created_at,) in subs.all():
        day = created_at.date().isoformat()
        if day in subs_per_day:
            subs_per_day[day] += 1

    top_ids = [video_id for video_id, _ in per_video.most_common(TOP_LIMIT)]
    titles = {}
    if top_ids:
        result = await db.execute(select(Video.uuid, Video.title).where(Video.uuid.in_(top_ids)))
        titles = dict(result.all())

    return {
        "channel_id": channel.uuid,
        "period_days": days,
        "totals": {
            "subscribers": channel.subscriber_count or 0,
            "videos": channel.video_count or 0,
            "lifetime_views": channel.total_views or 0,
        },
        "views": len(views),
        "watch_time_minutes": round(watch_seconds / 60, 1),
        "average_watch_seconds": round(watch_seconds / len(views), 1) if views else 0.0,
        "unique_viewers": len(viewers),
        "new_viewers": len(viewers) - returning,
        "returning_viewers": returning,
        "subscribers_gained": sum(subs_per_day.values()),
        "views_over_time": [
            {"date": day, "views": count, "watch_minutes": round(minutes_per_day[day], 1)}
            for day, count in views_per_day.items()
        ],
        "subscriber_growth": [{"date": day, "subscribers": count} for day, count in subs_per_day.items()],
        "views_by_hour": [{"hour": hour, "views": count} for hour, count in enumerate(by_hour)],
        "top_videos": [
            {
                "video_id": video_id,
                "title": titles.get(video_id),
                "views": count,
                "watch_minutes": round(minutes_per_video[video_id], 1),
            }
            for video_id, count in per_video.most_common(TOP_LIMIT)
        ],
        "countries": _top(Counter(view.country or "unknown" for view in views)),
        "devices": _top(Counter(view.device_type or "other" for view in views)),
        "browsers": _top(Counter(view.browser or "unknown" for view in views)),
        "operating_systems": _top(Counter(view.os or "unknown" for view in views)),
        "traffic_sources": _top(Counter(traffic_source(view.referrer) for view in views)),
    }


def retention_bucket(watch_seconds: int, duration: int) -> int:
    """Index into RETENTION_BUCKETS for one session."""
    if not duration:
        return 0
    percent = min(watch_seconds / duration * 100, 100)
    for index, (_, upper) in enumerate(RETENTION_BUCKETS):
        if percent < upper:
            return index
    return len(RETENTION_BUCKETS) - 1


async def video_analytics(db: AsyncSession, video: Video, days: int, now: Optional[datetime] = None) -> dict:
    """Per-video views, retention and engagement."""
    start = period_start(days, now)
    views = await _views_since(db, start, video_id=video.uuid)

    views_per_day = _daily(start, days)
    buckets = [0] * len(RETENTION_BUCKETS)
    for view in views:
        day = view.viewed_at.date().isoformat()
        if day in views_per_day:
            views_per_day[day] += 1
        buckets[retention_bucket(view.watch_duration or 0, video.duration)] += 1

    watch_seconds = sum(view.watch_duration or 0 for view in views)
    average = watch_seconds / len(views) if views else 0.0
    likes, dislikes = video.like_count or 0, video.dislike_count or 0
    reactions = likes + dislikes
    engagements = likes + (video.comment_count or 0) + (video.share_count or 0)
    lifetime_views = video.view_count or 0

    return {
        "video_id": video.uuid,
        "period_days": days,
        "views": len(views),
        "watch_time_minutes": round(watch_seconds / 60, 1),
        "average_watch_seconds": round(average, 1),
        "average_percent_viewed": round(min(average / video.duration * 100, 100), 1) if video.duration else 0.0,
        "views_over_time": [{"date": day, "views": count} for day, count in views_per_day.items()],
        "retention": [
            {"range": f"{low}-{high}%", "sessions": count}
            for (low, high), count in zip(RETENTION_BUCKETS, buckets)
        ],
        "engagement": {
            "views": lifetime_views,
            "likes": likes,
            "dislikes": dislikes,
            "comments": video.comment_count or 0,
            "shares": video.share_count or 0,
            "like_ratio": round(likes / reactions * 100, 1) if reactions else 0.0,
            "engagement_rate": round(engagements / lifetime_views * 100, 2) if lifetime_views else 0.0,
        },
    }


async def revenue_analytics(db: AsyncSession, user: User, days: int, now: Optional[datetime] = None) -> dict:
    """
    Earnings over a period, read from the user_earnings ledger.

    Unverified users do not accrue earnings, so they get an empty report
    flagged ``monetized: False``.
    """
    start = period_start(days, now)
    report = {
        "monetized": bool(user.is_verified),
        "currency": settings.EARNINGS_CURRENCY,
        "period_days": days,
        "period_total": 0.0,
        "total_earnings": round(user.total_earnings or 0.0, 2),
        "pending_earnings": round(user.pending_earnings or 0.0, 2),
        "paid_earnings": round(user.paid_earnings or 0.0, 2),
        "revenue_over_time": [],
        "by_type": [],
        "top_videos": [],
    }
    if not user.is_verified:
        return report

    result = await db.execute(
        select(UserEarning).where(UserEarning.user_id == user.uuid, UserEarning.created_at >= start)
    )
    earnings = result.scalars().all()

    per_day = {day: 0.0 for day in _daily(start, days)}
    by_type = Counter()
    by_video = Counter()
    for earning in earnings:
        day = earning.created_at.date().isoformat()
        if day in per_day:
            per_day[day] += earning.amount
        by_type[earning.earning_type] += earning.amount
        if earning.video_id:
            by_video[earning.video_id] += earning.amount

    titles = {}
    if by_video:
        rows = await db.execute(select(Video.uuid, Video.title).where(Video.uuid.in_(list(by_video))))
        titles = dict(rows.all())

    report.update(
        period_total=round(sum(earning.amount for earning in earnings), 2),
        revenue_over_time=[{"date": day, "amount": round(amount, 2)} for day, amount in per_day.items()],
        by_type=[{"type": kind, "amount": round(amount, 2)} for kind, amount in by_type.most_common()],
        top_videos=[
            {"video_id": video_id, "title": titles.get(video_id), "amount": round(amount, 2)}
            for video_id, amount in by_video.most_common(TOP_LIMIT)
        ],
    )
    return report


async def realtime_analytics(db: AsyncSession, channel: Channel, now: Optional[datetime] = None) -> dict:
    """Views started in the last hour, per minute, and sessions still reporting progress."""
    now = now or datetime.utcnow()
    hour_ago = now - timedelta(hours=1)
    views = await _views_since(db, hour_ago, channel_id=channel.uuid)

    per_minute = [0] * 60
    for view in views:
        minutes_ago = int((now - view.viewed_at).total_seconds() // 60)
        if 0 <= minutes_ago < 60:
            per_minute[59 - minutes_ago] += 1

    active_since = now - timedelta(minutes=settings.REALTIME_ACTIVE_MINUTES)
    watching = await db.execute(
        select(func.count(VideoView.id)).where(
            VideoView.channel_id == channel.uuid,
            VideoView.last_seen_at >= active_since,
        )
    )
    return {
        "channel_id": channel.uuid,
        "views_last_hour": len(views),
        "views_per_minute": per_minute,
        "watching_now": watching.scalar() or 0,
    }


async def creator_dashboard(db: AsyncSession, user: User, limit: int = TOP_LIMIT) -> dict:
    """Summary across all of a user's channels: counters, reports and recent activity."""
    channels = (await db.execute(select(Channel).where(Channel.user_id == user.uuid))).scalars().all()
    channel_ids = [channel.uuid for channel in channels]

    video_ids = []
    if channel_ids:
        result = await db.execute(
            select(Video.uuid).where(Video.channel_id.in_(channel_ids), Video.status != "deleted")
        )
        video_ids = list(result.scalars().all())

    reports = {"pending": 0, "total": 0, "recent": []}
    activity = []
    if video_ids:
        counts = await db.execute(
            select(Report.status, func.count(Report.uuid))
            .where(Report.content_type == "video", Report.content_id.in_(video_ids))
            .group_by(Report.status)
        )
        by_status = dict(counts.all())
        recent = await db.execute(
            select(Report)
            .where(Report.content_type == "video", Report.content_id.in_(video_ids))
            .order_by(desc(Report.created_at))
            .limit(5)
        )
        reports = {
            "pending": by_status.get("pending", 0),
            "total": sum(by_status.values()),
            "recent": [
                {"video_id": r.content_id, "reason": r.reason, "status": r.status, "created_at": r.created_at}
                for r in recent.scalars().all()
            ],
        }

        comments = await db.execute(
            select(Comment, User.username)
            .join(User, User.uuid == Comment.user_id)
            .where(Comment.video_id.in_(video_ids), Comment.is_deleted.is_(False), Comment.user_id != user.uuid)
            .order_by(desc(Comment.created_at))
            .limit(limit)
        )
        activity += [
            {"type": "comment", "username": username, "video_id": comment.video_id, "created_at": comment.created_at}
            for comment, username in comments.all()
        ]

    if channel_ids:
        subs = await db.execute(
            select(Subscription, User.username)
            .join(User, User.uuid == Subscription.subscriber_id)
            .where(Subscription.channel_id.in_(channel_ids))
            .order_by(desc(Subscription.created_at))
            .limit(limit)
        )
        activity += [
            {"type": "subscription", "username": username, "channel_id": sub.channel_id, "created_at": sub.created_at}
            for sub, username in subs.all()
        ]
    activity.sort(key=lambda item: item["created_at"], reverse=True)

    unread = await db.execute(
        select(func.count(Notification.uuid)).where(
            Notification.user_id == user.uuid, Notification.is_read.is_(False)
        )
    )

    return {
        "channels": len(channels),
        "videos": len(video_ids),
        "subscribers": sum(channel.subscriber_count or 0 for channel in channels),
        "total_views": sum(channel.total_views or 0 for channel in channels),
        "unread_notifications": unread.scalar() or 0,
        "pending_earnings": round(user.pending_earnings or 0.0, 2),
        "paid_earnings": round(user.paid_earnings or 0.0, 2),
        "reports": reports,
        "recent_activity": activity[:limit],
    }
