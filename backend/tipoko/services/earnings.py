"""Creator earnings: real-time accrual, weekly rollups and approval.

Rates come from ``Settings`` (all amounts in ``EARNINGS_CURRENCY``):

- each view earns ``EARNING_PER_VIEW`` plus ``EARNING_PER_WATCH_MINUTE`` for
  every full minute watched
- the view amount is multiplied by ``1 + EARNING_ENGAGEMENT_BONUS`` when the
  viewer watched at least ``EARNING_MIN_RETENTION_FOR_BONUS`` of the video
- likes, comments and shares earn a flat per-unit amount

Only verified creators accrue earnings. Statuses move forward only:
pending -> approved -> paid.
"""
import logging
import math
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Optional, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.config import settings
from tipoko.models.channel import Channel
from tipoko.models.earning import UserEarning, WeeklyEarning, EARNING_STATUSES, ENGAGEMENT_TYPES
from tipoko.models.user import User
from tipoko.models.video import Video, VideoView

logger = logging.getLogger(__name__)


class InvalidStatusTransition(ValueError):
    """Raised when an earning or rollup status would move backwards."""


def advance_status(current: str, target: str) -> str:
    """
    Validate a status change along pending -> approved -> paid.

    Staying in the same status is allowed; moving backwards is not.
    """
    if current not in EARNING_STATUSES or target not in EARNING_STATUSES:
        raise InvalidStatusTransition(f"Unknown earning status: {current!r} -> {target!r}")
    if EARNING_STATUSES.index(target) < EARNING_STATUSES.index(current):
        raise InvalidStatusTransition(f"Cannot move earning status from {current} to {target}")
    return target


def get_rates() -> dict:
    """Current rate table, as exposed to creators and admins."""
    return {
        "currency": settings.EARNINGS_CURRENCY,
        "per_view": settings.EARNING_PER_VIEW,
        "per_watch_minute": settings.EARNING_PER_WATCH_MINUTE,
        "engagement_bonus": settings.EARNING_ENGAGEMENT_BONUS,
        "min_retention_for_bonus": settings.EARNING_MIN_RETENTION_FOR_BONUS,
        "per_like": settings.EARNING_PER_LIKE,
        "per_comment": settings.EARNING_PER_COMMENT,
        "per_share": settings.EARNING_PER_SHARE,
        "min_payout": settings.EARNING_MIN_PAYOUT,
    }


def _engagement_rate(kind: str) -> float:
    return {
        "like": settings.EARNING_PER_LIKE,
        "comment": settings.EARNING_PER_COMMENT,
        "share": settings.EARNING_PER_SHARE,
    }.get(kind, 0.0)


def get_week_bounds(when: Union[date, datetime, None] = None) -> tuple[datetime, datetime]:
    """Monday 00:00:00 to Sunday 23:59:59.999999 of the week containing ``when``."""
    if when is None:
        when = datetime.utcnow()
    day = when.date() if isinstance(when, datetime) else when
    monday = day - timedelta(days=day.weekday())
    week_start = datetime(monday.year, monday.month, monday.day)
    week_end = week_start + timedelta(days=7) - timedelta(microseconds=1)
    return week_start, week_end


def get_week_number(when: Union[date, datetime, None] = None) -> str:
    """ISO week label, e.g. ``2024-W07``."""
    if when is None:
        when = datetime.utcnow()
    iso_year, iso_week, _ = when.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def compute_view_amount(watch_seconds: float, duration: float) -> float:
    """Earning for a single view watched for ``watch_seconds`` of a ``duration`` second video."""
    watch_minutes = math.floor(max(watch_seconds, 0) / 60)
    amount = settings.EARNING_PER_VIEW + watch_minutes * settings.EARNING_PER_WATCH_MINUTE
    retention = min(watch_seconds / duration, 1.0) if duration and duration > 0 else 0.0
    if retention >= settings.EARNING_MIN_RETENTION_FOR_BONUS:
        amount *= 1 + settings.EARNING_ENGAGEMENT_BONUS
    return round(amount, 2)


async def _get_creator(db: AsyncSession, video: Video) -> Optional[User]:
    """Owner of the video's channel, locked for update."""
    result = await db.execute(
        select(User)
        .join(Channel, Channel.user_id == User.uuid)
        .where(Channel.uuid == video.channel_id)
        .with_for_update(of=User)
    )
    return result.scalar_one_or_none()


async def _week_rolled_up(db: AsyncSession, user_id: str, when: datetime) -> bool:
    result = await db.execute(
        select(func.count(WeeklyEarning.uuid)).where(
            WeeklyEarning.user_id == user_id,
            WeeklyEarning.week_number == get_week_number(when),
        )
    )
    return bool(result.scalar())


def _apply_to_totals(user: User, amount: float) -> None:
    user.total_earnings = round((user.total_earnings or 0.0) + amount, 2)
    user.pending_earnings = round((user.pending_earnings or 0.0) + amount, 2)


async def track_video_view(
    db: AsyncSession,
    video: Video,
    session_id: str,
    watch_seconds: float,
) -> Optional[dict]:
    """
    Accrue (or re-accrue) the view earning of one watch session.

    Returns None when nothing was earned: unverified creator or no watch time.
    Repeated calls for the same session update the existing pending earning
    and apply only the difference to the creator's totals.
    """
    if not watch_seconds or watch_seconds <= 0:
        return None

    creator = await _get_creator(db, video)
    if creator is None or not creator.is_verified:
        return None

    amount = compute_view_amount(watch_seconds, video.duration or 0)
    watch_minutes = math.floor(watch_seconds / 60)
    retention = min(watch_seconds / video.duration, 1.0) if video.duration else 0.0
    description = f"View - {watch_minutes} min ({round(retention * 100)}% retention)"

    result = await db.execute(
        select(UserEarning)
        .where(
            UserEarning.user_id == creator.uuid,
            UserEarning.video_id == video.uuid,
            UserEarning.session_id == session_id,
            UserEarning.earning_type == "view",
        )
        .order_by(UserEarning.created_at.desc())
        .limit(1)
    )
    earning = result.scalar_one_or_none()

    if earning is not None:
        if earning.status != "pending" or await _week_rolled_up(db, creator.uuid, earning.created_at):
            # Approved, paid or already in a weekly rollup: the session is settled
            return {"earning_id": earning.uuid, "amount": earning.amount, "watch_minutes": watch_minutes,
                    "retention": round(retention * 100), "updated": False}
        difference = round(amount - earning.amount, 2)
        earning.amount = amount
        earning.description = description
        if difference:
            _apply_to_totals(creator, difference)
        await db.flush()
        return {"earning_id": earning.uuid, "amount": amount, "watch_minutes": watch_minutes,
                "retention": round(retention * 100), "updated": True}

    earning = UserEarning(
        user_id=creator.uuid,
        video_id=video.uuid,
        session_id=session_id,
        earning_type="view",
        amount=amount,
        currency=settings.EARNINGS_CURRENCY,
        description=description,
        status="pending",
    )
    db.add(earning)
    _apply_to_totals(creator, amount)
    await db.flush()
    return {"earning_id": earning.uuid, "amount": amount, "watch_minutes": watch_minutes,
            "retention": round(retention * 100), "updated": False}


async def track_engagement(
    db: AsyncSession,
    video: Video,
    kind: str,
    actor_id: Optional[str] = None,
) -> Optional[dict]:
    """
    Accrue a like, comment or share bonus for the video's creator.

    A like earns once per (actor, video): un-liking and liking again does
    not accrue a second bonus.
    """
    if kind not in ENGAGEMENT_TYPES:
        raise ValueError(f"Unknown engagement type: {kind}")
    amount = _engagement_rate(kind)
    if amount <= 0:
        return None

    creator = await _get_creator(db, video)
    if creator is None or not creator.is_verified:
        return None

    if kind == "like" and actor_id is not None:
        already = await db.execute(
            select(func.count(UserEarning.uuid)).where(
                UserEarning.video_id == video.uuid,
                UserEarning.earning_type == "like",
                UserEarning.actor_id == actor_id,
            )
        )
        if already.scalar():
            return None

    earning = UserEarning(
        user_id=creator.uuid,
        video_id=video.uuid,
        actor_id=actor_id,
        earning_type=kind,
        amount=amount,
        currency=settings.EARNINGS_CURRENCY,
        description=f"Engagement - {kind}",
        status="pending",
    )
    db.add(earning)
    _apply_to_totals(creator, amount)
    await db.flush()
    return {"earning_id": earning.uuid, "amount": amount, "type": kind}


async def calculate_user_earnings(
    db: AsyncSession,
    user_id: str,
    start: datetime,
    end: datetime,
) -> dict:
    """Earnings the view formula yields for the user's videos watched in [start, end]."""
    result = await db.execute(
        select(
            Video.uuid,
            Video.title,
            Video.duration,
            func.count(VideoView.id),
            func.coalesce(func.sum(VideoView.watch_duration), 0),
        )
        .join(VideoView, VideoView.video_id == Video.uuid)
        .join(Channel, Channel.uuid == Video.channel_id)
        .where(
            Channel.user_id == user_id,
            VideoView.viewed_at >= start,
            VideoView.viewed_at <= end,
        )
        .group_by(Video.uuid, Video.title, Video.duration)
    )

    total_views = 0
    total_watch_minutes = 0
    total_earnings = 0.0
    details = []

    for video_id, title, duration, views, watch_seconds in result.all():
        views = int(views or 0)
        watch_seconds = float(watch_seconds or 0)
        watch_minutes = math.floor(watch_seconds / 60)
        average_watch = watch_seconds / views if views else 0.0
        retention = min(average_watch / duration, 1.0) if duration else 0.0

        amount = views * settings.EARNING_PER_VIEW + watch_minutes * settings.EARNING_PER_WATCH_MINUTE
        if retention >= settings.EARNING_MIN_RETENTION_FOR_BONUS:
            amount *= 1 + settings.EARNING_ENGAGEMENT_BONUS

        total_views += views
        total_watch_minutes += watch_minutes
        total_earnings += amount
        details.append({
            "video_id": video_id,
            "video_title": title,
            "views": views,
            "watch_minutes": watch_minutes,
            "retention": round(retention * 100),
            "earnings": round(amount, 2),
        })

    return {
        "total_views": total_views,
        "total_watch_minutes": total_watch_minutes,
        "total_earnings": round(total_earnings, 2),
        "details": details,
        "period": {"start": start, "end": end},
    }


async def _ledger_sum(db: AsyncSession, user_id: str, start: datetime, end: datetime) -> float:
    result = await db.execute(
        select(func.coalesce(func.sum(UserEarning.amount), 0.0)).where(
            UserEarning.user_id == user_id,
            UserEarning.created_at >= start,
            UserEarning.created_at <= end,
        )
    )
    return round(float(result.scalar() or 0.0), 2)


async def calculate_weekly_earnings(db: AsyncSession, week_date: Union[date, datetime, None] = None) -> dict:
    """
    Create the weekly rollup of every verified creator for the ISO week of ``week_date``.

    The rollup amount is the sum of earnings accrued during the week; view and
    watch-minute counts come from the week's watch sessions. Users that
    already have a rollup for the week are skipped, so re-running is a no-op.
    """
    week_start, week_end = get_week_bounds(week_date)
    week_number = get_week_number(week_start)
    logger.info(f"Calculating weekly earnings for {week_number} ({week_start} - {week_end})")

    existing = await db.execute(
        select(WeeklyEarning.user_id).where(WeeklyEarning.week_number == week_number)
    )
    already_done = set(existing.scalars().all())

    users = await db.execute(select(User).where(User.is_verified.is_(True)))

    results = []
    skipped = 0
    for user in users.scalars().all():
        if user.uuid in already_done:
            skipped += 1
            continue

        amount = await _ledger_sum(db, user.uuid, week_start, week_end)
        if amount <= 0:
            continue
        stats = await calculate_user_earnings(db, user.uuid, week_start, week_end)

        rollup = WeeklyEarning(
            user_id=user.uuid,
            week_number=week_number,
            week_start=week_start,
            week_end=week_end,
            total_views=stats["total_views"],
            total_watch_minutes=stats["total_watch_minutes"],
            total_earnings=amount,
            status="pending",
        )
        db.add(rollup)

        results.append({
            "user_id": user.uuid,
            "username": user.username,
            "earnings": amount,
            "views": stats["total_views"],
            "watch_minutes": stats["total_watch_minutes"],
        })

    await db.flush()
    logger.info(f"Weekly earnings {week_number}: {len(results)} rollups created, {skipped} already present")
    return {"week": week_number, "week_start": week_start, "week_end": week_end,
            "created": len(results), "skipped": skipped, "results": results}


async def get_user_weekly_earnings(db: AsyncSession, user_id: str, weeks: int = 12) -> list[dict]:
    """Per-week sums of the user's earnings over the last ``weeks`` weeks, newest first."""
    current_start, _ = get_week_bounds()
    since = current_start - timedelta(weeks=max(weeks, 1) - 1)

    result = await db.execute(
        select(UserEarning)
        .where(UserEarning.user_id == user_id, UserEarning.created_at >= since)
        .order_by(UserEarning.created_at.desc())
    )

    buckets: "OrderedDict[str, dict]" = OrderedDict()
    for earning in result.scalars().all():
        label = get_week_number(earning.created_at)
        if label not in buckets:
            week_start, week_end = get_week_bounds(earning.created_at)
            buckets[label] = {
                "week_number": label,
                "week_start": week_start,
                "week_end": week_end,
                "total": 0.0,
                "view_earnings": 0.0,
                "ad_earnings": 0.0,
                "engagement_earnings": 0.0,
                "transactions": 0,
            }
        bucket = buckets[label]
        bucket["total"] += earning.amount
        if earning.earning_type == "view":
            bucket["view_earnings"] += earning.amount
        elif earning.earning_type == "ad":
            bucket["ad_earnings"] += earning.amount
        elif earning.earning_type in ENGAGEMENT_TYPES:
            bucket["engagement_earnings"] += earning.amount
        bucket["transactions"] += 1

    weekly = sorted(buckets.values(), key=lambda b: b["week_start"], reverse=True)
    for bucket in weekly:
        for key in ("total", "view_earnings", "ad_earnings", "engagement_earnings"):
            bucket[key] = round(bucket[key], 2)
    return weekly


async def _week_stats(db: AsyncSession, user_id: str, start: datetime, end: datetime) -> dict:
    views = await db.execute(
        select(func.count(VideoView.id), func.coalesce(func.sum(VideoView.watch_duration), 0))
        .join(Channel, Channel.uuid == VideoView.channel_id)
        .where(Channel.user_id == user_id, VideoView.viewed_at >= start, VideoView.viewed_at <= end)
    )
    view_count, watch_seconds = views.one()

    by_type = await db.execute(
        select(UserEarning.earning_type, func.count(UserEarning.uuid))
        .where(
            UserEarning.user_id == user_id,
            UserEarning.created_at >= start,
            UserEarning.created_at <= end,
        )
        .group_by(UserEarning.earning_type)
    )
    counts = dict(by_type.all())

    return {
        "week_number": get_week_number(start),
        "week_start": start,
        "week_end": end,
        "total_earnings": await _ledger_sum(db, user_id, start, end),
        "total_views": int(view_count or 0),
        "total_watch_minutes": math.floor(float(watch_seconds or 0) / 60),
        "likes": int(counts.get("like", 0)),
        "comments": int(counts.get("comment", 0)),
        "shares": int(counts.get("share", 0)),
    }


async def get_realtime_stats(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> dict:
    """Lifetime totals, current and previous week, trend and weekly projection."""
    now = now or datetime.utcnow()

    user = await db.get(User, user_id)
    totals = await db.execute(
        select(func.count(Video.uuid), func.coalesce(func.sum(Video.view_count), 0))
        .join(Channel, Channel.uuid == Video.channel_id)
        .where(Channel.user_id == user_id, Video.status != "deleted")
    )
    total_videos, total_views = totals.one()

    week_start, week_end = get_week_bounds(now)
    previous_start, previous_end = get_week_bounds(now - timedelta(days=7))

    current_week = await _week_stats(db, user_id, week_start, week_end)
    last_week = await _week_stats(db, user_id, previous_start, previous_end)

    if last_week["total_earnings"] > 0:
        trend = (current_week["total_earnings"] - last_week["total_earnings"]) / last_week["total_earnings"] * 100
    else:
        trend = 0.0

    days_completed = min(7, math.ceil((now - week_start).total_seconds() / 86400))
    projected = current_week["total_earnings"] / days_completed * 7 if days_completed > 0 else 0.0
    current_week["days_completed"] = days_completed
    current_week["estimated_total"] = round(projected, 2)

    return {
        "global": {
            "total_videos": int(total_videos or 0),
            "total_views": int(total_views or 0),
            "total_earnings": round(user.total_earnings or 0.0, 2) if user else 0.0,
            "pending_earnings": round(user.pending_earnings or 0.0, 2) if user else 0.0,
            "paid_earnings": round(user.paid_earnings or 0.0, 2) if user else 0.0,
        },
        "current_week": current_week,
        "last_week": last_week,
        "trend": round(trend, 1),
        "rates": get_rates(),
    }


async def get_earnings_summary(db: AsyncSession, user: User) -> dict:
    """Totals for the creator dashboard: by type, by status and payout eligibility."""
    by_type = await db.execute(
        select(UserEarning.earning_type, func.coalesce(func.sum(UserEarning.amount), 0.0), func.count(UserEarning.uuid))
        .where(UserEarning.user_id == user.uuid)
        .group_by(UserEarning.earning_type)
    )
    by_status = await db.execute(
        select(UserEarning.status, func.coalesce(func.sum(UserEarning.amount), 0.0))
        .where(UserEarning.user_id == user.uuid)
        .group_by(UserEarning.status)
    )
    pending = round(user.pending_earnings or 0.0, 2)
    return {
        "currency": settings.EARNINGS_CURRENCY,
        "total_earnings": round(user.total_earnings or 0.0, 2),
        "pending_earnings": pending,
        "paid_earnings": round(user.paid_earnings or 0.0, 2),
        "by_type": {t: {"amount": round(float(a), 2), "count": int(c)} for t, a, c in by_type.all()},
        "by_status": {s: round(float(a), 2) for s, a in by_status.all()},
        "min_payout": settings.EARNING_MIN_PAYOUT,
        "eligible_for_payout": pending >= settings.EARNING_MIN_PAYOUT,
    }


async def get_pending_payouts(db: AsyncSession) -> list[User]:
    """Verified creators whose unpaid balance reached the minimum payout, largest first."""
    result = await db.execute(
        select(User)
        .where(
            User.is_verified.is_(True),
            User.pending_earnings >= settings.EARNING_MIN_PAYOUT,
        )
        .order_by(User.pending_earnings.desc())
    )
    return list(result.scalars().all())


async def approve_user_earnings(db: AsyncSession, user_id: str) -> dict:
    """Move all pending earnings and weekly rollups of a user to approved."""
    earnings = await db.execute(
        select(UserEarning).where(UserEarning.user_id == user_id, UserEarning.status == "pending")
    )
    approved_earnings = 0
    approved_amount = 0.0
    for earning in earnings.scalars().all():
        earning.status = advance_status(earning.status, "approved")
        approved_earnings += 1
        approved_amount += earning.amount

    rollups = await db.execute(
        select(WeeklyEarning).where(WeeklyEarning.user_id == user_id, WeeklyEarning.status == "pending")
    )
    approved_weeks = 0
    for rollup in rollups.scalars().all():
        rollup.status = advance_status(rollup.status, "approved")
        approved_weeks += 1

    await db.flush()
    logger.info(f"Approved {approved_earnings} earnings ({approved_amount:.2f}) and {approved_weeks} weeks for user {user_id}")
    return {
        "approved_earnings": approved_earnings,
        "approved_amount": round(approved_amount, 2),
        "approved_weeks": approved_weeks,
    }


async def set_earning_status(db: AsyncSession, earning: UserEarning, target: str) -> UserEarning:
    """Change one earning's status through the forward-only guard."""
    earning.status = advance_status(earning.status, target)
    await db.flush()
    return earning


async def get_platform_earnings_stats(db: AsyncSession) -> dict:
    """Platform-wide earnings and payout figures for the admin console."""
    users = await db.execute(
        select(
            func.count(User.uuid),
            func.coalesce(func.sum(User.total_earnings), 0.0),
            func.coalesce(func.sum(User.pending_earnings), 0.0),
            func.coalesce(func.sum(User.paid_earnings), 0.0),
        ).where(User.is_verified.is_(True))
    )
    verified, total, pending, paid = users.one()

    week_start, week_end = get_week_bounds()
    this_week = await db.execute(
        select(func.coalesce(func.sum(UserEarning.amount), 0.0)).where(
            UserEarning.created_at >= week_start,
            UserEarning.created_at <= week_end,
        )
    )
    eligible = await db.execute(
        select(func.count(User.uuid)).where(
            User.is_verified.is_(True),
            User.pending_earnings >= settings.EARNING_MIN_PAYOUT,
        )
    )

    return {
        "currency": settings.EARNINGS_CURRENCY,
        "verified_users": int(verified or 0),
        "total_earnings": round(float(total), 2),
        "pending_earnings": round(float(pending), 2),
        "paid_earnings": round(float(paid), 2),
        "current_week": get_week_number(week_start),
        "current_week_earnings": round(float(this_week.scalar() or 0.0), 2),
        "users_eligible_for_payout": int(eligible.scalar() or 0),
    }
