"""Content reports filed by users and reviewed by moderators."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.models.channel import Channel
from tipoko.models.comment import Comment
from tipoko.models.library import Report, REPORT_STATUSES
from tipoko.models.user import User
from tipoko.models.video import Video
from tipoko.services.notifications import notify

logger = logging.getLogger(__name__)

# Allowed moves; resolved and dismissed are final
REPORT_TRANSITIONS = {
    "pending": ("reviewing", "resolved", "dismissed"),
    "reviewing": ("resolved", "dismissed"),
    "resolved": (),
    "dismissed": (),
}


async def reported_owner(db: AsyncSession, content_type: str, content_id: str) -> Optional[str]:
    """
    Uuid of the user responsible for the reported content.

    Raises HTTPException 404 when the content does not exist.
    """
    owner_id = None
    if content_type == "video":
        result = await db.execute(
            select(Channel.user_id)
            .join(Video, Video.channel_id == Channel.uuid)
            .where(Video.uuid == content_id, Video.status != "deleted")
        )
        owner_id = result.scalar_one_or_none()
    elif content_type == "comment":
        comment = await db.get(Comment, content_id)
        if comment is not None and not comment.is_deleted:
            owner_id = comment.user_id
    elif content_type == "channel":
        channel = await db.get(Channel, content_id)
        owner_id = channel.user_id if channel else None
    elif content_type == "user":
        user = await db.get(User, content_id)
        owner_id = user.uuid if user else None

    if owner_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Reported {content_type} not found"
        )
    return owner_id


async def create_report(
    db: AsyncSession,
    reporter: User,
    content_type: str,
    content_id: str,
    reason: str,
    description: Optional[str] = None,
) -> Report:
    """
    File a report.

    A user cannot report their own content, nor report the same content again
    while their earlier report is still open. Video owners are told their
    video was reported.
    """
    owner_id = await reported_owner(db, content_type, content_id)
    if owner_id == reporter.uuid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot report your own content"
        )

    open_report = await db.execute(
        select(func.count(Report.uuid)).where(
            Report.reporter_id == reporter.uuid,
            Report.content_type == content_type,
            Report.content_id == content_id,
            Report.status.in_(("pending", "reviewing")),
        )
    )
    if open_report.scalar():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You have already reported this content"
        )

    report = Report(
        reporter_id=reporter.uuid,
        content_type=content_type,
        content_id=content_id,
        reason=reason,
        description=description,
        status="pending",
    )
    db.add(report)

    if content_type == "video":
        video = await db.get(Video, content_id)
        await notify(
            db,
            owner_id,
            "report",
            "Video reported",
            message=f"Your video \"{video.title}\" was reported for: {reason.replace('_', ' ')}",
            link=f"/watch/{content_id}",
        )

    await db.flush()
    logger.info(f"Report {report.uuid}: {content_type} {content_id} reported for {reason}")
    return report


async def _apply_action(db: AsyncSession, report: Report, action: str) -> None:
    """Carry out a moderator's action on the reported content."""
    if action in ("content_removed", "content_blocked"):
        if report.content_type == "video":
            video = await db.get(Video, report.content_id)
            if video is not None:
                video.status = "deleted" if action == "content_removed" else "blocked"
        elif report.content_type == "comment":
            comment = await db.get(Comment, report.content_id)
            if comment is not None and not comment.is_deleted:
                comment.is_deleted = True
                video = await db.get(Video, comment.video_id)
                if video is not None:
                    video.comment_count = max((video.comment_count or 0) - 1, 0)
    elif action == "user_banned":
        owner = await db.get(User, await reported_owner(db, report.content_type, report.content_id))
        if owner is not None and not owner.is_admin:
            owner.is_active = False


async def review_report(
    db: AsyncSession,
    report: Report,
    new_status: str,
    moderator: User,
    action_taken: Optional[str] = None,
) -> Report:
    """
    Move a report forward and apply the moderator's action.

    Raises HTTPException 409 when the move is not allowed from the
    report's current status.
    """
    if new_status not in REPORT_TRANSITIONS.get(report.status, ()):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot move report from {report.status} to {new_status}"
        )

    report.status = new_status
    report.reviewed_by = moderator.uuid
    report.reviewed_at = datetime.utcnow()
    if new_status == "resolved" and action_taken:
        report.action_taken = action_taken
        await _apply_action(db, report, action_taken)

    await db.flush()
    logger.info(f"Report {report.uuid} {new_status} by {moderator.uuid} (action: {report.action_taken})")
    return report


async def report_stats(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    result = await db.execute(select(Report.status, func.count(Report.uuid)).group_by(Report.status))
    by_status = {name: 0 for name in REPORT_STATUSES}
    by_status.update({row[0]: row[1] for row in result.all()})

    today = await db.execute(select(func.count(Report.uuid)).where(Report.created_at >= now - timedelta(hours=24)))
    week = await db.execute(select(func.count(Report.uuid)).where(Report.created_at >= now - timedelta(days=7)))
    reasons = await db.execute(
        select(Report.reason, func.count(Report.uuid).label("count"))
        .where(Report.status == "pending")
        .group_by(Report.reason)
        .order_by(desc("count"))
        .limit(5)
    )

    return {
        **by_status,
        "total": sum(by_status.values()),
        "today": today.scalar() or 0,
        "this_week": week.scalar() or 0,
        "top_reasons": [{"reason": row[0], "count": row[1]} for row in reasons.all()],
    }
