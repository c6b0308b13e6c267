"""Video comment endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc

from tipoko.database import get_db
from tipoko.models.comment import Comment
from tipoko.models.user import User
from tipoko.schemas.videos import CommentCreate, CommentResponse, CommentListResponse
from tipoko.auth.dependencies import get_current_active_user, get_optional_user
from tipoko.services import earnings
from tipoko.services.notifications import notify
from tipoko.services.platform_settings import get_setting
from tipoko.services.videos import get_viewable_video, get_video_with_channel, owns_channel

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(comment: Comment, author: User) -> CommentResponse:
    return CommentResponse(
        uuid=comment.uuid,
        video_id=comment.video_id,
        user_id=comment.user_id,
        content=comment.content,
        created_at=comment.created_at,
        username=author.username if author else None,
    )


@router.get("/video/{video_id}", response_model=CommentListResponse)
async def list_comments(
    video_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Comments of a video, newest first."""
    video, _ = await get_viewable_video(db, video_id, current_user)

    conditions = (Comment.video_id == video.uuid, Comment.is_deleted.is_(False))
    count_result = await db.execute(select(func.count(Comment.uuid)).where(*conditions))
    total = count_result.scalar()

    result = await db.execute(
        select(Comment, User)
        .join(User, User.uuid == Comment.user_id)
        .where(*conditions)
        .order_by(desc(Comment.created_at))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return CommentListResponse(
        items=[_to_response(comment, author) for comment, author in result.all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size
    )


@router.post("/video/{video_id}", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    video_id: str,
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Comment on a video.

    Refused when comments are disabled platform-wide or on the video. The
    creator earns a comment bonus for comments from other users.
    """
    if not await get_setting(db, "comments_enabled", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Comments are disabled"
        )

    video, channel = await get_viewable_video(db, video_id, current_user)
    if not video.is_comments_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Comments are disabled for this video"
        )

    comment = Comment(video_id=video.uuid, user_id=current_user.uuid, content=comment_data.content.strip())
    db.add(comment)
    video.comment_count = (video.comment_count or 0) + 1

    if not owns_channel(current_user, channel):
        await earnings.track_engagement(db, video, "comment", actor_id=current_user.uuid)
        await notify(
            db,
            channel.user_id,
            "comment",
            "New comment",
            message=f"{current_user.display_name or current_user.username} commented on {video.title}",
            link=f"/watch/{video.uuid}",
        )

    await db.commit()
    await db.refresh(comment)
    return _to_response(comment, current_user)


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a comment (author or admin)."""
    comment = await db.get(Comment, comment_id)
    if comment is None or comment.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comment not found"
        )
    if comment.user_id != current_user.uuid and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to delete this comment"
        )

    comment.is_deleted = True
    video, _ = await get_video_with_channel(db, comment.video_id)
    video.comment_count = max((video.comment_count or 0) - 1, 0)
    await db.commit()
    logger.info(f"Comment {comment.uuid} deleted by {current_user.uuid}")
