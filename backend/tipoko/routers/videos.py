"""Video catalogue, reactions and watch tracking."""
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.database import get_db
from tipoko.models.channel import Channel
from tipoko.models.user import User
from tipoko.models.video import Category, Video, VideoView, VideoLike
from tipoko.schemas.videos import (
    CategoryResponse, VideoCreate, VideoUpdate, VideoResponse, VideoListResponse,
    ReactionRequest, ReactionResponse, ViewRequest, WatchProgressRequest, ViewResponse, ShareResponse,
)
from tipoko.auth.dependencies import get_current_active_user, get_optional_user
from tipoko.services import earnings
from tipoko.services.library import record_watch, set_tags, get_tags
from tipoko.services.notifications import notify_subscribers
from tipoko.services.videos import (
    listed_clause, owns_channel, can_manage, get_video_with_channel, get_viewable_video, parse_user_agent,
)

logger = logging.getLogger(__name__)

router = APIRouter()

TRENDING_WINDOW_DAYS = 7


@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Category).order_by(Category.name))
    return result.scalars().all()


@router.get("", response_model=VideoListResponse)
async def list_videos(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort: str = Query("recent", pattern=r"^(recent|popular|trending)$"),
    category: Optional[str] = Query(None, description="Category slug"),
    channel: Optional[str] = Query(None, description="Channel handle"),
    q: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db)
):
    """
    Public video listing.

    - recent: newest first
    - popular: most viewed first
    - trending: most viewed among videos published in the last week
    """
    query = select(Video).join(Channel, Channel.uuid == Video.channel_id).where(listed_clause())

    if category:
        query = query.join(Category, Category.id == Video.category_id).where(Category.slug == category)
    if channel:
        query = query.where(Channel.handle == channel.lower())
    if q:
        query = query.where(Video.title.ilike(f"%{q}%"))
    if sort == "trending":
        query = query.where(Video.published_at >= datetime.utcnow() - timedelta(days=TRENDING_WINDOW_DAYS))

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    if sort == "recent":
        query = query.order_by(desc(Video.published_at), desc(Video.created_at))
    else:
        query = query.order_by(desc(Video.view_count), desc(Video.like_count), desc(Video.published_at))

    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    videos = result.scalars().all()

    return VideoListResponse(
        items=[VideoResponse.model_validate(v) for v in videos],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size
    )


@router.post("", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    video_data: VideoCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Publish a video from metadata.

    The media is referenced by URL; when no channel is given the caller's
    first channel is used.
    """
    if video_data.channel_id:
        channel = await db.get(Channel, video_data.channel_id)
    else:
        result = await db.execute(
            select(Channel).where(Channel.user_id == current_user.uuid).order_by(Channel.created_at).limit(1)
        )
        channel = result.scalar_one_or_none()

    if channel is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Channel not found"
        )
    if not owns_channel(current_user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to publish on this channel"
        )

    if video_data.category_id is not None and await db.get(Category, video_data.category_id) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unknown category"
        )

    now = datetime.utcnow()
    video = Video(
        channel_id=channel.uuid,
        category_id=video_data.category_id,
        title=video_data.title,
        description=video_data.description,
        video_url=video_data.video_url,
        thumbnail_url=video_data.thumbnail_url,
        duration=video_data.duration,
        visibility=video_data.visibility,
        is_comments_enabled=video_data.is_comments_enabled,
        status="published",
        published_at=now,
    )
    db.add(video)
    channel.video_count = (channel.video_count or 0) + 1
    await db.flush()

    tags = await set_tags(db, video, video_data.tags)
    if video.visibility == "public":
        await notify_subscribers(db, channel, video)

    await db.commit()
    await db.refresh(video)
    logger.info(f"Video {video.uuid} published on @{channel.handle}")
    return VideoResponse.model_validate(video).model_copy(update={"tags": tags})


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Video details; private videos are only visible to their owner."""
    video, _ = await get_viewable_video(db, video_id, current_user)
    return VideoResponse.model_validate(video).model_copy(update={"tags": await get_tags(db, video.uuid)})


@router.put("/{video_id}", response_model=VideoResponse)
async def update_video(
    video_id: str,
    video_update: VideoUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    video, channel = await get_video_with_channel(db, video_id)
    if not owns_channel(current_user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to edit this video"
        )

    changes = video_update.model_dump(exclude_unset=True)
    new_tags = changes.pop("tags", None)
    if changes.get("category_id") is not None and await db.get(Category, changes["category_id"]) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unknown category"
        )
    for field, value in changes.items():
        setattr(video, field, value)
    if new_tags is not None:
        await set_tags(db, video, new_tags)

    await db.commit()
    await db.refresh(video)
    return VideoResponse.model_validate(video).model_copy(update={"tags": await get_tags(db, video.uuid)})


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    video_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete: the video is hidden but its earnings history is kept."""
    video, channel = await get_video_with_channel(db, video_id)
    if not can_manage(current_user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to delete this video"
        )

    video.status = "deleted"
    channel.video_count = max((channel.video_count or 0) - 1, 0)
    await db.commit()
    logger.info(f"Video {video.uuid} deleted by {current_user.uuid}")


@router.post("/{video_id}/react", response_model=ReactionResponse)
async def react_to_video(
    video_id: str,
    body: ReactionRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Like, dislike or clear the caller's reaction. A new like earns the creator a like bonus."""
    video, channel = await get_viewable_video(db, video_id, current_user)

    existing = await db.get(VideoLike, (current_user.uuid, video.uuid))
    was_like = existing.is_like if existing is not None else None

    if body.reaction == "none":
        if existing is not None:
            await db.delete(existing)
    elif existing is None:
        db.add(VideoLike(user_id=current_user.uuid, video_id=video.uuid, is_like=body.reaction == "like"))
    else:
        existing.is_like = body.reaction == "like"

    is_like = None if body.reaction == "none" else body.reaction == "like"
    if was_like is True:
        video.like_count = max((video.like_count or 0) - 1, 0)
    elif was_like is False:
        video.dislike_count = max((video.dislike_count or 0) - 1, 0)
    if is_like is True:
        video.like_count = (video.like_count or 0) + 1
    elif is_like is False:
        video.dislike_count = (video.dislike_count or 0) + 1

    # track_engagement ignores likes this user has already been credited for
    if is_like is True and was_like is not True and not owns_channel(current_user, channel):
        await earnings.track_engagement(db, video, "like", actor_id=current_user.uuid)

    await db.commit()
    return ReactionResponse(
        reaction=body.reaction,
        like_count=video.like_count,
        dislike_count=video.dislike_count
    )


@router.post("/{video_id}/view", response_model=ViewResponse)
async def record_view(
    video_id: str,
    request: Request,
    body: Optional[ViewRequest] = None,
    x_session_id: Optional[str] = Header(None),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Start a watch session.

    The session is keyed by the X-Session-Id header (a new id is issued when
    it is missing). Counters are bumped once per session; the creator's view
    earning is accrued as soon as watch time is reported. Signed-in viewers
    also get a watch history entry.
    """
    body = body or ViewRequest()
    video, channel = await get_viewable_video(db, video_id, current_user)
    session_id = x_session_id or str(uuid4())

    result = await db.execute(
        select(VideoView).where(VideoView.video_id == video.uuid, VideoView.session_id == session_id)
    )
    view = result.scalar_one_or_none()

    if view is None:
        agent = parse_user_agent(request.headers.get("user-agent"))
        view = VideoView(
            video_id=video.uuid,
            channel_id=channel.uuid,
            user_id=current_user.uuid if current_user else None,
            session_id=session_id,
            ip_address=request.client.host if request.client else None,
            device_type=body.device_type or agent["device_type"],
            browser=body.browser or agent["browser"],
            os=body.os or agent["os"],
            country=body.country,
            referrer=request.headers.get("referer"),
            watch_duration=body.watch_duration,
        )
        db.add(view)
        video.view_count = (video.view_count or 0) + 1
        channel.total_views = (channel.total_views or 0) + 1
    else:
        view.watch_duration = max(view.watch_duration or 0, body.watch_duration)
        view.last_seen_at = datetime.utcnow()

    await db.flush()

    if current_user is not None:
        await record_watch(db, current_user.uuid, video, view.watch_duration)

    earning = None
    if view.watch_duration > 0 and not owns_channel(current_user, channel):
        earning = await earnings.track_video_view(db, video, session_id, view.watch_duration)

    await db.commit()
    return ViewResponse(
        view_id=view.id,
        session_id=session_id,
        view_count=video.view_count,
        watch_duration=view.watch_duration,
        earning=earning
    )


@router.post("/{video_id}/watch-progress", response_model=ViewResponse)
async def record_watch_progress(
    video_id: str,
    body: WatchProgressRequest,
    x_session_id: Optional[str] = Header(None),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Report how long the session has watched; the creator's earning is re-computed."""
    if not x_session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Session-Id header required"
        )

    video, channel = await get_viewable_video(db, video_id, current_user)
    result = await db.execute(
        select(VideoView).where(VideoView.video_id == video.uuid, VideoView.session_id == x_session_id)
    )
    view = result.scalar_one_or_none()
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Watch session not found"
        )

    # Progress never goes backwards (seeking back does not reduce watch time)
    view.watch_duration = max(view.watch_duration or 0, body.watch_duration)
    view.last_seen_at = datetime.utcnow()
    await db.flush()

    if current_user is not None:
        await record_watch(db, current_user.uuid, video, view.watch_duration)

    earning = None
    if view.watch_duration > 0 and not owns_channel(current_user, channel):
        earning = await earnings.track_video_view(db, video, x_session_id, view.watch_duration)

    await db.commit()
    return ViewResponse(
        view_id=view.id,
        session_id=x_session_id,
        view_count=video.view_count,
        watch_duration=view.watch_duration,
        earning=earning
    )


@router.post("/{video_id}/share", response_model=ShareResponse)
async def share_video(
    video_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    video, channel = await get_viewable_video(db, video_id, current_user)
    video.share_count = (video.share_count or 0) + 1
    if not owns_channel(current_user, channel):
        await earnings.track_engagement(db, video, "share", actor_id=current_user.uuid)
    await db.commit()
    return ShareResponse(share_count=video.share_count)


@router.get("/{video_id}/related", response_model=List[VideoResponse])
async def related_videos(
    video_id: str,
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    """Other public videos from the same channel or category, most viewed first."""
    video, _ = await get_video_with_channel(db, video_id)

    related_to = Video.channel_id == video.channel_id
    if video.category_id is not None:
        related_to = related_to | (Video.category_id == video.category_id)

    result = await db.execute(
        select(Video)
        .where(Video.uuid != video.uuid, listed_clause(), related_to)
        .order_by(desc(Video.view_count))
        .limit(limit)
    )
    return result.scalars().all()
