"""User self-service endpoints: profile, library (history, saved, liked) and reports."""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete, desc

from tipoko.database import get_db
from tipoko.models.library import SavedVideo, WatchHistory
from tipoko.models.user import User
from tipoko.models.video import Video, VideoLike
from tipoko.schemas.auth import UserResponse
from tipoko.schemas.library import (
    HistoryItem, HistoryListResponse, LibraryItem, LibraryListResponse, ReportCreate, ReportResponse, WatchRecord,
)
from tipoko.schemas.users import UserUpdate, PublicUserResponse
from tipoko.schemas.videos import VideoResponse
from tipoko.auth.dependencies import get_current_active_user
from tipoko.auth.security import hash_password
from tipoko.services import reports
from tipoko.services.library import record_watch
from tipoko.services.videos import HIDDEN_STATUSES, get_viewable_video

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    current_user: User = Depends(get_current_active_user)
):
    """Get current user's profile information."""
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_user_profile(
    user_update: UserUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Update current user's profile.

    - Can update: display name, email, bio, avatar, password
    - Email uniqueness is enforced
    """
    if user_update.email and user_update.email != current_user.email:
        result = await db.execute(select(User).where(User.email == user_update.email))
        if result.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already in use"
            )

    if user_update.display_name:
        current_user.display_name = user_update.display_name
    if user_update.email:
        current_user.email = user_update.email
    if user_update.bio is not None:
        current_user.bio = user_update.bio
    if user_update.avatar_url is not None:
        current_user.avatar_url = user_update.avatar_url
    if user_update.password:
        current_user.password_hash = hash_password(user_update.password)

    db.add(current_user)
    await db.commit()
    await db.refresh(current_user)

    return current_user


# ── Library ───────────────────────────────────────────────────────────────────

def _page(total: int, page: int, page_size: int) -> dict:
    return {"total": total, "page": page, "page_size": page_size, "total_pages": (total + page_size - 1) // page_size}


@router.get("/history/watch", response_model=HistoryListResponse)
async def watch_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Videos the caller watched, most recent first. Deleted and blocked videos are left out."""
    query = (
        select(WatchHistory, Video)
        .join(Video, Video.uuid == WatchHistory.video_id)
        .where(WatchHistory.user_id == current_user.uuid, Video.status.not_in(HIDDEN_STATUSES))
    )
    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    result = await db.execute(
        query.order_by(desc(WatchHistory.watched_at)).offset((page - 1) * page_size).limit(page_size)
    )
    items = [
        HistoryItem(
            video=VideoResponse.model_validate(video),
            watch_time=entry.watch_time,
            progress_percent=entry.progress_percent,
            completed=entry.completed,
            watched_at=entry.watched_at,
        )
        for entry, video in result.all()
    ]
    return HistoryListResponse(items=items, **_page(total, page, page_size))


@router.post("/history/watch", response_model=HistoryItem)
async def add_to_watch_history(
    body: WatchRecord,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    video, _ = await get_viewable_video(db, body.video_id, current_user)
    entry = await record_watch(db, current_user.uuid, video, body.watch_time)
    await db.commit()
    return HistoryItem(
        video=VideoResponse.model_validate(video),
        watch_time=entry.watch_time,
        progress_percent=entry.progress_percent,
        completed=entry.completed,
        watched_at=entry.watched_at,
    )


@router.delete("/history/watch", status_code=status.HTTP_204_NO_CONTENT)
async def clear_watch_history(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    await db.execute(delete(WatchHistory).where(WatchHistory.user_id == current_user.uuid))
    await db.commit()


@router.get("/saved", response_model=LibraryListResponse)
async def saved_videos(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Watch-later list, most recently saved first; only published videos are listed."""
    query = (
        select(SavedVideo.saved_at, Video)
        .join(Video, Video.uuid == SavedVideo.video_id)
        .where(SavedVideo.user_id == current_user.uuid, Video.status == "published")
    )
    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    result = await db.execute(
        query.order_by(desc(SavedVideo.saved_at)).offset((page - 1) * page_size).limit(page_size)
    )
    items = [LibraryItem(video=VideoResponse.model_validate(video), added_at=saved_at) for saved_at, video in result.all()]
    return LibraryListResponse(items=items, **_page(total, page, page_size))


@router.post("/saved/{video_id}", status_code=status.HTTP_201_CREATED)
async def save_video(
    video_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Save a video for later. Saving twice is a no-op."""
    video, _ = await get_viewable_video(db, video_id, current_user)
    if await db.get(SavedVideo, (current_user.uuid, video.uuid)) is None:
        db.add(SavedVideo(user_id=current_user.uuid, video_id=video.uuid))
        await db.commit()
    return {"saved": True}


@router.delete("/saved/{video_id}")
async def unsave_video(
    video_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    saved = await db.get(SavedVideo, (current_user.uuid, video_id))
    if saved is not None:
        await db.delete(saved)
        await db.commit()
    return {"saved": False}


@router.get("/liked", response_model=LibraryListResponse)
async def liked_videos(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    query = (
        select(VideoLike.created_at, Video)
        .join(Video, Video.uuid == VideoLike.video_id)
        .where(
            VideoLike.user_id == current_user.uuid,
            VideoLike.is_like.is_(True),
            Video.status == "published",
        )
    )
    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    result = await db.execute(
        query.order_by(desc(VideoLike.created_at)).offset((page - 1) * page_size).limit(page_size)
    )
    items = [LibraryItem(video=VideoResponse.model_validate(video), added_at=liked_at) for liked_at, video in result.all()]
    return LibraryListResponse(items=items, **_page(total, page, page_size))


@router.post("/report", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def report_content(
    body: ReportCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Report a video, comment, channel or user to the moderators."""
    report = await reports.create_report(
        db, current_user, body.content_type, body.content_id, body.reason, body.description
    )
    await db.commit()
    await db.refresh(report)
    return report


@router.get("/{username}", response_model=PublicUserResponse)
async def get_public_profile(username: str, db: AsyncSession = Depends(get_db)):
    """Public profile of an active user."""
    result = await db.execute(
        select(User).where(User.username == username, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user
