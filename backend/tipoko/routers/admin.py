"""Admin endpoints: dashboard, users, moderation, reports, ads and platform settings."""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc

from tipoko.database import get_db
from tipoko.models.ad import Ad
from tipoko.models.channel import Channel
from tipoko.models.comment import Comment
from tipoko.models.library import Report
from tipoko.models.platform_setting import PlatformSetting
from tipoko.models.user import User, ADMIN_ROLES
from tipoko.models.video import Category, Video
from tipoko.schemas.admin import (
    DashboardStats, VideoModerationUpdate, AdminVideoListResponse, SettingResponse, SettingUpdate,
)
from tipoko.schemas.ads import AdCreate, AdUpdate, AdResponse
from tipoko.schemas.library import ReportResponse, ReportUpdate, ReportDetailResponse, ReportListResponse
from tipoko.schemas.users import UserAdminUpdate, UserDetailResponse, UserListResponse, UserListItem
from tipoko.schemas.videos import VideoResponse, CategoryCreate, CategoryResponse
from tipoko.auth.dependencies import admin_required, moderator_required
from tipoko.services import ads as ad_service
from tipoko.services import platform_settings
from tipoko.services import reports as report_service

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Dashboard ─────────────────────────────────────────────────────────────────

@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Platform-wide counters for the admin home page."""
    week_ago = datetime.utcnow() - timedelta(days=7)

    total_users = (await db.execute(select(func.count(User.uuid)))).scalar()
    active_users = (await db.execute(select(func.count(User.uuid)).where(User.is_active.is_(True)))).scalar()
    verified_users = (await db.execute(select(func.count(User.uuid)).where(User.is_verified.is_(True)))).scalar()
    new_users = (await db.execute(select(func.count(User.uuid)).where(User.created_at >= week_ago))).scalar()

    total_channels = (await db.execute(select(func.count(Channel.uuid)))).scalar()
    videos = await db.execute(
        select(func.count(Video.uuid), func.coalesce(func.sum(Video.view_count), 0))
        .where(Video.status != "deleted")
    )
    total_videos, total_views = videos.one()
    total_comments = (await db.execute(
        select(func.count(Comment.uuid)).where(Comment.is_deleted.is_(False))
    )).scalar()

    active_ads = (await db.execute(select(func.count(Ad.uuid)).where(Ad.status == "active"))).scalar()
    ad_revenue = (await db.execute(select(func.coalesce(func.sum(Ad.revenue), 0.0)))).scalar()
    pending_reports = (await db.execute(select(func.count(Report.uuid)).where(Report.status == "pending"))).scalar()

    money = await db.execute(
        select(
            func.coalesce(func.sum(User.pending_earnings), 0.0),
            func.coalesce(func.sum(User.paid_earnings), 0.0),
        )
    )
    pending, paid = money.one()

    return DashboardStats(
        total_users=total_users or 0,
        active_users=active_users or 0,
        verified_users=verified_users or 0,
        new_users_this_week=new_users or 0,
        total_channels=total_channels or 0,
        total_videos=total_videos or 0,
        total_views=int(total_views or 0),
        total_comments=total_comments or 0,
        active_ads=active_ads or 0,
        ad_revenue=round(float(ad_revenue or 0.0), 2),
        pending_reports=pending_reports or 0,
        pending_earnings=round(float(pending or 0.0), 2),
        paid_earnings=round(float(paid or 0.0), 2),
    )


# ── Users ─────────────────────────────────────────────────────────────────────

async def _count_active_admins(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(User.uuid)).where(User.role.in_(ADMIN_ROLES), User.is_active.is_(True))
    )
    return result.scalar() or 0


async def _get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.uuid == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.get("/users", response_model=UserListResponse)
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    search: str = Query("", min_length=0),
    role: Optional[str] = Query(None),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    List all users with pagination and search.

    - Paginated with skip/limit
    - Search by username, display name or email (case-insensitive)
    """
    query = select(User)

    if search:
        query = query.where(
            (User.username.ilike(f"%{search}%")) |
            (User.display_name.ilike(f"%{search}%")) |
            (User.email.ilike(f"%{search}%"))
        )
    if role:
        query = query.where(User.role == role)

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    query = query.order_by(desc(User.created_at)).offset(skip).limit(limit)
    result = await db.execute(query)
    users = result.scalars().all()

    return {
        "items": [UserListItem.model_validate(u) for u in users],
        "total": total,
        "skip": skip,
        "limit": limit
    }


@router.get("/users/{user_id}", response_model=UserDetailResponse)
async def get_user_detail(
    user_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Get detailed information about a specific user."""
    return await _get_user(db, user_id)


@router.put("/users/{user_id}", response_model=UserDetailResponse)
async def update_user(
    user_id: str,
    user_update: UserAdminUpdate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Update user information (admin only).

    - Can change role, active flag and verification
    - The last active admin cannot be demoted or deactivated
    """
    user = await _get_user(db, user_id)

    if user_update.email and user_update.email != user.email:
        result = await db.execute(select(User).where(User.email == user_update.email))
        if result.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already in use"
            )

    demoted = user_update.role is not None and user_update.role not in ADMIN_ROLES
    deactivated = user_update.is_active is False
    if user.is_admin and user.is_active and (demoted or deactivated):
        if await _count_active_admins(db) <= 1:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot demote or deactivate the last active admin"
            )

    if user_update.display_name:
        user.display_name = user_update.display_name
    if user_update.email:
        user.email = user_update.email
    if user_update.role:
        user.role = user_update.role
    if user_update.is_active is not None:
        user.is_active = user_update.is_active
    if user_update.is_verified is not None and user_update.is_verified != user.is_verified:
        user.is_verified = user_update.is_verified
        user.verification_date = datetime.utcnow() if user_update.is_verified else None

    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info(f"Admin {current_user.uuid} updated user {user.uuid}")

    return user


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Soft-delete a user (set is_active=False).

    - User data and earnings history are preserved
    - Admins cannot delete themselves or the last active admin
    """
    if user_id == current_user.uuid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account"
        )

    user = await _get_user(db, user_id)

    if user.is_admin and user.is_active and await _count_active_admins(db) <= 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete the last active admin"
        )

    user.is_active = False
    db.add(user)
    await db.commit()
    logger.info(f"Admin {current_user.uuid} deactivated user {user.uuid}")


# ── Video moderation ──────────────────────────────────────────────────────────

@router.get("/videos", response_model=AdminVideoListResponse)
async def list_videos(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: str = Query("", min_length=0),
    current_user: User = Depends(moderator_required),
    db: AsyncSession = Depends(get_db)
):
    """All videos, any status, newest first."""
    query = select(Video)
    if status_filter:
        query = query.where(Video.status == status_filter)
    if search:
        query = query.where(Video.title.ilike(f"%{search}%"))

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    result = await db.execute(query.order_by(desc(Video.created_at)).offset(skip).limit(limit))
    return {
        "items": [VideoResponse.model_validate(v) for v in result.scalars().all()],
        "total": total,
        "skip": skip,
        "limit": limit
    }


@router.patch("/videos/{video_id}", response_model=VideoResponse)
async def moderate_video(
    video_id: str,
    moderation: VideoModerationUpdate,
    current_user: User = Depends(moderator_required),
    db: AsyncSession = Depends(get_db)
):
    """Change a video's status (e.g. block it) or visibility."""
    video = await db.get(Video, video_id)
    if video is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found"
        )

    for field, value in moderation.model_dump(exclude_unset=True).items():
        setattr(video, field, value)

    await db.commit()
    await db.refresh(video)
    logger.info(f"Video {video.uuid} moderated by {current_user.uuid}: status={video.status}")
    return video


# ── Reports ───────────────────────────────────────────────────────────────────

@router.get("/reports/stats")
async def get_report_stats(
    current_user: User = Depends(moderator_required),
    db: AsyncSession = Depends(get_db)
):
    """Report counts per status, today and this week, with the top pending reasons."""
    return await report_service.report_stats(db)


@router.get("/reports", response_model=ReportListResponse)
async def list_reports(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status_filter: str = Query("pending", alias="status", pattern=r"^(pending|reviewing|resolved|dismissed)$"),
    current_user: User = Depends(moderator_required),
    db: AsyncSession = Depends(get_db)
):
    """Reports with a given status, oldest first."""
    query = select(Report).where(Report.status == status_filter)
    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    result = await db.execute(query.order_by(Report.created_at).offset(skip).limit(limit))
    return {
        "items": [ReportResponse.model_validate(r) for r in result.scalars().all()],
        "total": total,
        "skip": skip,
        "limit": limit
    }


async def _get_report(db: AsyncSession, report_id: str) -> Report:
    report = await db.get(Report, report_id)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report not found"
        )
    return report


@router.get("/reports/{report_id}", response_model=ReportDetailResponse)
async def get_report(
    report_id: str,
    current_user: User = Depends(moderator_required),
    db: AsyncSession = Depends(get_db)
):
    """A report plus the other reports filed against the same content."""
    report = await _get_report(db, report_id)
    others = await db.execute(
        select(Report)
        .where(
            Report.content_type == report.content_type,
            Report.content_id == report.content_id,
            Report.uuid != report.uuid,
        )
        .order_by(desc(Report.created_at))
    )
    return ReportDetailResponse(
        **ReportResponse.model_validate(report).model_dump(),
        other_reports=[ReportResponse.model_validate(r) for r in others.scalars().all()]
    )


@router.patch("/reports/{report_id}", response_model=ReportResponse)
async def review_report(
    report_id: str,
    body: ReportUpdate,
    current_user: User = Depends(moderator_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Review a report.

    Resolving with an action applies it: content_removed deletes the video
    or comment, content_blocked blocks the video, user_banned deactivates
    the content owner.
    """
    report = await _get_report(db, report_id)
    await report_service.review_report(db, report, body.status, current_user, body.action_taken)
    await db.commit()
    await db.refresh(report)
    return report


# ── Categories ────────────────────────────────────────────────────────────────

@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: CategoryCreate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(Category).where(Category.slug == category_data.slug))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category slug already exists"
        )

    category = Category(**category_data.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


# ── Ads ───────────────────────────────────────────────────────────────────────

@router.get("/ads", response_model=List[AdResponse])
async def list_ads(
    status_filter: Optional[str] = Query(None, alias="status"),
    position: Optional[str] = Query(None),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    query = select(Ad)
    if status_filter:
        query = query.where(Ad.status == status_filter)
    if position:
        query = query.where(Ad.position == position)
    result = await db.execute(query.order_by(desc(Ad.priority), desc(Ad.created_at)))
    return result.scalars().all()


@router.get("/ads/analytics")
async def ads_analytics(
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Impressions, clicks, CTR and revenue per ad and overall."""
    return await ad_service.ad_analytics(db)


@router.post("/ads", response_model=AdResponse, status_code=status.HTTP_201_CREATED)
async def create_ad(
    ad_data: AdCreate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    if ad_data.start_date and ad_data.end_date and ad_data.end_date < ad_data.start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must be after start_date"
        )

    ad = Ad(**ad_data.model_dump(), created_by=current_user.uuid)
    db.add(ad)
    await db.commit()
    await db.refresh(ad)
    logger.info(f"Ad {ad.uuid} created by {current_user.uuid}")
    return ad


@router.get("/ads/{ad_id}", response_model=AdResponse)
async def get_ad(
    ad_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    return await ad_service.get_ad(db, ad_id)


@router.put("/ads/{ad_id}", response_model=AdResponse)
async def update_ad(
    ad_id: str,
    ad_update: AdUpdate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    ad = await ad_service.get_ad(db, ad_id)
    for field, value in ad_update.model_dump(exclude_unset=True).items():
        setattr(ad, field, value)

    if ad.start_date and ad.end_date and ad.end_date < ad.start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must be after start_date"
        )

    await db.commit()
    await db.refresh(ad)
    return ad


@router.delete("/ads/{ad_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ad(
    ad_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    ad = await ad_service.get_ad(db, ad_id)
    await db.delete(ad)
    await db.commit()
    logger.info(f"Ad {ad_id} deleted by {current_user.uuid}")


# ── Platform settings ─────────────────────────────────────────────────────────

def _setting_response(setting: PlatformSetting) -> SettingResponse:
    return SettingResponse(
        key=setting.key,
        value=platform_settings.parse_value(setting.value, setting.setting_type),
        setting_type=setting.setting_type,
        description=setting.description,
        is_public=setting.is_public,
        updated_at=setting.updated_at,
    )


@router.get("/settings", response_model=List[SettingResponse])
async def get_settings(
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    return [_setting_response(s) for s in await platform_settings.list_settings(db)]


@router.put("/settings", response_model=List[SettingResponse])
async def update_settings(
    values: Dict[str, Any],
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Bulk update: ``{"key": value, ...}``; types of existing settings are kept."""
    for key, value in values.items():
        await platform_settings.set_setting(db, key, value, updated_by=current_user.uuid)
    await db.commit()
    logger.info(f"Admin {current_user.uuid} updated settings: {', '.join(values)}")
    return [_setting_response(s) for s in await platform_settings.list_settings(db)]


@router.patch("/settings/{key}", response_model=SettingResponse)
async def update_setting(
    key: str,
    setting_update: SettingUpdate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    setting = await platform_settings.set_setting(
        db,
        key,
        setting_update.value,
        setting_type=setting_update.setting_type,
        description=setting_update.description,
        updated_by=current_user.uuid,
    )
    await db.commit()
    await db.refresh(setting)
    logger.info(f"Admin {current_user.uuid} set {key}")
    return _setting_response(setting)
