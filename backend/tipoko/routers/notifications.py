"""Notification feed endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, func, update, delete, desc
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.database import get_db
from tipoko.models.notification import Notification
from tipoko.models.user import User
from tipoko.schemas.notifications import NotificationResponse, NotificationListResponse
from tipoko.auth.dependencies import get_current_active_user

router = APIRouter()


async def _get_own_notification(db: AsyncSession, notification_id: str, user: User) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != user.uuid:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return notification


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's notifications, newest first, with the overall unread count."""
    query = select(Notification).where(Notification.user_id == current_user.uuid)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    unread_result = await db.execute(
        select(func.count(Notification.uuid)).where(
            Notification.user_id == current_user.uuid,
            Notification.is_read.is_(False),
        )
    )

    result = await db.execute(
        query.order_by(desc(Notification.created_at)).offset((page - 1) * page_size).limit(page_size)
    )

    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in result.scalars().all()],
        unread_count=unread_result.scalar() or 0,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size
    )


@router.patch("/read-all")
async def mark_all_read(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == current_user.uuid, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return {"updated": result.rowcount}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    notification = await _get_own_notification(db, notification_id, current_user)
    notification.is_read = True
    await db.commit()
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    notification = await _get_own_notification(db, notification_id, current_user)
    await db.delete(notification)
    await db.commit()


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_notifications(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete all of the caller's notifications."""
    await db.execute(delete(Notification).where(Notification.user_id == current_user.uuid))
    await db.commit()
