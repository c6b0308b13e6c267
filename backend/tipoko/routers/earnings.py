"""Creator earnings and payout history router (verified creators only)."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, func

from tipoko.database import get_db
from tipoko.models.earning import UserEarning
from tipoko.models.payment import Payment
from tipoko.models.user import User
from tipoko.auth.dependencies import verified_user_required
from tipoko.schemas.earnings import (
    EarningResponse, EarningListResponse, PaymentResponse, PaymentInfoUpdate, PaymentInfoResponse,
)
from tipoko.services import earnings

router = APIRouter()


@router.get("/realtime")
async def get_realtime(
    current_user: User = Depends(verified_user_required),
    db: AsyncSession = Depends(get_db)
):
    """Current and previous week figures, trend and projection."""
    return await earnings.get_realtime_stats(db, current_user.uuid)


@router.get("/weekly")
async def get_weekly(
    weeks: int = Query(12, ge=1, le=52),
    current_user: User = Depends(verified_user_required),
    db: AsyncSession = Depends(get_db)
):
    """Per-week earnings, newest week first."""
    return await earnings.get_user_weekly_earnings(db, current_user.uuid, weeks)


@router.get("/summary")
async def get_summary(
    current_user: User = Depends(verified_user_required),
    db: AsyncSession = Depends(get_db)
):
    return await earnings.get_earnings_summary(db, current_user)


@router.get("/history", response_model=EarningListResponse)
async def get_history(
    page: int = 1,
    page_size: int = 50,
    earning_type: Optional[str] = Query(None, pattern=r"^(view|ad|subscription|donation|like|comment|share|other)$"),
    status: Optional[str] = Query(None, pattern=r"^(pending|approved|paid)$"),
    current_user: User = Depends(verified_user_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Earning history for the authenticated creator (paginated, newest first).
    """
    conditions = [UserEarning.user_id == current_user.uuid]
    if earning_type:
        conditions.append(UserEarning.earning_type == earning_type)
    if status:
        conditions.append(UserEarning.status == status)

    count_result = await db.execute(select(func.count(UserEarning.uuid)).where(*conditions))
    total = count_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(UserEarning)
        .where(*conditions)
        .order_by(desc(UserEarning.created_at))
        .offset(offset)
        .limit(page_size)
    )
    rows = result.scalars().all()

    total_pages = (total + page_size - 1) // page_size

    return EarningListResponse(
        earnings=[EarningResponse.model_validate(e) for e in rows],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )


@router.get("/payments", response_model=List[PaymentResponse])
async def get_payments(
    current_user: User = Depends(verified_user_required),
    db: AsyncSession = Depends(get_db)
):
    """Payouts received, newest first."""
    result = await db.execute(
        select(Payment).where(Payment.user_id == current_user.uuid).order_by(desc(Payment.created_at))
    )
    return result.scalars().all()


@router.get("/payment-info", response_model=PaymentInfoResponse)
async def get_payment_info(current_user: User = Depends(verified_user_required)):
    return current_user


@router.put("/payment-info", response_model=PaymentInfoResponse)
async def update_payment_info(
    info: PaymentInfoUpdate,
    current_user: User = Depends(verified_user_required),
    db: AsyncSession = Depends(get_db)
):
    """Update the bank / mobile money details used for payouts."""
    for field, value in info.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.add(current_user)
    await db.commit()
    await db.refresh(current_user)
    return current_user
