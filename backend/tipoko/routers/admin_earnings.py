"""Admin endpoints for creator verification, earnings approval and payouts."""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.database import get_db
from tipoko.models.earning import UserEarning, WeeklyEarning
from tipoko.models.payment import Payment
from tipoko.models.user import User
from tipoko.schemas.earnings import (
    EarningResponse, WeeklyEarningResponse, PaymentResponse, PayRequest, PayMultipleRequest,
    PayoutCandidate, EarningsUserItem, CalculateWeeklyRequest, EarningStatusUpdate,
)
from tipoko.auth.dependencies import admin_required
from tipoko.services import earnings as earnings_service
from tipoko.services import payouts

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.post("/calculate-weekly")
async def calculate_weekly(
    request_data: Optional[CalculateWeeklyRequest] = None,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Build weekly rollups for the week containing ``week_date``.

    Defaults to the current week. Users that already have a rollup for the
    week are skipped, so running it twice is harmless.
    """
    week_date = request_data.week_date if request_data else None
    result = await earnings_service.calculate_weekly_earnings(db, week_date)
    await db.commit()
    logger.info(f"Weekly earnings for {result['week']} calculated by {current_user.uuid}")
    return result


@router.get("/pending-payouts", response_model=List[PayoutCandidate])
async def pending_payouts(
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    return await earnings_service.get_pending_payouts(db)


@router.get("/rates")
async def rates(current_user: User = Depends(admin_required)):
    return earnings_service.get_rates()


@router.get("/users", response_model=List[EarningsUserItem])
async def list_earning_users(
    verified: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Users with their verification state and earning totals, biggest earners first."""
    query = select(User)
    if verified is not None:
        query = query.where(User.is_verified.is_(verified))
    result = await db.execute(
        query.order_by(desc(User.total_earnings), User.username).offset(skip).limit(limit)
    )
    return result.scalars().all()


@router.get("/stats")
async def earnings_stats(
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    return await earnings_service.get_platform_earnings_stats(db)


@router.post("/verify/{user_id}", response_model=EarningsUserItem)
async def verify_user(
    user_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Enable monetization for a creator."""
    user = await _get_user(db, user_id)
    if not user.is_verified:
        user.is_verified = True
        user.verification_date = datetime.utcnow()
        await db.commit()
        await db.refresh(user)
        logger.info(f"User {user.uuid} verified by {current_user.uuid}")
    return user


@router.post("/unverify/{user_id}", response_model=EarningsUserItem)
async def unverify_user(
    user_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Stop accruing new earnings for a creator; existing balances are kept."""
    user = await _get_user(db, user_id)
    if user.is_verified:
        user.is_verified = False
        user.verification_date = None
        await db.commit()
        await db.refresh(user)
        logger.info(f"User {user.uuid} unverified by {current_user.uuid}")
    return user


@router.post("/pay/{user_id}", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def pay_user(
    user_id: str,
    pay_request: PayRequest,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    payment = await payouts.create_payment(
        db,
        user_id,
        pay_request.amount,
        payment_method=pay_request.payment_method,
        payment_reference=pay_request.payment_reference,
        notes=pay_request.notes,
        admin=current_user,
    )
    await db.commit()
    await db.refresh(payment)
    return payment


@router.post("/pay-multiple")
async def pay_multiple_users(
    pay_request: PayMultipleRequest,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Pay every listed user their approved balance; failures are reported per user."""
    result = await payouts.pay_multiple(
        db,
        pay_request.user_ids,
        payment_method=pay_request.payment_method,
        notes=pay_request.notes,
        admin=current_user,
    )
    await db.commit()
    return result


@router.get("/user/{user_id}/earnings")
async def user_earnings(
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Everything the console shows for one creator: totals, rollups, ledger and payments."""
    user = await _get_user(db, user_id)

    earnings = await db.execute(
        select(UserEarning)
        .where(UserEarning.user_id == user.uuid)
        .order_by(desc(UserEarning.created_at))
        .limit(limit)
    )
    weekly = await db.execute(
        select(WeeklyEarning)
        .where(WeeklyEarning.user_id == user.uuid)
        .order_by(desc(WeeklyEarning.week_start))
    )
    payments = await db.execute(
        select(Payment)
        .where(Payment.user_id == user.uuid)
        .order_by(desc(Payment.created_at))
    )
    approved = await payouts.approved_balance(db, user.uuid)

    return {
        "user": EarningsUserItem.model_validate(user),
        "approved_balance": approved,
        "summary": await earnings_service.get_earnings_summary(db, user),
        "weekly": [WeeklyEarningResponse.model_validate(w) for w in weekly.scalars().all()],
        "earnings": [EarningResponse.model_validate(e) for e in earnings.scalars().all()],
        "payments": [PaymentResponse.model_validate(p) for p in payments.scalars().all()],
    }


@router.post("/approve/{user_id}")
async def approve_earnings(
    user_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Approve all pending earnings and weekly rollups of a user."""
    await _get_user(db, user_id)
    result = await earnings_service.approve_user_earnings(db, user_id)
    await db.commit()
    return result


@router.patch("/earning/{earning_id}", response_model=EarningResponse)
async def update_earning_status(
    earning_id: str,
    status_update: EarningStatusUpdate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Move a single earning forward; backwards moves are refused with 409."""
    earning = await db.get(UserEarning, earning_id)
    if earning is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Earning not found"
        )

    try:
        await earnings_service.set_earning_status(db, earning, status_update.status)
    except earnings_service.InvalidStatusTransition as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )

    await db.commit()
    await db.refresh(earning)
    return earning
