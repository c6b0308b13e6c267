"""Service functions for creator payouts."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.config import settings
from tipoko.models.earning import UserEarning, WeeklyEarning
from tipoko.models.payment import Payment, PaymentTransaction, PAYMENT_METHODS
from tipoko.models.user import User
from tipoko.services.earnings import advance_status
from tipoko.services.notifications import notify

logger = logging.getLogger(__name__)


async def _settle_earnings(db: AsyncSession, user_id: str, amount: float) -> int:
    """
    Mark approved earnings paid, oldest first, until ``amount`` is covered.

    A row only partly covered is split: the covered part becomes a new paid
    row and the rest stays approved, so the rows marked paid always add up
    to ``amount``.
    """
    result = await db.execute(
        select(UserEarning)
        .where(UserEarning.user_id == user_id, UserEarning.status == "approved")
        .order_by(UserEarning.created_at.asc(), UserEarning.uuid)
    )
    remaining = round(amount, 2)
    settled = 0
    for earning in result.scalars().all():
        if remaining <= 0:
            break
        if earning.amount <= remaining:
            earning.status = advance_status(earning.status, "paid")
            remaining = round(remaining - earning.amount, 2)
        else:
            db.add(UserEarning(
                user_id=earning.user_id,
                video_id=earning.video_id,
                session_id=earning.session_id,
                actor_id=earning.actor_id,
                earning_type=earning.earning_type,
                amount=remaining,
                currency=earning.currency,
                description=f"{earning.description or earning.earning_type} (partial payout)",
                status="paid",
                created_at=earning.created_at,
            ))
            earning.amount = round(earning.amount - remaining, 2)
            remaining = 0.0
        settled += 1
    return settled


async def _settle_weeks(db: AsyncSession, user_id: str) -> int:
    """Mark weekly rollups paid once every earning of their week is paid."""
    result = await db.execute(
        select(WeeklyEarning).where(WeeklyEarning.user_id == user_id, WeeklyEarning.status != "paid")
    )
    settled = 0
    for rollup in result.scalars().all():
        unpaid = await db.execute(
            select(func.count(UserEarning.uuid)).where(
                UserEarning.user_id == user_id,
                UserEarning.status != "paid",
                UserEarning.created_at >= rollup.week_start,
                UserEarning.created_at <= rollup.week_end,
            )
        )
        if unpaid.scalar() == 0:
            rollup.status = advance_status(rollup.status, "paid")
            settled += 1
    return settled


async def create_payment(
    db: AsyncSession,
    user_id: str,
    amount: float,
    payment_method: str = "bank_transfer",
    payment_reference: Optional[str] = None,
    notes: Optional[str] = None,
    admin: Optional[User] = None,
) -> Payment:
    """
    Record a completed payout to a verified creator.

    Only approved earnings can be paid out. Raises HTTPException 400 for a
    non-positive amount or one above the user's approved balance, 404 for an
    unknown user and 403 when the user is not verified. Uses SELECT FOR
    UPDATE on the user row.
    """
    if amount is None or amount <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment amount must be positive"
        )
    if payment_method not in PAYMENT_METHODS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid payment method: {payment_method}"
        )

    result = await db.execute(
        select(User).where(User.uuid == user_id).with_for_update()
    )
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    if not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User must be verified"
        )

    amount = round(amount, 2)
    payable = min(await approved_balance(db, user.uuid), round(user.pending_earnings or 0.0, 2))
    if amount > payable:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Payment amount exceeds approved earnings ({payable:.2f})"
        )

    payment = Payment(
        user_id=user.uuid,
        amount=amount,
        currency=settings.EARNINGS_CURRENCY,
        payment_method=payment_method,
        payment_reference=payment_reference,
        status="completed",
        notes=notes,
        paid_by=admin.uuid if admin else None,
        paid_at=datetime.utcnow(),
    )
    db.add(payment)
    await db.flush()

    db.add(PaymentTransaction(
        user_id=user.uuid,
        payment_id=payment.uuid,
        transaction_type="payment",
        amount=amount,
        description=f"Payout by {admin.username}" if admin else "Payout",
        extra={"payment_method": payment_method, "payment_reference": payment_reference},
        created_by=admin.uuid if admin else None,
    ))

    user.pending_earnings = round((user.pending_earnings or 0.0) - amount, 2)
    user.paid_earnings = round((user.paid_earnings or 0.0) + amount, 2)

    settled = await _settle_earnings(db, user.uuid, amount)
    weeks = await _settle_weeks(db, user.uuid)
    await notify(
        db,
        user.uuid,
        "payment",
        "Payment sent",
        message=f"{amount:.2f} {payment.currency} was paid out by {payment_method.replace('_', ' ')}",
        link="/earnings",
    )
    await db.flush()

    logger.info(
        f"Payment {payment.uuid}: {amount:.2f} {payment.currency} to user {user.uuid} "
        f"({settled} earnings, {weeks} weeks settled)"
    )
    return payment


async def approved_balance(db: AsyncSession, user_id: str) -> float:
    """Sum of a user's approved, unpaid earnings."""
    result = await db.execute(
        select(func.coalesce(func.sum(UserEarning.amount), 0.0)).where(
            UserEarning.user_id == user_id,
            UserEarning.status == "approved",
        )
    )
    return round(float(result.scalar() or 0.0), 2)


async def pay_multiple(
    db: AsyncSession,
    user_ids: list[str],
    payment_method: str = "bank_transfer",
    notes: Optional[str] = None,
    admin: Optional[User] = None,
) -> dict:
    """
    Pay each user the sum of their approved earnings.

    Failures are collected per user instead of aborting the batch.
    """
    paid = []
    failed = []
    for user_id in user_ids:
        amount = await approved_balance(db, user_id)
        if amount <= 0:
            failed.append({"user_id": user_id, "error": "No approved earnings to pay"})
            continue
        try:
            payment = await create_payment(
                db,
                user_id,
                amount,
                payment_method=payment_method,
                notes=notes,
                admin=admin,
            )
        except HTTPException as exc:
            failed.append({"user_id": user_id, "error": exc.detail})
            continue
        paid.append({"user_id": user_id, "payment_id": payment.uuid, "amount": payment.amount})

    logger.info(f"Batch payout: {len(paid)} paid, {len(failed)} failed")
    return {
        "paid": paid,
        "failed": failed,
        "total_paid": round(sum(p["amount"] for p in paid), 2),
    }
