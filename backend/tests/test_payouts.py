"""Tests for creator payouts."""
import pytest
from fastapi import HTTPException
from sqlalchemy import select

from conftest import auth_headers, get_channel, make_user, make_video
from tipoko.models.earning import UserEarning, WeeklyEarning
from tipoko.models.notification import Notification
from tipoko.models.payment import Payment, PaymentTransaction
from tipoko.services import earnings
from tipoko.services.payouts import create_payment, pay_multiple, approved_balance


async def _accrue_and_approve(db, video, creator, sessions=2):
    """Two 5-minute sessions (6.05 each) plus a weekly rollup, all approved."""
    for i in range(sessions):
        await earnings.track_video_view(db, video, f"s-{i}", 300)
    await earnings.calculate_weekly_earnings(db)
    await earnings.approve_user_earnings(db, creator.uuid)
    await db.commit()


@pytest.mark.asyncio
async def test_create_payment_moves_pending_to_paid(test_db, creator, video, admin_user):
    await _accrue_and_approve(test_db, video, creator)

    payment = await create_payment(test_db, creator.uuid, 12.1, payment_method="mobile_money", admin=admin_user)
    await test_db.commit()

    assert payment.status == "completed"
    assert payment.paid_by == admin_user.uuid
    await test_db.refresh(creator)
    assert creator.pending_earnings == 0
    assert creator.paid_earnings == 12.1
    assert creator.total_earnings == 12.1

    statuses = await test_db.execute(select(UserEarning.status).where(UserEarning.user_id == creator.uuid))
    assert set(statuses.scalars().all()) == {"paid"}
    week = await test_db.execute(select(WeeklyEarning.status).where(WeeklyEarning.user_id == creator.uuid))
    assert week.scalar_one() == "paid"

    transaction = await test_db.execute(select(PaymentTransaction).where(PaymentTransaction.payment_id == payment.uuid))
    transaction = transaction.scalar_one()
    assert transaction.transaction_type == "payment"
    assert transaction.extra["payment_method"] == "mobile_money"

    notice = await test_db.execute(select(Notification).where(Notification.user_id == creator.uuid))
    notice = notice.scalar_one()
    assert notice.type == "payment"
    assert notice.message == "12.10 XOF was paid out by mobile money"


@pytest.mark.asyncio
async def test_partial_payment_settles_oldest_first(test_db, creator, video):
    await _accrue_and_approve(test_db, video, creator)

    await create_payment(test_db, creator.uuid, 6.05)
    await test_db.commit()

    statuses = await test_db.execute(
        select(UserEarning.status).where(UserEarning.user_id == creator.uuid).order_by(UserEarning.created_at)
    )
    assert sorted(statuses.scalars().all()) == ["approved", "paid"]
    week = await test_db.execute(select(WeeklyEarning.status).where(WeeklyEarning.user_id == creator.uuid))
    assert week.scalar_one() == "approved"
    assert await approved_balance(test_db, creator.uuid) == 6.05


@pytest.mark.asyncio
async def test_payment_cannot_exceed_approved_balance(test_db, creator, video):
    await _accrue_and_approve(test_db, video, creator, sessions=1)
    with pytest.raises(HTTPException) as exc:
        await create_payment(test_db, creator.uuid, 100.0)
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_payment_rules(test_db, regular_user):
    with pytest.raises(HTTPException) as exc:
        await create_payment(test_db, regular_user.uuid, 0)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        await create_payment(test_db, "missing-user", 10)
    assert exc.value.status_code == 404

    with pytest.raises(HTTPException) as exc:
        await create_payment(test_db, regular_user.uuid, 10)
    assert exc.value.status_code == 403

    with pytest.raises(HTTPException) as exc:
        await create_payment(test_db, regular_user.uuid, 10, payment_method="crypto")
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_pay_multiple_reports_failures(test_db, creator, video, regular_user, admin_user):
    await _accrue_and_approve(test_db, video, creator, sessions=1)

    result = await pay_multiple(test_db, [creator.uuid, regular_user.uuid], admin=admin_user)
    await test_db.commit()

    assert result["total_paid"] == 6.05
    assert [p["user_id"] for p in result["paid"]] == [creator.uuid]
    assert result["failed"] == [{"user_id": regular_user.uuid, "error": "No approved earnings to pay"}]


@pytest.mark.asyncio
async def test_admin_pay_endpoint(client, test_db, creator, video, admin_user):
    await _accrue_and_approve(test_db, video, creator, sessions=1)

    response = await client.post(
        f"/api/admin/earnings/pay/{creator.uuid}",
        json={"amount": 6.05, "payment_method": "bank_transfer", "payment_reference": "VIR-001"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["amount"] == 6.05
    assert data["currency"] == "XOF"
    assert data["payment_reference"] == "VIR-001"

    response = await client.get("/api/earnings/payments", headers=auth_headers(creator))
    assert response.status_code == 200
    assert [p["uuid"] for p in response.json()] == [data["uuid"]]


@pytest.mark.asyncio
async def test_admin_earnings_flow(client, test_db, admin_user):
    """verify -> accrue -> calculate-weekly -> approve -> pay-multiple."""
    owner = await make_user(test_db, "salif")
    video = await make_video(test_db, await get_channel(test_db, owner))
    headers = auth_headers(admin_user)

    response = await client.post(f"/api/admin/earnings/verify/{owner.uuid}", headers=headers)
    assert response.status_code == 200
    assert response.json()["is_verified"] is True
    assert response.json()["verification_date"] is not None

    await earnings.track_video_view(test_db, video, "s-1", 300)
    await test_db.commit()

    response = await client.post("/api/admin/earnings/calculate-weekly", headers=headers)
    assert response.status_code == 200
    assert response.json()["created"] == 1

    response = await client.post(f"/api/admin/earnings/approve/{owner.uuid}", headers=headers)
    assert response.json()["approved_amount"] == 6.05

    response = await client.post(
        "/api/admin/earnings/pay-multiple",
        json={"user_ids": [owner.uuid], "payment_method": "cash"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["total_paid"] == 6.05

    response = await client.get(f"/api/admin/earnings/user/{owner.uuid}/earnings", headers=headers)
    detail = response.json()
    assert detail["user"]["paid_earnings"] == 6.05
    assert detail["weekly"][0]["status"] == "paid"
    assert len(detail["payments"]) == 1

    payments = await test_db.execute(select(Payment).where(Payment.user_id == owner.uuid))
    assert payments.scalar_one().payment_method == "cash"


@pytest.mark.asyncio
async def test_earning_status_cannot_go_backwards(client, test_db, creator, video, admin_user):
    result = await earnings.track_video_view(test_db, video, "s-1", 60)
    await test_db.commit()
    url = f"/api/admin/earnings/earning/{result['earning_id']}"
    headers = auth_headers(admin_user)

    response = await client.patch(url, json={"status": "approved"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    response = await client.patch(url, json={"status": "pending"}, headers=headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_admin_earnings_requires_admin(client, creator):
    response = await client.get("/api/admin/earnings/stats", headers=auth_headers(creator))
    assert response.status_code == 403


async def _ledger_matches_balance(db, user):
    """Unpaid ledger rows add up to pending_earnings, paid rows to paid_earnings."""
    await db.refresh(user)
    rows = await db.execute(select(UserEarning).where(UserEarning.user_id == user.uuid))
    rows = rows.scalars().all()
    unpaid = round(sum(e.amount for e in rows if e.status != "paid"), 2)
    paid = round(sum(e.amount for e in rows if e.status == "paid"), 2)
    return unpaid == round(user.pending_earnings, 2) and paid == round(user.paid_earnings, 2)


@pytest.mark.asyncio
async def test_payment_before_approval_is_refused(test_db, creator, video, admin_user):
    for session_id in ("s-1", "s-2"):
        await earnings.track_video_view(test_db, video, session_id, 300)
    await test_db.commit()

    with pytest.raises(HTTPException) as exc:
        await create_payment(test_db, creator.uuid, 12.1)
    assert exc.value.status_code == 400
    assert await _ledger_matches_balance(test_db, creator)

    await earnings.approve_user_earnings(test_db, creator.uuid)
    result = await pay_multiple(test_db, [creator.uuid], admin=admin_user)
    await test_db.commit()

    assert result["failed"] == []
    assert result["total_paid"] == 12.1
    assert await _ledger_matches_balance(test_db, creator)
    assert creator.pending_earnings == 0


@pytest.mark.asyncio
async def test_partial_payment_splits_an_earning(test_db, creator, video):
    await _accrue_and_approve(test_db, video, creator, sessions=1)

    await create_payment(test_db, creator.uuid, 4.0)
    await test_db.commit()

    rows = await test_db.execute(
        select(UserEarning.status, UserEarning.amount).where(UserEarning.user_id == creator.uuid)
    )
    assert sorted(tuple(row) for row in rows.all()) == [("approved", 2.05), ("paid", 4.0)]
    assert await approved_balance(test_db, creator.uuid) == 2.05
    assert await _ledger_matches_balance(test_db, creator)

    week = await test_db.execute(select(WeeklyEarning.status).where(WeeklyEarning.user_id == creator.uuid))
    assert week.scalar_one() == "approved"

    # The remainder can still be paid in full afterwards
    await create_payment(test_db, creator.uuid, 2.05)
    await test_db.commit()
    week = await test_db.execute(select(WeeklyEarning.status).where(WeeklyEarning.user_id == creator.uuid))
    assert week.scalar_one() == "paid"
    assert await _ledger_matches_balance(test_db, creator)
