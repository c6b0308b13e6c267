"""Tests for creator earnings: formula, accrual, weekly rollups and status guard."""
from datetime import datetime

import pytest
from sqlalchemy import select, func

from conftest import auth_headers, get_channel, make_user, make_video
from tipoko.models.earning import UserEarning, WeeklyEarning
from tipoko.services import earnings
from tipoko.services.earnings import InvalidStatusTransition, advance_status, compute_view_amount


def test_view_amount_below_retention_threshold():
    """2 full minutes of a 10 minute video: base + per-minute, no bonus."""
    assert compute_view_amount(150, 600) == 2.5


def test_view_amount_with_retention_bonus():
    """5 minutes of 10 reaches 50% retention: (0.5 + 5) * 1.1."""
    assert compute_view_amount(300, 600) == 6.05


def test_view_amount_unknown_duration_never_gets_bonus():
    assert compute_view_amount(120, 0) == 2.5


def test_week_bounds_monday_to_sunday():
    start, end = earnings.get_week_bounds(datetime(2024, 2, 15, 13, 30))  # a Thursday
    assert start == datetime(2024, 2, 12)
    assert end.date() == datetime(2024, 2, 18).date()
    assert (end.hour, end.minute, end.second) == (23, 59, 59)
    assert earnings.get_week_number(start) == "2024-W07"


def test_status_moves_forward_only():
    assert advance_status("pending", "approved") == "approved"
    assert advance_status("approved", "paid") == "paid"
    assert advance_status("paid", "paid") == "paid"
    with pytest.raises(InvalidStatusTransition):
        advance_status("paid", "pending")
    with pytest.raises(InvalidStatusTransition):
        advance_status("approved", "pending")
    with pytest.raises(InvalidStatusTransition):
        advance_status("pending", "refunded")


@pytest.mark.asyncio
async def test_track_view_skips_unverified_creator(test_db):
    owner = await make_user(test_db, "novice")
    channel = await get_channel(test_db, owner)
    video = await make_video(test_db, channel)

    assert await earnings.track_video_view(test_db, video, "s-1", 300) is None
    count = await test_db.execute(select(func.count(UserEarning.uuid)))
    assert count.scalar() == 0


@pytest.mark.asyncio
async def test_track_view_updates_same_session(test_db, creator, video):
    """A session accrues once; later progress only adds the difference."""
    first = await earnings.track_video_view(test_db, video, "s-1", 150)
    assert first["amount"] == 2.5
    assert first["updated"] is False

    second = await earnings.track_video_view(test_db, video, "s-1", 300)
    assert second["earning_id"] == first["earning_id"]
    assert second["amount"] == 6.05
    assert second["updated"] is True

    await test_db.refresh(creator)
    assert creator.total_earnings == 6.05
    assert creator.pending_earnings == 6.05

    rows = await test_db.execute(select(func.count(UserEarning.uuid)).where(UserEarning.user_id == creator.uuid))
    assert rows.scalar() == 1


@pytest.mark.asyncio
async def test_approved_session_is_not_reaccrued(test_db, creator, video):
    first = await earnings.track_video_view(test_db, video, "s-1", 150)
    earning = await test_db.get(UserEarning, first["earning_id"])
    await earnings.set_earning_status(test_db, earning, "approved")

    again = await earnings.track_video_view(test_db, video, "s-1", 600)
    assert again["amount"] == 2.5
    assert again["updated"] is False


@pytest.mark.asyncio
async def test_track_engagement(test_db, creator, video):
    result = await earnings.track_engagement(test_db, video, "share")
    assert result["amount"] == 1.0
    await test_db.refresh(creator)
    assert creator.pending_earnings == 1.0

    with pytest.raises(ValueError):
        await earnings.track_engagement(test_db, video, "donation")


@pytest.mark.asyncio
async def test_weekly_rollup_is_idempotent(test_db, creator, video):
    await earnings.track_video_view(test_db, video, "s-1", 300)
    await earnings.track_engagement(test_db, video, "comment")
    await test_db.commit()

    first = await earnings.calculate_weekly_earnings(test_db)
    await test_db.commit()
    assert first["created"] == 1
    assert first["results"][0]["earnings"] == 6.55

    second = await earnings.calculate_weekly_earnings(test_db)
    await test_db.commit()
    assert second["created"] == 0
    assert second["skipped"] == 1

    rollups = await test_db.execute(select(WeeklyEarning).where(WeeklyEarning.user_id == creator.uuid))
    rollups = rollups.scalars().all()
    assert len(rollups) == 1
    assert rollups[0].total_earnings == 6.55
    assert rollups[0].week_number == earnings.get_week_number()

    # Totals were accrued in real time and are not added again
    await test_db.refresh(creator)
    assert creator.total_earnings == 6.55


@pytest.mark.asyncio
async def test_approve_user_earnings(test_db, creator, video):
    await earnings.track_video_view(test_db, video, "s-1", 150)
    await earnings.track_engagement(test_db, video, "like")
    await earnings.calculate_weekly_earnings(test_db)

    result = await earnings.approve_user_earnings(test_db, creator.uuid)
    assert result == {"approved_earnings": 2, "approved_amount": 2.6, "approved_weeks": 1}


@pytest.mark.asyncio
async def test_view_endpoint_accrues_for_verified_creator(client, test_db, creator, video, regular_user):
    response = await client.post(
        f"/api/videos/{video.uuid}/view",
        json={"watch_duration": 150},
        headers={**auth_headers(regular_user), "X-Session-Id": "sess-42"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["session_id"] == "sess-42"
    assert data["view_count"] == 1
    assert data["earning"]["amount"] == 2.5

    progress = await client.post(
        f"/api/videos/{video.uuid}/watch-progress",
        json={"watch_duration": 300},
        headers={"X-Session-Id": "sess-42"},
    )
    assert progress.status_code == 200
    assert progress.json()["earning"]["amount"] == 6.05
    assert progress.json()["view_count"] == 1

    await test_db.refresh(creator)
    assert creator.pending_earnings == 6.05


@pytest.mark.asyncio
async def test_view_without_session_header_issues_one(client, video):
    response = await client.post(f"/api/videos/{video.uuid}/view")
    assert response.status_code == 200
    data = response.json()
    assert data["session_id"]
    assert data["earning"] is None


@pytest.mark.asyncio
async def test_owner_views_do_not_earn(client, test_db, creator, video):
    response = await client.post(
        f"/api/videos/{video.uuid}/view",
        json={"watch_duration": 600},
        headers=auth_headers(creator),
    )
    assert response.status_code == 200
    assert response.json()["earning"] is None


@pytest.mark.asyncio
async def test_watch_progress_requires_session(client, video):
    response = await client.post(f"/api/videos/{video.uuid}/watch-progress", json={"watch_duration": 10})
    assert response.status_code == 400

    response = await client.post(
        f"/api/videos/{video.uuid}/watch-progress",
        json={"watch_duration": 10},
        headers={"X-Session-Id": "unknown"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_earnings_endpoints_require_verification(client, regular_user):
    response = await client.get("/api/earnings/summary", headers=auth_headers(regular_user))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_realtime_and_summary(client, test_db, creator, video):
    await earnings.track_video_view(test_db, video, "s-1", 300)
    await earnings.track_engagement(test_db, video, "like")
    await test_db.commit()

    response = await client.get("/api/earnings/realtime", headers=auth_headers(creator))
    assert response.status_code == 200
    data = response.json()
    assert data["current_week"]["total_earnings"] == 6.15
    assert data["current_week"]["likes"] == 1
    assert data["last_week"]["total_earnings"] == 0
    assert data["trend"] == 0
    assert data["rates"]["currency"] == "XOF"

    response = await client.get("/api/earnings/summary", headers=auth_headers(creator))
    summary = response.json()
    assert summary["pending_earnings"] == 6.15
    assert summary["by_type"]["view"]["amount"] == 6.05
    assert summary["eligible_for_payout"] is False

    response = await client.get("/api/earnings/history?earning_type=like", headers=auth_headers(creator))
    history = response.json()
    assert history["total"] == 1
    assert history["earnings"][0]["earning_type"] == "like"

    response = await client.get("/api/earnings/weekly", headers=auth_headers(creator))
    weekly = response.json()
    assert len(weekly) == 1
    assert weekly[0]["total"] == 6.15
    assert weekly[0]["engagement_earnings"] == 0.1


@pytest.mark.asyncio
async def test_like_earns_once_per_user(client, test_db, creator, video, regular_user):
    headers = auth_headers(regular_user)
    response = await client.post(f"/api/videos/{video.uuid}/react", json={"reaction": "like"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["like_count"] == 1

    # Re-liking does not accrue again
    await client.post(f"/api/videos/{video.uuid}/react", json={"reaction": "like"}, headers=headers)

    response = await client.post(f"/api/videos/{video.uuid}/react", json={"reaction": "dislike"}, headers=headers)
    assert response.json() == {"reaction": "dislike", "like_count": 0, "dislike_count": 1}

    likes = await test_db.execute(
        select(func.count(UserEarning.uuid)).where(UserEarning.earning_type == "like")
    )
    assert likes.scalar() == 1

    # Clearing the reaction and liking again, repeatedly, still earns once
    for reaction in ("none", "like", "none", "like"):
        response = await client.post(f"/api/videos/{video.uuid}/react", json={"reaction": reaction}, headers=headers)
        assert response.status_code == 200
    assert response.json()["like_count"] == 1

    likes = await test_db.execute(
        select(func.count(UserEarning.uuid)).where(UserEarning.earning_type == "like")
    )
    assert likes.scalar() == 1

    await test_db.refresh(creator)
    assert creator.pending_earnings == 0.1


@pytest.mark.asyncio
async def test_likes_from_different_users_each_earn(test_db, creator, video, regular_user, admin_user):
    assert await earnings.track_engagement(test_db, video, "like", actor_id=regular_user.uuid)
    assert await earnings.track_engagement(test_db, video, "like", actor_id=admin_user.uuid)
    assert await earnings.track_engagement(test_db, video, "like", actor_id=regular_user.uuid) is None

    rows = await test_db.execute(
        select(UserEarning.actor_id).where(UserEarning.earning_type == "like")
    )
    assert sorted(rows.scalars().all()) == sorted([regular_user.uuid, admin_user.uuid])


@pytest.mark.asyncio
async def test_rolled_up_session_is_not_reaccrued(test_db, creator, video):
    await earnings.track_video_view(test_db, video, "s-1", 150)
    await earnings.calculate_weekly_earnings(test_db)
    await test_db.commit()

    again = await earnings.track_video_view(test_db, video, "s-1", 600)
    assert again["amount"] == 2.5
    assert again["updated"] is False

    rollup = await test_db.execute(select(WeeklyEarning).where(WeeklyEarning.user_id == creator.uuid))
    ledger = await test_db.execute(
        select(func.sum(UserEarning.amount)).where(UserEarning.user_id == creator.uuid)
    )
    assert rollup.scalar_one().total_earnings == ledger.scalar() == 2.5
    await test_db.refresh(creator)
    assert creator.pending_earnings == 2.5
