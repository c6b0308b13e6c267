"""Tests for creator analytics."""
from datetime import datetime, timedelta

import pytest

from conftest import auth_headers
from tipoko.config import settings
from tipoko.models.comment import Comment
from tipoko.models.earning import UserEarning
from tipoko.models.subscription import Subscription
from tipoko.models.video import VideoView
from tipoko.services.analytics import period_start, retention_bucket, traffic_source

FRONTEND_ORIGINS = "http://localhost:3000,http://localhost:5173"


def _view(video, session_id, when, watch=0, **fields):
    return VideoView(
        video_id=video.uuid,
        channel_id=video.channel_id,
        session_id=session_id,
        viewed_at=when,
        last_seen_at=when,
        watch_duration=watch,
        **fields,
    )


def test_traffic_source(monkeypatch):
    monkeypatch.setattr(settings, "CORS_ORIGINS", FRONTEND_ORIGINS)
    assert traffic_source(None) == "direct"
    assert traffic_source("http://localhost:5173/search?q=kora") == "search"
    assert traffic_source("http://localhost:3000/watch/abc") == "suggested"
    assert traffic_source("http://localhost:5173/channel/kader") == "channel_page"
    assert traffic_source("http://localhost:5173/") == "browse"
    assert traffic_source("https://www.facebook.com/share") == "external"


def test_retention_bucket():
    assert retention_bucket(0, 600) == 0
    assert retention_bucket(150, 600) == 1
    assert retention_bucket(449, 600) == 2
    assert retention_bucket(600, 600) == 3
    assert retention_bucket(10, 0) == 0


def test_period_start():
    assert period_start(28, datetime(2024, 3, 28, 15, 30)) == datetime(2024, 3, 1)
    assert period_start(1, datetime(2024, 3, 28, 15, 30)) == datetime(2024, 3, 28)


@pytest.mark.asyncio
async def test_channel_analytics(client, test_db, creator, creator_channel, video, regular_user, admin_user, monkeypatch):
    monkeypatch.setattr(settings, "CORS_ORIGINS", FRONTEND_ORIGINS)
    now = datetime.utcnow()
    test_db.add_all([
        _view(video, "old", now - timedelta(days=40), watch=300, user_id=regular_user.uuid),
        _view(
            video, "s-1", now - timedelta(days=1), watch=120, user_id=regular_user.uuid,
            device_type="mobile", country="BF", referrer="http://localhost:5173/search?q=ouaga",
        ),
        _view(video, "s-2", now, watch=60, device_type="desktop", country="CI"),
        Subscription(subscriber_id=regular_user.uuid, channel_id=creator_channel.uuid, created_at=now),
    ])
    await test_db.commit()

    response = await client.get("/api/analytics/channel", headers=auth_headers(creator))
    assert response.status_code == 200
    body = response.json()
    assert body["views"] == 2
    assert body["watch_time_minutes"] == 3.0
    assert body["average_watch_seconds"] == 90.0
    assert body["unique_viewers"] == 2
    assert body["returning_viewers"] == 1
    assert body["new_viewers"] == 1
    assert body["subscribers_gained"] == 1
    assert len(body["views_over_time"]) == 28
    assert sum(day["views"] for day in body["views_over_time"]) == 2
    assert body["top_videos"] == [{"video_id": video.uuid, "title": video.title, "views": 2, "watch_minutes": 3.0}]
    assert {d["name"]: d["count"] for d in body["devices"]} == {"mobile": 1, "desktop": 1}
    assert {s["name"]: s["count"] for s in body["traffic_sources"]} == {"search": 1, "direct": 1}

    response = await client.get("/api/analytics/channel", params={"days": 60}, headers=auth_headers(creator))
    assert response.json()["views"] == 3

    response = await client.get("/api/analytics/channel", params={"channel": "kader"}, headers=auth_headers(regular_user))
    assert response.status_code == 403
    response = await client.get("/api/analytics/channel", params={"channel": "kader"}, headers=auth_headers(admin_user))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_video_analytics(client, test_db, creator, video, regular_user):
    now = datetime.utcnow()
    test_db.add_all([
        _view(video, "a", now, watch=60),
        _view(video, "b", now, watch=500),
    ])
    video.view_count = 2
    video.like_count = 3
    video.dislike_count = 1
    video.comment_count = 1
    await test_db.commit()

    response = await client.get(f"/api/analytics/video/{video.uuid}", headers=auth_headers(creator))
    body = response.json()
    assert [b["sessions"] for b in body["retention"]] == [1, 0, 0, 1]
    assert body["average_watch_seconds"] == 280.0
    assert body["average_percent_viewed"] == 46.7
    assert body["engagement"]["like_ratio"] == 75.0
    assert body["engagement"]["engagement_rate"] == 200.0

    response = await client.get(f"/api/analytics/video/{video.uuid}", headers=auth_headers(regular_user))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_revenue_analytics(client, test_db, creator, video, regular_user):
    now = datetime.utcnow()
    test_db.add_all([
        UserEarning(user_id=creator.uuid, video_id=video.uuid, earning_type="view", amount=2.5, created_at=now),
        UserEarning(user_id=creator.uuid, video_id=video.uuid, earning_type="like", amount=0.1, created_at=now),
        UserEarning(user_id=creator.uuid, earning_type="view", amount=10.0, created_at=now - timedelta(days=60)),
    ])
    await test_db.commit()

    response = await client.get("/api/analytics/revenue", headers=auth_headers(creator))
    body = response.json()
    assert body["monetized"] is True
    assert body["period_total"] == 2.6
    assert body["by_type"] == [{"type": "view", "amount": 2.5}, {"type": "like", "amount": 0.1}]
    assert body["top_videos"] == [{"video_id": video.uuid, "title": video.title, "amount": 2.6}]

    response = await client.get("/api/analytics/revenue", headers=auth_headers(regular_user))
    body = response.json()
    assert body["monetized"] is False
    assert body["period_total"] == 0.0
    assert body["revenue_over_time"] == []


@pytest.mark.asyncio
async def test_realtime_analytics(client, test_db, creator, video):
    now = datetime.utcnow()
    test_db.add_all([
        _view(video, "live", now, watch=30),
        _view(video, "gone", now - timedelta(minutes=10), watch=30),
        _view(video, "earlier", now - timedelta(hours=2), watch=30),
    ])
    await test_db.commit()

    response = await client.get("/api/analytics/realtime", headers=auth_headers(creator))
    body = response.json()
    assert body["views_last_hour"] == 2
    assert body["watching_now"] == 1
    assert len(body["views_per_minute"]) == 60
    assert body["views_per_minute"][59] == 1
    assert body["views_per_minute"][49] == 1


@pytest.mark.asyncio
async def test_creator_dashboard(client, test_db, creator, creator_channel, video, regular_user):
    test_db.add_all([
        Subscription(subscriber_id=regular_user.uuid, channel_id=creator_channel.uuid),
        Comment(video_id=video.uuid, user_id=regular_user.uuid, content="Bravo"),
    ])
    await test_db.commit()
    await client.post(
        "/api/users/report",
        json={"content_type": "video", "content_id": video.uuid, "reason": "copyright"},
        headers=auth_headers(regular_user),
    )

    response = await client.get("/api/analytics/dashboard", headers=auth_headers(creator))
    body = response.json()
    assert body["videos"] == 1
    assert body["reports"]["pending"] == 1
    assert body["reports"]["recent"][0]["reason"] == "copyright"
    assert sorted(a["type"] for a in body["recent_activity"]) == ["comment", "subscription"]
    assert body["unread_notifications"] == 1
