"""Tests for watch history, saved and liked videos, reports and notifications."""
import pytest
from sqlalchemy import select

from conftest import auth_headers, make_user, make_video
from tipoko.models.library import Report
from tipoko.models.notification import Notification
from tipoko.services.library import progress_percent


def test_progress_percent():
    assert progress_percent(60, 600) == 10.0
    assert progress_percent(900, 600) == 100.0
    assert progress_percent(30, 0) == 0.0


# ── Watch history ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_watch_history_follows_signed_in_views(client, test_db, creator_channel, video, regular_user):
    headers = {**auth_headers(regular_user), "X-Session-Id": "hist-1"}
    await client.post(f"/api/videos/{video.uuid}/view", json={"watch_duration": 60}, headers=headers)

    response = await client.get("/api/users/history/watch", headers=auth_headers(regular_user))
    assert response.status_code == 200
    item = response.json()["items"][0]
    assert item["video"]["uuid"] == video.uuid
    assert item["watch_time"] == 60
    assert item["progress_percent"] == 10.0
    assert item["completed"] is False

    await client.post(f"/api/videos/{video.uuid}/watch-progress", json={"watch_duration": 560}, headers=headers)
    response = await client.get("/api/users/history/watch", headers=auth_headers(regular_user))
    item = response.json()["items"][0]
    assert item["progress_percent"] == 93.33
    assert item["completed"] is True

    # Anonymous sessions leave no history
    await client.post(f"/api/videos/{video.uuid}/view", json={"watch_duration": 30}, headers={"X-Session-Id": "anon"})
    response = await client.get("/api/users/history/watch", headers=auth_headers(regular_user))
    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_manual_history_entry_and_clear(client, test_db, creator_channel, video, regular_user):
    headers = auth_headers(regular_user)
    other = await make_video(test_db, creator_channel, title="Deuxième", duration=200)

    response = await client.post("/api/users/history/watch", json={"video_id": other.uuid, "watch_time": 50}, headers=headers)
    assert response.status_code == 200
    assert response.json()["progress_percent"] == 25.0

    await client.post("/api/users/history/watch", json={"video_id": video.uuid, "watch_time": 30}, headers=headers)
    response = await client.get("/api/users/history/watch", headers=headers)
    assert [i["video"]["uuid"] for i in response.json()["items"]] == [video.uuid, other.uuid]

    response = await client.delete("/api/users/history/watch", headers=headers)
    assert response.status_code == 204
    response = await client.get("/api/users/history/watch", headers=headers)
    assert response.json()["total"] == 0


# ── Saved and liked ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_saved_videos(client, test_db, creator_channel, video, regular_user):
    headers = auth_headers(regular_user)
    for _ in range(2):
        response = await client.post(f"/api/users/saved/{video.uuid}", headers=headers)
        assert response.status_code == 201

    response = await client.get("/api/users/saved", headers=headers)
    assert response.json()["total"] == 1
    assert response.json()["items"][0]["video"]["uuid"] == video.uuid

    secret = await make_video(test_db, creator_channel, title="Privée", visibility="private")
    response = await client.post(f"/api/users/saved/{secret.uuid}", headers=headers)
    assert response.status_code == 404

    response = await client.delete(f"/api/users/saved/{video.uuid}", headers=headers)
    assert response.json() == {"saved": False}
    response = await client.get("/api/users/saved", headers=headers)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_liked_videos(client, video, regular_user):
    headers = auth_headers(regular_user)
    await client.post(f"/api/videos/{video.uuid}/react", json={"reaction": "like"}, headers=headers)

    response = await client.get("/api/users/liked", headers=headers)
    assert [i["video"]["uuid"] for i in response.json()["items"]] == [video.uuid]

    await client.post(f"/api/videos/{video.uuid}/react", json={"reaction": "dislike"}, headers=headers)
    response = await client.get("/api/users/liked", headers=headers)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_library_routes_do_not_shadow_profiles(client, regular_user):
    response = await client.get("/api/users/awa")
    assert response.json()["username"] == "awa"
    response = await client.get("/api/users/saved")
    assert response.status_code == 401


# ── Reports ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_report_video(client, test_db, creator, video, regular_user):
    headers = auth_headers(regular_user)
    payload = {"content_type": "video", "content_id": video.uuid, "reason": "spam", "description": "Pub déguisée"}

    response = await client.post("/api/users/report", json=payload, headers=headers)
    assert response.status_code == 201
    assert response.json()["status"] == "pending"

    response = await client.post("/api/users/report", json=payload, headers=headers)
    assert response.status_code == 400

    response = await client.post("/api/users/report", json=payload, headers=auth_headers(creator))
    assert response.status_code == 400

    response = await client.post(
        "/api/users/report", json={**payload, "content_id": "missing"}, headers=headers
    )
    assert response.status_code == 404

    response = await client.post("/api/users/report", json={**payload, "reason": "boring"}, headers=headers)
    assert response.status_code == 422

    notices = await test_db.execute(select(Notification).where(Notification.user_id == creator.uuid))
    notice = notices.scalar_one()
    assert notice.type == "report"
    assert notice.link == f"/watch/{video.uuid}"


@pytest.mark.asyncio
async def test_moderators_review_reports(client, test_db, creator, video, regular_user, admin_user):
    other = await make_user(test_db, "issa")
    payload = {"content_type": "video", "content_id": video.uuid, "reason": "violence"}
    response = await client.post("/api/users/report", json=payload, headers=auth_headers(regular_user))
    report_id = response.json()["uuid"]
    await client.post("/api/users/report", json=payload, headers=auth_headers(other))

    response = await client.get("/api/admin/reports", headers=auth_headers(regular_user))
    assert response.status_code == 403

    admin = auth_headers(admin_user)
    response = await client.get("/api/admin/reports", headers=admin)
    assert response.json()["total"] == 2

    response = await client.get("/api/admin/reports/stats", headers=admin)
    stats = response.json()
    assert stats["pending"] == 2
    assert stats["total"] == 2
    assert stats["top_reasons"] == [{"reason": "violence", "count": 2}]

    response = await client.get(f"/api/admin/reports/{report_id}", headers=admin)
    assert len(response.json()["other_reports"]) == 1

    response = await client.patch(
        f"/api/admin/reports/{report_id}",
        json={"status": "resolved", "action_taken": "content_blocked"},
        headers=admin,
    )
    assert response.status_code == 200
    assert response.json()["reviewed_by"] == admin_user.uuid
    await test_db.refresh(video)
    assert video.status == "blocked"

    response = await client.patch(f"/api/admin/reports/{report_id}", json={"status": "dismissed"}, headers=admin)
    assert response.status_code == 409

    response = await client.get("/api/admin/reports", params={"status": "resolved"}, headers=admin)
    assert [r["uuid"] for r in response.json()["items"]] == [report_id]

    response = await client.get("/api/admin/dashboard", headers=admin)
    assert response.json()["pending_reports"] == 1


@pytest.mark.asyncio
async def test_banning_a_reported_user(client, test_db, regular_user, admin_user):
    troll = await make_user(test_db, "troll")
    response = await client.post(
        "/api/users/report",
        json={"content_type": "user", "content_id": troll.uuid, "reason": "harassment"},
        headers=auth_headers(regular_user),
    )
    report_id = response.json()["uuid"]

    response = await client.patch(
        f"/api/admin/reports/{report_id}",
        json={"status": "resolved", "action_taken": "user_banned"},
        headers=auth_headers(admin_user),
    )
    assert response.json()["action_taken"] == "user_banned"
    await test_db.refresh(troll)
    assert troll.is_active is False

    report = await test_db.get(Report, report_id)
    assert report.reviewed_at is not None


# ── Notifications ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_notification_feed(client, creator, creator_channel, video, regular_user):
    await client.post(f"/api/subscriptions/{creator_channel.uuid}", headers=auth_headers(regular_user))
    await client.post(f"/api/comments/video/{video.uuid}", json={"content": "Super"}, headers=auth_headers(regular_user))

    headers = auth_headers(creator)
    response = await client.get("/api/notifications", headers=headers)
    body = response.json()
    assert sorted(n["type"] for n in body["items"]) == ["comment", "subscription"]
    assert body["unread_count"] == 2

    first_id = body["items"][0]["uuid"]
    response = await client.patch(f"/api/notifications/{first_id}/read", headers=auth_headers(regular_user))
    assert response.status_code == 404
    response = await client.patch(f"/api/notifications/{first_id}/read", headers=headers)
    assert response.json()["is_read"] is True

    response = await client.get("/api/notifications", params={"unread_only": True}, headers=headers)
    assert response.json()["total"] == 1
    assert response.json()["unread_count"] == 1

    response = await client.patch("/api/notifications/read-all", headers=headers)
    assert response.json() == {"updated": 1}

    response = await client.delete(f"/api/notifications/{first_id}", headers=headers)
    assert response.status_code == 204
    response = await client.get("/api/notifications", headers=headers)
    assert response.json()["total"] == 1
    assert response.json()["unread_count"] == 0

    await client.delete("/api/notifications", headers=headers)
    response = await client.get("/api/notifications", headers=headers)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_subscribers_hear_about_public_uploads(client, creator, creator_channel, regular_user):
    await client.post(f"/api/subscriptions/{creator_channel.uuid}", headers=auth_headers(regular_user))

    for title, visibility in (("Nouveau clip", "public"), ("Brouillon", "private")):
        await client.post(
            "/api/videos",
            json={"title": title, "video_url": "https://cdn.example.com/c.mp4", "visibility": visibility},
            headers=auth_headers(creator),
        )

    response = await client.get("/api/notifications", headers=auth_headers(regular_user))
    items = response.json()["items"]
    assert [n["type"] for n in items] == ["new_video"]
    assert items[0]["message"] == "Kader published: Nouveau clip"
