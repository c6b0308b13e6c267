"""Tests for ad selection, targeting, budget and tracking."""
from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from sqlalchemy import select, func

from conftest import auth_headers
from tipoko.models.ad import Ad, AdImpression, AdClick
from tipoko.services import ads as ad_service
from tipoko.services.platform_settings import set_setting


def titles(ads):
    return sorted(ad.title for ad in ads)


async def make_ad(db, title, **kwargs):
    values = {"position": "sidebar", "status": "active", "target_url": "https://example.com/promo"}
    values.update(kwargs)
    ad = Ad(title=title, **values)
    db.add(ad)
    await db.commit()
    await db.refresh(ad)
    return ad


@pytest.mark.asyncio
async def test_select_ads_filters_status_position_and_schedule(test_db):
    now = datetime.utcnow()
    await make_ad(test_db, "live")
    await make_ad(test_db, "draft", status="draft")
    await make_ad(test_db, "header", position="header")
    await make_ad(test_db, "future", start_date=now + timedelta(days=1))
    await make_ad(test_db, "expired", end_date=now - timedelta(days=1))
    await make_ad(test_db, "window", start_date=now - timedelta(days=1), end_date=now + timedelta(days=1))

    selected = await ad_service.select_ads(test_db, "sidebar", now=now)
    assert sorted(ad.title for ad in selected) == ["live", "window"]


@pytest.mark.asyncio
async def test_select_ads_targeting(test_db):
    await make_ad(test_db, "everyone")
    await make_ad(test_db, "bf-mobile", target_countries=["BF"], target_devices=["mobile"])
    await make_ad(test_db, "music", target_categories=["music"])

    assert titles(await ad_service.select_ads(test_db, "sidebar")) == ["everyone"]
    assert titles(await ad_service.select_ads(test_db, "sidebar", device="Mobile", country="bf")) == ["bf-mobile", "everyone"]
    assert titles(await ad_service.select_ads(test_db, "sidebar", device="desktop", country="BF")) == ["everyone"]
    assert titles(await ad_service.select_ads(test_db, "sidebar", category="music")) == ["everyone", "music"]


@pytest.mark.asyncio
async def test_select_ads_priority_and_limit(test_db):
    for i in range(3):
        await make_ad(test_db, f"low-{i}", priority=1)
    await make_ad(test_db, "top", priority=10)

    selected = await ad_service.select_ads(test_db, "sidebar", limit=2)
    assert len(selected) == 2
    assert selected[0].title == "top"
    assert selected[1].title.startswith("low-")


@pytest.mark.asyncio
async def test_select_ads_respects_ads_enabled(test_db):
    await make_ad(test_db, "live")
    await set_setting(test_db, "ads_enabled", False)
    await test_db.commit()
    assert await ad_service.select_ads(test_db, "sidebar") == []


@pytest.mark.asyncio
async def test_impression_bills_cpm_and_ends_at_budget(test_db):
    ad = await make_ad(test_db, "small", cpm=1000.0, budget=2.0)

    await ad_service.record_impression(test_db, ad.uuid, device="mobile", country="BF")
    assert ad.impressions == 1
    assert ad.revenue == 1.0
    assert ad.status == "active"

    await ad_service.record_impression(test_db, ad.uuid)
    assert ad.spent == 2.0
    assert ad.status == "ended"

    rows = await test_db.execute(select(func.count(AdImpression.id)).where(AdImpression.ad_id == ad.uuid))
    assert rows.scalar() == 2
    assert await ad_service.select_ads(test_db, "sidebar") == []


@pytest.mark.asyncio
async def test_impressions_stop_billing_at_budget(test_db):
    ad = await make_ad(test_db, "tiny", cpm=1.0, budget=0.002)

    await ad_service.record_impression(test_db, ad.uuid)
    await ad_service.record_impression(test_db, ad.uuid)
    assert ad.status == "ended"

    for _ in range(3):
        with pytest.raises(HTTPException) as exc:
            await ad_service.record_impression(test_db, ad.uuid)
        assert exc.value.status_code == 409

    assert ad.impressions == 2
    assert ad.spent == ad.budget == 0.002
    rows = await test_db.execute(select(func.count(AdImpression.id)).where(AdImpression.ad_id == ad.uuid))
    assert rows.scalar() == 2


@pytest.mark.asyncio
async def test_last_impression_is_capped_at_remaining_budget(test_db):
    ad = await make_ad(test_db, "capped", cpm=3000.0, budget=5.0, spent=4.0)
    await ad_service.record_impression(test_db, ad.uuid)
    assert ad.spent == 5.0
    assert ad.revenue == 1.0
    assert ad.status == "ended"


@pytest.mark.asyncio
async def test_paused_and_draft_ads_are_not_billed(client, test_db):
    paused = await make_ad(test_db, "paused", status="paused", cpm=1000.0)
    draft = await make_ad(test_db, "draft", status="draft", cpm=1000.0)

    for ad in (paused, draft):
        response = await client.post(f"/api/ads/{ad.uuid}/impression")
        assert response.status_code == 409
        await test_db.refresh(ad)
        assert ad.impressions == 0
        assert ad.spent == 0


@pytest.mark.asyncio
async def test_exhausted_budget_is_not_served(test_db):
    await make_ad(test_db, "spent", budget=5.0, spent=5.0)
    await make_ad(test_db, "unlimited", budget=0.0, spent=50.0)
    selected = await ad_service.select_ads(test_db, "sidebar")
    assert [ad.title for ad in selected] == ["unlimited"]


def test_skippable_after():
    assert ad_service.skippable_after(Ad(position="pre_roll", duration=30)) == 5
    assert ad_service.skippable_after(Ad(position="mid_roll", duration=3)) == 3
    assert ad_service.skippable_after(Ad(position="sidebar", duration=30)) is None


def test_normalize_target_url():
    assert ad_service.normalize_target_url("example.com/promo") == "https://example.com/promo"
    assert ad_service.normalize_target_url("http://example.com") == "http://example.com"
    assert ad_service.normalize_target_url("") is None


@pytest.mark.asyncio
async def test_public_ad_endpoints(client, test_db):
    ad = await make_ad(test_db, "roll", position="pre_roll", duration=15, target_url="example.com")

    response = await client.get("/api/ads", params={"position": "pre_roll"})
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["skippable_after"] == 5
    assert "budget" not in data[0]

    response = await client.post(f"/api/ads/{ad.uuid}/impression", json={"device": "mobile", "country": "BF"})
    assert response.json() == {"success": True, "impressions": 1}

    response = await client.post(f"/api/ads/{ad.uuid}/click")
    assert response.json() == {"success": True, "target_url": "https://example.com"}
    clicks = await test_db.execute(select(func.count(AdClick.id)))
    assert clicks.scalar() == 1

    response = await client.get("/api/ads/does-not-exist")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_ad_crud_and_analytics(client, admin_user):
    headers = auth_headers(admin_user)
    response = await client.post(
        "/api/admin/ads",
        json={"title": "Faso Telecom", "position": "header", "status": "active", "cpm": 500, "target_countries": ["BF"]},
        headers=headers,
    )
    assert response.status_code == 201
    ad_id = response.json()["uuid"]

    response = await client.put(f"/api/admin/ads/{ad_id}", json={"priority": 3}, headers=headers)
    assert response.json()["priority"] == 3

    await client.post(f"/api/ads/{ad_id}/impression")
    await client.post(f"/api/ads/{ad_id}/impression")
    await client.post(f"/api/ads/{ad_id}/click")

    response = await client.get("/api/admin/ads/analytics", headers=headers)
    assert response.status_code == 200
    analytics = response.json()
    assert analytics["total_impressions"] == 2
    assert analytics["total_clicks"] == 1
    assert analytics["ctr"] == 50.0
    assert analytics["ads"][0]["revenue"] == 1.0

    response = await client.delete(f"/api/admin/ads/{ad_id}", headers=headers)
    assert response.status_code == 204
    response = await client.get(f"/api/admin/ads/{ad_id}", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_ad_rejects_inverted_schedule(client, admin_user):
    response = await client.post(
        "/api/admin/ads",
        json={"title": "Bad", "start_date": "2024-05-10T00:00:00", "end_date": "2024-05-01T00:00:00"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 400
