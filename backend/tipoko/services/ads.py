"""Ad selection, targeting and impression/click tracking."""
import logging
import random
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.config import settings
from tipoko.models.ad import Ad, AdImpression, AdClick, ROLL_POSITIONS
from tipoko.services.platform_settings import get_setting

logger = logging.getLogger(__name__)


def skippable_after(ad: Ad) -> Optional[int]:
    """Seconds before a video-roll ad can be skipped; None for display positions."""
    if ad.position not in ROLL_POSITIONS:
        return None
    skip = settings.AD_SKIP_AFTER_SECONDS
    if ad.duration and ad.duration > 0:
        skip = min(skip, ad.duration)
    return skip


def _matches(targets: Optional[list], value: Optional[str]) -> bool:
    """Empty target list means no restriction; otherwise the value must be listed."""
    if not targets:
        return True
    if not value:
        return False
    value = value.strip().lower()
    return any(str(t).strip().lower() == value for t in targets)


def is_eligible(
    ad: Ad,
    device: Optional[str] = None,
    country: Optional[str] = None,
    category: Optional[str] = None,
) -> bool:
    return (
        _matches(ad.target_devices, device)
        and _matches(ad.target_countries, country)
        and _matches(ad.target_categories, category)
    )


async def select_ads(
    db: AsyncSession,
    position: str,
    limit: Optional[int] = None,
    device: Optional[str] = None,
    country: Optional[str] = None,
    category: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[Ad]:
    """
    Active ads for a position, filtered by schedule, budget and targeting.

    Ordered by priority (highest first), shuffled among equal priorities.
    Returns nothing while ads are disabled platform-wide.
    """
    if not await get_setting(db, "ads_enabled", True):
        return []

    now = now or datetime.utcnow()
    limit = limit or settings.AD_DEFAULT_LIMIT

    result = await db.execute(
        select(Ad).where(
            Ad.status == "active",
            Ad.position == position,
            or_(Ad.start_date.is_(None), Ad.start_date <= now),
            or_(Ad.end_date.is_(None), Ad.end_date >= now),
            or_(Ad.budget <= 0, Ad.spent < Ad.budget),
        )
    )
    candidates = [ad for ad in result.scalars().all() if is_eligible(ad, device, country, category)]

    random.shuffle(candidates)
    # sort is stable, so the shuffle decides order within a priority
    candidates.sort(key=lambda ad: ad.priority or 0, reverse=True)
    return candidates[:limit]


async def get_ad(db: AsyncSession, ad_id: str, active_only: bool = False) -> Ad:
    query = select(Ad).where(Ad.uuid == ad_id)
    if active_only:
        query = query.where(Ad.status == "active")
    result = await db.execute(query)
    ad = result.scalar_one_or_none()
    if ad is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ad not found"
        )
    return ad


async def record_impression(
    db: AsyncSession,
    ad_id: str,
    user_id: Optional[str] = None,
    video_id: Optional[str] = None,
    device: Optional[str] = None,
    country: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Ad:
    """
    Count one impression and bill it at cpm/1000.

    Only active ads with budget left are billed; anything else gets a 409.
    The charge never takes ``spent`` past a positive budget, and the ad ends
    once its budget is spent.
    """
    result = await db.execute(select(Ad).where(Ad.uuid == ad_id).with_for_update())
    ad = result.scalar_one_or_none()
    if ad is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ad not found"
        )

    has_budget = bool(ad.budget and ad.budget > 0)
    if ad.status != "active" or (has_budget and (ad.spent or 0.0) >= ad.budget):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ad is not being served"
        )

    cost = (ad.cpm or 0.0) / 1000
    if has_budget:
        cost = min(cost, ad.budget - (ad.spent or 0.0))
    ad.impressions = (ad.impressions or 0) + 1
    ad.revenue = round((ad.revenue or 0.0) + cost, 4)
    ad.spent = round((ad.spent or 0.0) + cost, 4)

    if has_budget and ad.spent >= ad.budget:
        ad.status = "ended"
        logger.info(f"Ad {ad.uuid} ended: budget {ad.budget} exhausted")

    db.add(AdImpression(
        ad_id=ad.uuid,
        user_id=user_id,
        video_id=video_id,
        device_type=device,
        country=country,
        ip_address=ip_address,
    ))
    await db.flush()
    return ad


def normalize_target_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    return f"https://{url}"


async def record_click(
    db: AsyncSession,
    ad_id: str,
    user_id: Optional[str] = None,
    video_id: Optional[str] = None,
    device: Optional[str] = None,
    country: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Optional[str]:
    """Count one click and return the ad's target URL."""
    result = await db.execute(select(Ad).where(Ad.uuid == ad_id).with_for_update())
    ad = result.scalar_one_or_none()
    if ad is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ad not found"
        )

    ad.clicks = (ad.clicks or 0) + 1
    db.add(AdClick(
        ad_id=ad.uuid,
        user_id=user_id,
        video_id=video_id,
        device_type=device,
        country=country,
        ip_address=ip_address,
    ))
    await db.flush()
    return normalize_target_url(ad.target_url)


def _ctr(clicks: int, impressions: int) -> float:
    return round(clicks / impressions * 100, 2) if impressions else 0.0


async def ad_analytics(db: AsyncSession) -> dict:
    """Totals over all ads plus per-ad performance, best CTR first."""
    totals = await db.execute(
        select(
            func.count(Ad.uuid),
            func.coalesce(func.sum(Ad.impressions), 0),
            func.coalesce(func.sum(Ad.clicks), 0),
            func.coalesce(func.sum(Ad.revenue), 0.0),
            func.coalesce(func.sum(Ad.spent), 0.0),
        )
    )
    count, impressions, clicks, revenue, spent = totals.one()

    active = await db.execute(select(func.count(Ad.uuid)).where(Ad.status == "active"))

    result = await db.execute(select(Ad).order_by(Ad.created_at.desc()))
    per_ad = [
        {
            "uuid": ad.uuid,
            "title": ad.title,
            "position": ad.position,
            "status": ad.status,
            "impressions": ad.impressions or 0,
            "clicks": ad.clicks or 0,
            "ctr": _ctr(ad.clicks or 0, ad.impressions or 0),
            "revenue": round(ad.revenue or 0.0, 2),
            "spent": round(ad.spent or 0.0, 2),
            "budget": ad.budget or 0.0,
        }
        for ad in result.scalars().all()
    ]
    per_ad.sort(key=lambda a: a["ctr"], reverse=True)

    return {
        "total_ads": int(count or 0),
        "active_ads": int(active.scalar() or 0),
        "total_impressions": int(impressions or 0),
        "total_clicks": int(clicks or 0),
        "ctr": _ctr(int(clicks or 0), int(impressions or 0)),
        "total_revenue": round(float(revenue), 2),
        "total_spent": round(float(spent), 2),
        "ads": per_ad,
    }
