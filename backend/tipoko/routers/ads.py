"""Public ad serving endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.database import get_db
from tipoko.models.ad import Ad
from tipoko.models.user import User
from tipoko.schemas.ads import AdPublicResponse, AdEventRequest, AdClickResponse
from tipoko.auth.dependencies import get_optional_user
from tipoko.services import ads as ad_service

router = APIRouter()


def to_public(ad: Ad) -> AdPublicResponse:
    return AdPublicResponse(
        uuid=ad.uuid,
        title=ad.title,
        description=ad.description,
        ad_type=ad.ad_type,
        media_url=ad.media_url,
        target_url=ad.target_url,
        position=ad.position,
        duration=ad.duration or 0,
        skippable_after=ad_service.skippable_after(ad),
    )


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.get("", response_model=List[AdPublicResponse])
async def list_ads(
    position: str = Query("sidebar", pattern=r"^(header|sidebar|in_feed|pre_roll|mid_roll|post_roll)$"),
    limit: Optional[int] = Query(None, ge=1, le=20),
    device: Optional[str] = Query(None, max_length=20),
    country: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db)
):
    """Eligible ads for a placement, highest priority first."""
    selected = await ad_service.select_ads(
        db, position, limit=limit, device=device, country=country, category=category
    )
    return [to_public(ad) for ad in selected]


@router.get("/{ad_id}", response_model=AdPublicResponse)
async def get_ad(ad_id: str, db: AsyncSession = Depends(get_db)):
    ad = await ad_service.get_ad(db, ad_id, active_only=True)
    return to_public(ad)


@router.post("/{ad_id}/impression")
async def record_impression(
    ad_id: str,
    request: Request,
    event: Optional[AdEventRequest] = None,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    event = event or AdEventRequest()
    ad = await ad_service.record_impression(
        db,
        ad_id,
        user_id=current_user.uuid if current_user else None,
        video_id=event.video_id,
        device=event.device,
        country=event.country,
        ip_address=_client_ip(request),
    )
    await db.commit()
    return {"success": True, "impressions": ad.impressions}


@router.post("/{ad_id}/click", response_model=AdClickResponse)
async def record_click(
    ad_id: str,
    request: Request,
    event: Optional[AdEventRequest] = None,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    event = event or AdEventRequest()
    target_url = await ad_service.record_click(
        db,
        ad_id,
        user_id=current_user.uuid if current_user else None,
        video_id=event.video_id,
        device=event.device,
        country=event.country,
        ip_address=_client_ip(request),
    )
    await db.commit()
    return AdClickResponse(target_url=target_url)
