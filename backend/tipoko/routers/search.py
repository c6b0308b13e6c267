"""Search endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.database import get_db
from tipoko.schemas.channels import ChannelResponse
from tipoko.schemas.playlists import PlaylistResponse
from tipoko.schemas.search import SearchResponse, Suggestion, TrendingTag
from tipoko.schemas.videos import VideoResponse
from tipoko.services import search

router = APIRouter()


@router.get("", response_model=SearchResponse)
async def search_catalogue(
    q: str = Query("", max_length=100),
    type: str = Query("all", pattern=r"^(all|video|channel|playlist)$"),
    sort: str = Query("relevance", pattern=r"^(relevance|date|views|rating)$"),
    duration: Optional[str] = Query(None, pattern=r"^(short|medium|long)$"),
    upload_date: Optional[str] = Query(None, pattern=r"^(hour|today|week|month|year)$"),
    category: Optional[str] = Query(None, description="Category slug"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    """
    Search public videos, channels and public playlists.

    - short: under 4 minutes; long: over 20 minutes
    - With type=all, channels and playlists are capped at 5 each
    - Filters and sorting apply to videos only
    """
    term = q.strip()
    if not term:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Search term required"
        )

    section_limit = search.MIXED_SECTION_LIMIT if type == "all" else page_size
    videos, channels, playlists = [], [], []

    if type in ("all", "video"):
        videos = await search.search_videos(
            db, term, sort=sort, duration=duration, upload_date=upload_date,
            category=category, page=page, page_size=page_size,
        )
    if type in ("all", "channel"):
        channels = await search.search_channels(db, term, section_limit)
    if type in ("all", "playlist"):
        playlists = await search.search_playlists(db, term, section_limit)

    return SearchResponse(
        videos=[VideoResponse.model_validate(v) for v in videos],
        channels=[ChannelResponse.model_validate(c) for c in channels],
        playlists=[PlaylistResponse.model_validate(p) for p in playlists],
        page=page,
        page_size=page_size
    )


@router.get("/suggestions", response_model=List[Suggestion])
async def search_suggestions(q: str = Query("", max_length=100), db: AsyncSession = Depends(get_db)):
    return await search.suggestions(db, q)


@router.get("/trending", response_model=List[TrendingTag])
async def trending_searches(db: AsyncSession = Depends(get_db)):
    """Most used tags."""
    return await search.trending_tags(db)
