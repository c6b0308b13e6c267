"""Schemas for playlists."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from tipoko.schemas.videos import VISIBILITY_PATTERN, VideoResponse


class PlaylistCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    visibility: str = Field("public", pattern=VISIBILITY_PATTERN)
    channel_id: Optional[str] = None  # defaults to the caller's first channel


class PlaylistUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    visibility: Optional[str] = Field(None, pattern=VISIBILITY_PATTERN)
    thumbnail_url: Optional[str] = Field(None, max_length=500)


class PlaylistResponse(BaseModel):
    uuid: str
    channel_id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    visibility: str
    video_count: int
    total_duration: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PlaylistItem(BaseModel):
    position: int
    added_at: datetime
    video: VideoResponse


class PlaylistDetailResponse(PlaylistResponse):
    """Playlist with its videos in position order."""

    channel_name: str
    channel_handle: str
    is_owner: bool = False
    videos: List[PlaylistItem] = []


class PlaylistAddVideo(BaseModel):
    video_id: str


class PlaylistReorder(BaseModel):
    """Video ids in their new order; must list every video of the playlist once."""

    video_ids: List[str] = Field(..., min_length=1)
