"""Schemas for search results."""
from typing import List
from pydantic import BaseModel

from tipoko.schemas.channels import ChannelResponse
from tipoko.schemas.playlists import PlaylistResponse
from tipoko.schemas.videos import VideoResponse


class SearchResponse(BaseModel):
    videos: List[VideoResponse] = []
    channels: List[ChannelResponse] = []
    playlists: List[PlaylistResponse] = []
    page: int
    page_size: int


class Suggestion(BaseModel):
    suggestion: str
    type: str  # video, channel, tag


class TrendingTag(BaseModel):
    name: str
    usage_count: int

    class Config:
        from_attributes = True
