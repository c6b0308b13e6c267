"""Schemas for channel endpoints."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

HANDLE_PATTERN = r"^[a-z0-9_-]{3,30}$"


class ChannelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    handle: str = Field(..., pattern=HANDLE_PATTERN)
    description: Optional[str] = Field(None, max_length=5000)
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    avatar_url: Optional[str] = Field(None, max_length=500)
    banner_url: Optional[str] = Field(None, max_length=500)


class ChannelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=5000)
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    avatar_url: Optional[str] = Field(None, max_length=500)
    banner_url: Optional[str] = Field(None, max_length=500)


class ChannelResponse(BaseModel):
    uuid: str
    user_id: str
    name: str
    handle: str
    description: Optional[str] = None
    avatar_url: Optional[str] = None
    banner_url: Optional[str] = None
    country: Optional[str] = None
    subscriber_count: int
    video_count: int
    total_views: int
    is_verified: bool
    is_monetized: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ChannelDetailResponse(ChannelResponse):
    """Channel page: adds whether the caller is subscribed."""

    is_subscribed: bool = False
    is_owner: bool = False
