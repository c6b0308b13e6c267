"""Schemas for ad serving and ad management."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

AD_TYPE_PATTERN = r"^(banner|video|overlay|sponsored)$"
AD_POSITION_PATTERN = r"^(header|sidebar|in_feed|pre_roll|mid_roll|post_roll)$"
AD_STATUS_PATTERN = r"^(draft|active|paused|ended)$"


class AdCreate(BaseModel):
    """Schema for admin ad creation."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    ad_type: str = Field("banner", pattern=AD_TYPE_PATTERN)
    media_url: Optional[str] = Field(None, max_length=500)
    target_url: Optional[str] = Field(None, max_length=500)
    duration: int = Field(0, ge=0)
    position: str = Field("sidebar", pattern=AD_POSITION_PATTERN)
    priority: int = 0
    status: str = Field("draft", pattern=AD_STATUS_PATTERN)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    budget: float = Field(0.0, ge=0)
    cpm: float = Field(0.0, ge=0)
    target_countries: List[str] = Field(default_factory=list)
    target_devices: List[str] = Field(default_factory=list)
    target_categories: List[str] = Field(default_factory=list)


class AdUpdate(BaseModel):
    """Schema for admin ad update; only sent fields change."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    ad_type: Optional[str] = Field(None, pattern=AD_TYPE_PATTERN)
    media_url: Optional[str] = Field(None, max_length=500)
    target_url: Optional[str] = Field(None, max_length=500)
    duration: Optional[int] = Field(None, ge=0)
    position: Optional[str] = Field(None, pattern=AD_POSITION_PATTERN)
    priority: Optional[int] = None
    status: Optional[str] = Field(None, pattern=AD_STATUS_PATTERN)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    budget: Optional[float] = Field(None, ge=0)
    cpm: Optional[float] = Field(None, ge=0)
    target_countries: Optional[List[str]] = None
    target_devices: Optional[List[str]] = None
    target_categories: Optional[List[str]] = None


class AdResponse(BaseModel):
    """Full ad record (admin view)."""

    uuid: str
    title: str
    description: Optional[str] = None
    ad_type: str
    media_url: Optional[str] = None
    target_url: Optional[str] = None
    duration: int
    position: str
    priority: int
    status: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    budget: float
    spent: float
    cpm: float
    impressions: int
    clicks: int
    revenue: float
    target_countries: Optional[List[str]] = None
    target_devices: Optional[List[str]] = None
    target_categories: Optional[List[str]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AdPublicResponse(BaseModel):
    """Ad as served to viewers."""

    uuid: str
    title: str
    description: Optional[str] = None
    ad_type: str
    media_url: Optional[str] = None
    target_url: Optional[str] = None
    position: str
    duration: int
    skippable_after: Optional[int] = None


class AdEventRequest(BaseModel):
    """Context sent with an impression or click."""

    video_id: Optional[str] = None
    device: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)


class AdClickResponse(BaseModel):
    success: bool = True
    target_url: Optional[str] = None
