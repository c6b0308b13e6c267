"""Schemas for the admin console."""
from datetime import datetime
from typing import Any, Optional, List
from pydantic import BaseModel, Field

from tipoko.schemas.videos import VideoResponse

VIDEO_STATUS_PATTERN = r"^(processing|published|private|unlisted|deleted|blocked)$"
SETTING_TYPE_PATTERN = r"^(string|number|boolean|json)$"


class DashboardStats(BaseModel):
    total_users: int
    active_users: int
    verified_users: int
    new_users_this_week: int
    total_channels: int
    total_videos: int
    total_views: int
    total_comments: int
    active_ads: int
    ad_revenue: float
    pending_reports: int = 0
    pending_earnings: float
    paid_earnings: float


class VideoModerationUpdate(BaseModel):
    status: Optional[str] = Field(None, pattern=VIDEO_STATUS_PATTERN)
    visibility: Optional[str] = Field(None, pattern=r"^(public|private|unlisted)$")
    is_comments_enabled: Optional[bool] = None


class AdminVideoListResponse(BaseModel):
    items: List[VideoResponse]
    total: int
    skip: int
    limit: int


class SettingResponse(BaseModel):
    key: str
    value: Any = None
    setting_type: str
    description: Optional[str] = None
    is_public: bool
    updated_at: Optional[datetime] = None


class SettingUpdate(BaseModel):
    value: Any = None
    setting_type: Optional[str] = Field(None, pattern=SETTING_TYPE_PATTERN)
    description: Optional[str] = None
