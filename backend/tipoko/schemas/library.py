"""Schemas for watch history, saved and liked videos, and reports."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from tipoko.schemas.videos import VideoResponse

REPORT_REASON_PATTERN = r"^(spam|harassment|hate_speech|violence|nudity|copyright|misinformation|other)$"
REPORT_CONTENT_PATTERN = r"^(video|comment|channel|user)$"


class WatchRecord(BaseModel):
    video_id: str
    watch_time: int = Field(0, ge=0)


class HistoryItem(BaseModel):
    video: VideoResponse
    watch_time: int
    progress_percent: float
    completed: bool
    watched_at: datetime


class HistoryListResponse(BaseModel):
    items: List[HistoryItem]
    total: int
    page: int
    page_size: int
    total_pages: int


class LibraryItem(BaseModel):
    """A saved or liked video with the time it was added."""

    video: VideoResponse
    added_at: datetime


class LibraryListResponse(BaseModel):
    items: List[LibraryItem]
    total: int
    page: int
    page_size: int
    total_pages: int


class ReportCreate(BaseModel):
    content_type: str = Field(..., pattern=REPORT_CONTENT_PATTERN)
    content_id: str = Field(..., min_length=1, max_length=36)
    reason: str = Field(..., pattern=REPORT_REASON_PATTERN)
    description: Optional[str] = Field(None, max_length=2000)


class ReportResponse(BaseModel):
    uuid: str
    reporter_id: str
    content_type: str
    content_id: str
    reason: str
    description: Optional[str] = None
    status: str
    action_taken: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReportUpdate(BaseModel):
    status: str = Field(..., pattern=r"^(reviewing|resolved|dismissed)$")
    action_taken: Optional[str] = Field(None, pattern=r"^(none|content_removed|content_blocked|user_warned|user_banned)$")


class ReportDetailResponse(ReportResponse):
    other_reports: List[ReportResponse] = []


class ReportListResponse(BaseModel):
    items: List[ReportResponse]
    total: int
    skip: int
    limit: int
