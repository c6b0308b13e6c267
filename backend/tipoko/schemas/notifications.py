"""Schemas for the notification feed."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class NotificationResponse(BaseModel):
    uuid: str
    type: str
    title: str
    message: Optional[str] = None
    link: Optional[str] = None
    thumbnail_url: Optional[str] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    unread_count: int
    total: int
    page: int
    page_size: int
    total_pages: int
