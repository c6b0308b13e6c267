"""Schemas for videos, reactions, views and comments."""
from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field

VISIBILITY_PATTERN = r"^(public|private|unlisted)$"
DEVICE_PATTERN = r"^(desktop|mobile|tablet|tv|other)$"


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., pattern=r"^[a-z0-9-]{2,100}$")
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=50)


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None

    class Config:
        from_attributes = True


class VideoCreate(BaseModel):
    """Video metadata; the media itself is referenced by URL."""

    channel_id: Optional[str] = None  # defaults to the caller's first channel
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    video_url: str = Field(..., min_length=1, max_length=500)
    thumbnail_url: Optional[str] = Field(None, max_length=500)
    duration: int = Field(0, ge=0)
    category_id: Optional[int] = None
    visibility: str = Field("public", pattern=VISIBILITY_PATTERN)
    is_comments_enabled: bool = True
    tags: List[str] = Field(default_factory=list, max_length=15)


class VideoUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    thumbnail_url: Optional[str] = Field(None, max_length=500)
    category_id: Optional[int] = None
    visibility: Optional[str] = Field(None, pattern=VISIBILITY_PATTERN)
    is_comments_enabled: Optional[bool] = None
    tags: Optional[List[str]] = Field(None, max_length=15)  # replaces the current tags


class VideoResponse(BaseModel):
    uuid: str
    channel_id: str
    category_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    video_url: str
    thumbnail_url: Optional[str] = None
    duration: int
    status: str
    visibility: str
    is_comments_enabled: bool
    view_count: int
    like_count: int
    dislike_count: int
    comment_count: int
    share_count: int
    published_at: Optional[datetime] = None
    created_at: datetime
    tags: List[str] = []

    class Config:
        from_attributes = True


class VideoListResponse(BaseModel):
    """Schema for paginated video list."""

    items: List[VideoResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ReactionRequest(BaseModel):
    reaction: Literal["like", "dislike", "none"]


class ReactionResponse(BaseModel):
    reaction: str
    like_count: int
    dislike_count: int


class ViewRequest(BaseModel):
    """Start (or resume) a watch session."""

    watch_duration: int = Field(0, ge=0)
    device_type: Optional[str] = Field(None, pattern=DEVICE_PATTERN)  # parsed from User-Agent when omitted
    country: Optional[str] = Field(None, max_length=100)
    browser: Optional[str] = Field(None, max_length=50)
    os: Optional[str] = Field(None, max_length=50)


class WatchProgressRequest(BaseModel):
    watch_duration: int = Field(..., ge=0)


class ViewResponse(BaseModel):
    view_id: int
    session_id: str
    view_count: int
    watch_duration: int
    earning: Optional[dict] = None


class ShareResponse(BaseModel):
    share_count: int


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class CommentResponse(BaseModel):
    uuid: str
    video_id: str
    user_id: str
    content: str
    created_at: datetime
    username: Optional[str] = None


class CommentListResponse(BaseModel):
    items: List[CommentResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
