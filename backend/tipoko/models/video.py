"""Video catalogue and watch analytics models."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tipoko.database import Base


class Category(Base):
    """Video category, also used for ad targeting by slug."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, slug={self.slug})>"


class Video(Base):
    """Video published on a channel."""

    __tablename__ = "videos"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    channel_id: Mapped[str] = mapped_column(String(36), ForeignKey("channels.uuid", ondelete="CASCADE"), nullable=False)
    category_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_url: Mapped[str] = mapped_column(String(500), nullable=False)
    thumbnail_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=0)  # seconds

    status: Mapped[str] = mapped_column(String(20), default="published")  # processing, published, private, unlisted, deleted, blocked
    visibility: Mapped[str] = mapped_column(String(20), default="public")  # public, private, unlisted
    is_comments_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    view_count: Mapped[int] = mapped_column(Integer, default=0)
    like_count: Mapped[int] = mapped_column(Integer, default=0)
    dislike_count: Mapped[int] = mapped_column(Integer, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, default=0)
    share_count: Mapped[int] = mapped_column(Integer, default=0)

    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    channel = relationship("Channel", foreign_keys=[channel_id])
    category = relationship("Category", foreign_keys=[category_id])

    __table_args__ = (
        Index("idx_video_channel_id", "channel_id"),
        Index("idx_video_status", "status"),
        Index("idx_video_published_at", "published_at"),
    )

    def __repr__(self) -> str:
        return f"<Video(uuid={self.uuid}, title={self.title})>"


class VideoView(Base):
    """One watch session of a video; watch_duration grows as the player reports progress."""

    __tablename__ = "video_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    video_id: Mapped[str] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="CASCADE"), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(36), ForeignKey("channels.uuid", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="SET NULL"), nullable=True)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)

    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    device_type: Mapped[str] = mapped_column(String(20), default="other")  # desktop, mobile, tablet, tv, other
    browser: Mapped[str | None] = mapped_column(String(50), nullable=True)
    os: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    referrer: Mapped[str | None] = mapped_column(String(500), nullable=True)
    watch_duration: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    viewed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)  # last progress report

    __table_args__ = (
        Index("idx_view_video_id", "video_id"),
        Index("idx_view_channel_viewed_at", "channel_id", "viewed_at"),
        Index("idx_view_session", "video_id", "session_id"),
    )


class VideoLike(Base):
    """A user's like or dislike of a video."""

    __tablename__ = "video_likes"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), primary_key=True)
    video_id: Mapped[str] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="CASCADE"), primary_key=True)
    is_like: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Tag(Base):
    """Free-form video tag; usage_count counts the videos carrying it."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name})>"


class VideoTag(Base):
    __tablename__ = "video_tags"

    video_id: Mapped[str] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="CASCADE"), primary_key=True)
    tag_id: Mapped[int] = mapped_column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)

    __table_args__ = (
        Index("idx_video_tag_tag_id", "tag_id"),
    )
