"""Per-user library: watch history, saved videos, and content reports."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, Float, DateTime, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from tipoko.database import Base

REPORT_CONTENT_TYPES = ("video", "comment", "channel", "user")
REPORT_STATUSES = ("pending", "reviewing", "resolved", "dismissed")


class WatchHistory(Base):
    """Latest watch of a video by a signed-in user."""

    __tablename__ = "watch_history"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), primary_key=True)
    video_id: Mapped[str] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="CASCADE"), primary_key=True)
    watch_time: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    progress_percent: Mapped[float] = mapped_column(Float, default=0.0)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    watched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_watch_history_user_watched", "user_id", "watched_at"),
    )


class SavedVideo(Base):
    """Video bookmarked to watch later."""

    __tablename__ = "saved_videos"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), primary_key=True)
    video_id: Mapped[str] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="CASCADE"), primary_key=True)
    saved_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Report(Base):
    """
    A user's report about a video, comment, channel or user.

    Moderators move reports from pending through reviewing to resolved or
    dismissed; ``action_taken`` records what was done.
    """

    __tablename__ = "reports"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    reporter_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)
    content_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content_id: Mapped[str] = mapped_column(String(36), nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    action_taken: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="SET NULL"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_report_status", "status"),
        Index("idx_report_content", "content_type", "content_id"),
    )

    def __repr__(self) -> str:
        return f"<Report(uuid={self.uuid}, content_type={self.content_type}, status={self.status})>"
