"""Creator earning models: per-event accruals and weekly rollups."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, Float, DateTime, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tipoko.database import Base

EARNING_TYPES = ("view", "ad", "subscription", "donation", "like", "comment", "share", "other")
ENGAGEMENT_TYPES = ("like", "comment", "share")

# Lifecycle order; status may only move to a later entry.
EARNING_STATUSES = ("pending", "approved", "paid")


class UserEarning(Base):
    """A single accrual for a creator.

    View accruals carry the watch session_id so that later progress reports
    update the same row instead of creating a new one. Engagement accruals
    carry the actor_id so each user adds at most one like bonus per
    video.
    """

    __tablename__ = "user_earnings"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)
    video_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="SET NULL"), nullable=True)
    session_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # User whose like, comment or share produced the accrual
    actor_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="SET NULL"), nullable=True)

    earning_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[str] = mapped_column(String(3), default="XOF")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_user_earning_user_created", "user_id", "created_at"),
        Index("idx_user_earning_status", "status"),
        Index("idx_user_earning_session", "user_id", "video_id", "session_id"),
        Index("idx_user_earning_actor", "video_id", "earning_type", "actor_id"),
    )

    def __repr__(self) -> str:
        return f"<UserEarning(uuid={self.uuid}, user_id={self.user_id}, type={self.earning_type}, amount={self.amount})>"


class WeeklyEarning(Base):
    """Per-user rollup of one ISO week (week_number like ``2024-W07``)."""

    __tablename__ = "weekly_earnings"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)
    week_number: Mapped[str] = mapped_column(String(10), nullable=False)
    week_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    week_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    total_views: Mapped[int] = mapped_column(Integer, default=0)
    total_watch_minutes: Mapped[int] = mapped_column(Integer, default=0)
    total_earnings: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(20), default="pending")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "week_number", name="uq_weekly_earning_user_week"),
        Index("idx_weekly_earning_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<WeeklyEarning(user_id={self.user_id}, week={self.week_number}, total={self.total_earnings})>"
