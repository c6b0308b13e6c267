"""Ad creatives and their impression/click audit rows."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, Float, DateTime, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from tipoko.database import Base

AD_TYPES = ("banner", "video", "overlay", "sponsored")
AD_POSITIONS = ("header", "sidebar", "in_feed", "pre_roll", "mid_roll", "post_roll")
ROLL_POSITIONS = ("pre_roll", "mid_roll", "post_roll")
AD_STATUSES = ("draft", "active", "paused", "ended")


class Ad(Base):
    """Ad creative with placement, schedule, budget and targeting.

    Targeting lists are JSON arrays; an empty (or null) list places no
    restriction on that dimension.
    """

    __tablename__ = "ads"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    ad_type: Mapped[str] = mapped_column(String(20), default="banner")
    media_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    target_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=0)  # seconds, video ads only
    position: Mapped[str] = mapped_column(String(20), default="sidebar")
    priority: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default="draft")

    start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Billing (XOF); budget <= 0 means unlimited
    budget: Mapped[float] = mapped_column(Float, default=0.0)
    spent: Mapped[float] = mapped_column(Float, default=0.0)
    cpm: Mapped[float] = mapped_column(Float, default=0.0)

    impressions: Mapped[int] = mapped_column(Integer, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    revenue: Mapped[float] = mapped_column(Float, default=0.0)

    target_countries: Mapped[list | None] = mapped_column(JSON, nullable=True)
    target_devices: Mapped[list | None] = mapped_column(JSON, nullable=True)
    target_categories: Mapped[list | None] = mapped_column(JSON, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_ad_status_position", "status", "position"),
        Index("idx_ad_priority", "priority"),
    )

    def __repr__(self) -> str:
        return f"<Ad(uuid={self.uuid}, title={self.title}, position={self.position}, status={self.status})>"


class AdImpression(Base):
    """One served impression of an ad."""

    __tablename__ = "ad_impressions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ad_id: Mapped[str] = mapped_column(String(36), ForeignKey("ads.uuid", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="SET NULL"), nullable=True)
    video_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="SET NULL"), nullable=True)
    device_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_ad_impression_ad_id", "ad_id"),
    )


class AdClick(Base):
    """One click-through on an ad."""

    __tablename__ = "ad_clicks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ad_id: Mapped[str] = mapped_column(String(36), ForeignKey("ads.uuid", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="SET NULL"), nullable=True)
    video_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="SET NULL"), nullable=True)
    device_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_ad_click_ad_id", "ad_id"),
    )
