"""Comment model."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, DateTime, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tipoko.database import Base


class Comment(Base):
    """Comment on a video. Deletion is soft so earnings history stays consistent."""

    __tablename__ = "comments"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    video_id: Mapped[str] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    author = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_comment_video_id", "video_id"),
        Index("idx_comment_created_at", "created_at"),
    )
