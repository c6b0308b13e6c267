"""Playlist models."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from tipoko.database import Base


class Playlist(Base):
    """Ordered list of videos kept on a channel."""

    __tablename__ = "playlists"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    channel_id: Mapped[str] = mapped_column(String(36), ForeignKey("channels.uuid", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    visibility: Mapped[str] = mapped_column(String(20), default="public")  # public, private, unlisted

    video_count: Mapped[int] = mapped_column(Integer, default=0)
    total_duration: Mapped[int] = mapped_column(Integer, default=0)  # seconds

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_playlist_channel_id", "channel_id"),
    )

    def __repr__(self) -> str:
        return f"<Playlist(uuid={self.uuid}, title={self.title})>"


class PlaylistVideo(Base):
    """A video's slot in a playlist; positions start at 1."""

    __tablename__ = "playlist_videos"

    playlist_id: Mapped[str] = mapped_column(String(36), ForeignKey("playlists.uuid", ondelete="CASCADE"), primary_key=True)
    video_id: Mapped[str] = mapped_column(String(36), ForeignKey("videos.uuid", ondelete="CASCADE"), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_playlist_video_position", "playlist_id", "position"),
    )
