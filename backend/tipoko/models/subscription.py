"""Channel subscription model."""
from datetime import datetime
from sqlalchemy import String, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from tipoko.database import Base


class Subscription(Base):
    """A user subscribed to a channel."""

    __tablename__ = "subscriptions"

    subscriber_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), primary_key=True)
    channel_id: Mapped[str] = mapped_column(String(36), ForeignKey("channels.uuid", ondelete="CASCADE"), primary_key=True)
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_subscription_channel_id", "channel_id"),
    )

    def __repr__(self) -> str:
        return f"<Subscription(subscriber_id={self.subscriber_id}, channel_id={self.channel_id})>"
