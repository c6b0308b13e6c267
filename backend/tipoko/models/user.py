"""User model for Tipoko API."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Float, DateTime, Boolean, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from tipoko.database import Base

ADMIN_ROLES = ("admin", "superadmin")
MODERATOR_ROLES = ("moderator", "admin", "superadmin")


class User(Base):
    """User model for authentication, profile and creator earnings."""

    __tablename__ = "users"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # User info
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Account info
    role: Mapped[str] = mapped_column(String(20), default="user")  # user, creator, moderator, admin, superadmin
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Monetization: only verified accounts accrue earnings
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    verification_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Payout details
    bank_account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bank_account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mobile_money_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    mobile_money_provider: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Running totals (total = pending + paid)
    total_earnings: Mapped[float] = mapped_column(Float, default=0.0)
    pending_earnings: Mapped[float] = mapped_column(Float, default=0.0)
    paid_earnings: Mapped[float] = mapped_column(Float, default=0.0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Indexes
    __table_args__ = (
        Index("idx_user_username", "username"),
        Index("idx_user_role", "role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self) -> str:
        return f"<User(uuid={self.uuid}, email={self.email}, username={self.username})>"
