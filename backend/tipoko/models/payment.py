"""Payout records and their audit trail."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Float, DateTime, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tipoko.database import Base

PAYMENT_METHODS = ("bank_transfer", "mobile_money", "cash", "other")
PAYMENT_STATUSES = ("pending", "processing", "completed", "failed", "cancelled")
TRANSACTION_TYPES = ("earning", "payment", "refund", "adjustment")


class Payment(Base):
    """Money paid out to a creator, recorded by an admin."""

    __tablename__ = "payments"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="XOF")
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="SET NULL"), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id])
    approver = relationship("User", foreign_keys=[paid_by])

    __table_args__ = (
        Index("idx_payment_user_id", "user_id"),
        Index("idx_payment_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Payment(uuid={self.uuid}, user_id={self.user_id}, amount={self.amount}, status={self.status})>"


class PaymentTransaction(Base):
    """Audit row attached to a payment."""

    __tablename__ = "payment_transactions"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)
    payment_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("payments.uuid", ondelete="SET NULL"), nullable=True)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_payment_transaction_user_id", "user_id"),
    )
