"""Schemas for creator earnings and payouts."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

PAYMENT_METHOD_PATTERN = r"^(bank_transfer|mobile_money|cash|other)$"


class EarningResponse(BaseModel):
    uuid: str
    user_id: str
    video_id: Optional[str] = None
    earning_type: str
    amount: float
    currency: str
    description: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class EarningListResponse(BaseModel):
    """Schema for paginated earning history."""

    earnings: List[EarningResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class WeeklyEarningResponse(BaseModel):
    uuid: str
    user_id: str
    week_number: str
    week_start: datetime
    week_end: datetime
    total_views: int
    total_watch_minutes: int
    total_earnings: float
    status: str

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    uuid: str
    user_id: str
    amount: float
    currency: str
    payment_method: str
    payment_reference: Optional[str] = None
    status: str
    notes: Optional[str] = None
    paid_by: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentInfoUpdate(BaseModel):
    """Payout details a creator keeps on file."""

    bank_account_name: Optional[str] = Field(None, max_length=255)
    bank_account_number: Optional[str] = Field(None, max_length=100)
    bank_name: Optional[str] = Field(None, max_length=255)
    mobile_money_number: Optional[str] = Field(None, max_length=50)
    mobile_money_provider: Optional[str] = Field(None, max_length=50)


class PaymentInfoResponse(PaymentInfoUpdate):
    class Config:
        from_attributes = True


class PayRequest(BaseModel):
    amount: float = Field(..., gt=0)
    payment_method: str = Field("bank_transfer", pattern=PAYMENT_METHOD_PATTERN)
    payment_reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class PayMultipleRequest(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)
    payment_method: str = Field("bank_transfer", pattern=PAYMENT_METHOD_PATTERN)
    notes: Optional[str] = None


class PayoutCandidate(BaseModel):
    """Verified creator due for payout."""

    uuid: str
    username: str
    display_name: Optional[str] = None
    email: str
    pending_earnings: float
    bank_account_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_name: Optional[str] = None
    mobile_money_number: Optional[str] = None
    mobile_money_provider: Optional[str] = None

    class Config:
        from_attributes = True


class EarningsUserItem(BaseModel):
    """Creator row in the admin earnings console."""

    uuid: str
    username: str
    display_name: Optional[str] = None
    email: str
    is_verified: bool
    verification_date: Optional[datetime] = None
    total_earnings: float
    pending_earnings: float
    paid_earnings: float

    class Config:
        from_attributes = True


class CalculateWeeklyRequest(BaseModel):
    week_date: Optional[datetime] = None


class EarningStatusUpdate(BaseModel):
    status: str = Field(..., pattern=r"^(pending|approved|paid)$")
