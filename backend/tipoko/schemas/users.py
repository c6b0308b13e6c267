"""User management schemas for self-service and admin endpoints."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field, field_validator

from tipoko.schemas.auth import check_password_strength

ROLES_PATTERN = r"^(user|creator|moderator|admin|superadmin)$"


class UserUpdate(BaseModel):
    """Schema for user self-service profile update."""

    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    bio: Optional[str] = Field(None, max_length=2000)
    avatar_url: Optional[str] = Field(None, max_length=500)
    password: Optional[str] = Field(None, min_length=8)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        """Validate password strength if provided."""
        if v is None:
            return v
        return check_password_strength(v)


class PublicUserResponse(BaseModel):
    """Public profile, safe to show to anyone."""

    uuid: str
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    is_verified: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserAdminUpdate(BaseModel):
    """Schema for admin user update (can change role, status, verification)."""

    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[str] = Field(None, pattern=ROLES_PATTERN)
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None


class UserDetailResponse(BaseModel):
    """Schema for detailed user response (admin view)."""

    uuid: str
    username: str
    email: str
    display_name: Optional[str] = None
    role: str
    is_active: bool
    is_verified: bool
    verification_date: Optional[datetime] = None
    last_login: Optional[datetime] = None
    bank_account_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_name: Optional[str] = None
    mobile_money_number: Optional[str] = None
    mobile_money_provider: Optional[str] = None
    total_earnings: float
    pending_earnings: float
    paid_earnings: float
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserListItem(BaseModel):
    """Schema for user list item."""

    uuid: str
    username: str
    email: str
    display_name: Optional[str] = None
    role: str
    is_active: bool
    is_verified: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """Schema for paginated user list response."""

    items: List[UserListItem]
    total: int
    skip: int
    limit: int
