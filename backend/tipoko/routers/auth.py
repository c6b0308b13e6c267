"""Authentication router for user registration, login, and token management."""
import logging
import secrets
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from tipoko.database import get_db
from tipoko.config import settings
from tipoko.models.user import User
from tipoko.models.channel import Channel
from tipoko.schemas.auth import UserRegister, UserLogin, Token, UserResponse, RefreshTokenRequest
from tipoko.auth.security import hash_password, verify_password, create_access_token, create_refresh_token, decode_token
from tipoko.auth.dependencies import get_current_active_user
from tipoko.rate_limit import limiter
from tipoko.services.platform_settings import get_setting

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_tokens(user: User) -> dict:
    claims = {"sub": user.uuid, "email": user.email, "role": user.role}
    return {
        "access_token": create_access_token(data=claims),
        "refresh_token": create_refresh_token(data=claims),
        "token_type": "bearer"
    }


async def _available_handle(db: AsyncSession, base: str) -> str:
    """Lowercase handle derived from the username, suffixed if already taken."""
    handle = base.lower()
    while True:
        result = await db.execute(select(Channel.uuid).where(Channel.handle == handle))
        if result.scalar_one_or_none() is None:
            return handle
        handle = f"{base.lower()[:25]}-{secrets.token_hex(2)}"


@router.post("/register", response_model=Token)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def register(request: Request, user_data: UserRegister, db: AsyncSession = Depends(get_db)):
    """
    Register a new user.

    - Refused while registrations are disabled
    - Checks email and username uniqueness
    - Hashes password with bcrypt
    - Creates the user's default channel (handle = lowercase username)
    - Returns JWT tokens
    """
    if not await get_setting(db, "registration_enabled", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Registrations are currently disabled"
        )

    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    result = await db.execute(select(User).where(User.username == user_data.username))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already taken"
        )

    new_user = User(
        username=user_data.username,
        email=user_data.email,
        password_hash=hash_password(user_data.password),
        display_name=user_data.display_name or user_data.username,
        role="user",
        is_active=True,
    )
    db.add(new_user)
    await db.flush()

    db.add(Channel(
        user_id=new_user.uuid,
        name=new_user.display_name,
        handle=await _available_handle(db, user_data.username),
    ))

    await db.commit()
    await db.refresh(new_user)
    logger.info(f"Registered user {new_user.uuid} ({new_user.username})")

    return _issue_tokens(new_user)


@router.post("/login", response_model=Token)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(request: Request, credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    """
    Login with email and password.

    - Validates credentials
    - Refuses deactivated accounts
    - Returns JWT access + refresh tokens
    """
    result = await db.execute(select(User).where(User.email == credentials.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled"
        )

    user.last_login = datetime.utcnow()
    await db.commit()

    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh(body: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    """
    Exchange a refresh token for a new token pair.
    """
    payload = decode_token(body.refresh_token, expected_type="refresh")
    if payload is None or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token"
        )

    result = await db.execute(select(User).where(User.uuid == payload["sub"]))
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(current_user: User = Depends(get_current_active_user)):
    """Current user profile."""
    return current_user
