"""Pytest configuration and fixtures."""
import os
from datetime import datetime

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tipoko.models  # noqa: F401
from tipoko.database import Base, get_db
from tipoko.models.channel import Channel
from tipoko.models.user import User
from tipoko.models.video import Video
from tipoko.auth.security import hash_password, create_access_token
from tipoko.rate_limit import limiter
from tipoko.services.platform_settings import seed_default_settings
from main import app

TEST_PASSWORD = "TestPass123"


@pytest.fixture
async def test_db():
    """Create test database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    AsyncSessionLocal = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with AsyncSessionLocal() as session:
        await seed_default_settings(session)
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def client(test_db):
    """Create test client."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_user(
    db: AsyncSession,
    username: str,
    role: str = "user",
    is_verified: bool = False,
    is_active: bool = True,
    with_channel: bool = True,
) -> User:
    """Create a user (and their default channel) directly in the database."""
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        display_name=username.title(),
        role=role,
        is_active=is_active,
        is_verified=is_verified,
    )
    db.add(user)
    await db.flush()
    if with_channel:
        db.add(Channel(user_id=user.uuid, name=user.display_name, handle=username.lower()))
    await db.commit()
    await db.refresh(user)
    return user


async def get_channel(db: AsyncSession, user: User) -> Channel:
    result = await db.execute(select(Channel).where(Channel.user_id == user.uuid))
    return result.scalars().first()


async def make_video(db: AsyncSession, channel: Channel, title: str = "Ouaga by night", duration: int = 600, **kwargs) -> Video:
    video = Video(
        channel_id=channel.uuid,
        title=title,
        video_url=f"https://cdn.example.com/{title.replace(' ', '-').lower()}.mp4",
        duration=duration,
        status=kwargs.pop("status", "published"),
        **kwargs,
    )
    db.add(video)
    await db.commit()
    await db.refresh(video)
    return video


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.uuid, "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def regular_user(test_db):
    return await make_user(test_db, "awa")


@pytest.fixture
async def admin_user(test_db):
    return await make_user(test_db, "boss", role="admin", is_verified=True)


@pytest.fixture
async def creator(test_db):
    """Verified creator with a channel."""
    return await make_user(test_db, "kader", role="creator", is_verified=True)


@pytest.fixture
async def creator_channel(test_db, creator):
    return await get_channel(test_db, creator)


@pytest.fixture
async def video(test_db, creator_channel):
    """Ten-minute public video on the creator's channel."""
    return await make_video(test_db, creator_channel, published_at=datetime.utcnow())
