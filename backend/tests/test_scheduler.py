"""Tests for the weekly earnings job and the admin seed script."""
from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest
import redis.asyncio as redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from scripts.seed_admin import seed_admin, seed_categories
from tipoko.config import settings
from tipoko.models.earning import WeeklyEarning
from tipoko.models.user import User
from tipoko.models.video import Category
from tipoko.services import earnings, scheduler


def _fake_redis(set_result=True):
    client = AsyncMock()
    client.set.return_value = set_result
    return client


@pytest.mark.asyncio
async def test_acquire_lock_uses_set_nx():
    client = _fake_redis()
    with patch.object(scheduler, "get_redis_client", AsyncMock(return_value=client)):
        assert await scheduler.acquire_lock("weekly_earnings", timeout=60) is True
    client.set.assert_awaited_once_with("tipoko:lock:weekly_earnings", "1", nx=True, ex=60)


@pytest.mark.asyncio
async def test_acquire_lock_fails_closed_on_redis_error():
    client = _fake_redis()
    client.set.side_effect = redis.ConnectionError("down")
    with patch.object(scheduler, "get_redis_client", AsyncMock(return_value=client)):
        assert await scheduler.acquire_lock("weekly_earnings") is False


@pytest.mark.asyncio
async def test_weekly_job_skips_when_locked():
    client = _fake_redis(set_result=None)
    with patch.object(scheduler, "get_redis_client", AsyncMock(return_value=client)), \
            patch.object(scheduler, "calculate_weekly_earnings", AsyncMock()) as calculate:
        assert await scheduler.run_weekly_earnings() is None
    calculate.assert_not_awaited()


@pytest.mark.asyncio
async def test_weekly_job_rolls_up_and_releases_lock(test_db, creator, video):
    await earnings.track_video_view(test_db, video, "s-1", 300)
    await test_db.commit()

    client = _fake_redis()
    session_factory = sessionmaker(test_db.bind, class_=AsyncSession, expire_on_commit=False)
    with patch.object(scheduler, "get_redis_client", AsyncMock(return_value=client)), \
            patch.object(scheduler, "AsyncSessionLocal", session_factory):
        result = await scheduler.run_weekly_earnings(datetime.utcnow())

    assert result["created"] == 1
    client.delete.assert_awaited_once_with("tipoko:lock:weekly_earnings")

    rollup = await test_db.execute(select(WeeklyEarning).where(WeeklyEarning.user_id == creator.uuid))
    assert rollup.scalar_one().total_earnings == 6.05


@pytest.mark.asyncio
async def test_seed_admin_is_idempotent(test_db):
    assert await seed_admin(test_db) is True
    assert await seed_admin(test_db) is False

    result = await test_db.execute(select(User).where(User.email == settings.ADMIN_EMAIL))
    admin = result.scalar_one()
    assert admin.is_admin
    assert admin.is_verified


@pytest.mark.asyncio
async def test_seed_categories(test_db):
    created = await seed_categories(test_db)
    assert created > 0
    assert await seed_categories(test_db) == 0

    result = await test_db.execute(select(Category).where(Category.slug == "music"))
    assert result.scalar_one().name == "Music"
