"""Admin seed script for the Tipoko API.

Creates the default admin account (with its channel), the default platform
settings and the base video categories when they don't exist yet.
It is idempotent and safe to run on every container start.
"""

import asyncio
import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.database import AsyncSessionLocal, create_tables
from tipoko.models.channel import Channel
from tipoko.models.user import User
from tipoko.models.video import Category
from tipoko.auth.security import hash_password
from tipoko.config import settings
from tipoko.services.platform_settings import seed_default_settings

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# (slug, name, icon)
DEFAULT_CATEGORIES = [
    ("music", "Music", "music"),
    ("entertainment", "Entertainment", "film"),
    ("education", "Education", "book"),
    ("news", "News", "newspaper"),
    ("sports", "Sports", "trophy"),
    ("gaming", "Gaming", "gamepad"),
    ("culture", "Culture", "globe"),
    ("comedy", "Comedy", "smile"),
]


async def seed_admin(session: AsyncSession) -> bool:
    """Create the default admin user if it doesn't exist. Returns True when created."""
    result = await session.execute(
        select(User).where(User.email == settings.ADMIN_EMAIL)
    )
    if result.scalar_one_or_none():
        logger.info("Admin user already exists, skipping")
        return False

    admin_user = User(
        username=settings.ADMIN_USERNAME,
        email=settings.ADMIN_EMAIL,
        password_hash=hash_password(settings.ADMIN_PASSWORD),
        display_name="Administrator",
        role="superadmin",
        is_active=True,
        is_verified=True,
    )
    session.add(admin_user)
    await session.flush()

    session.add(Channel(
        user_id=admin_user.uuid,
        name="Tipoko",
        handle=settings.ADMIN_USERNAME.lower(),
    ))
    await session.commit()

    logger.info(f"Admin user created: {settings.ADMIN_EMAIL}")
    return True


async def seed_categories(session: AsyncSession) -> int:
    result = await session.execute(select(Category.slug))
    existing = set(result.scalars().all())
    created = 0
    for slug, name, icon in DEFAULT_CATEGORIES:
        if slug not in existing:
            session.add(Category(slug=slug, name=name, icon=icon))
            created += 1
    if created:
        await session.commit()
        logger.info(f"Seeded {created} categories")
    return created


async def seed_all():
    await create_tables()
    async with AsyncSessionLocal() as session:
        await seed_default_settings(session)
        await seed_categories(session)
        await seed_admin(session)


def main():
    """Entry point for the seed script."""
    asyncio.run(seed_all())


if __name__ == "__main__":
    main()
