"""Scheduler service for cron jobs using APScheduler."""
import logging
import os
import multiprocessing
from datetime import datetime, timedelta
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import redis.asyncio as redis

from tipoko.config import settings
from tipoko.database import AsyncSessionLocal
from tipoko.services.earnings import calculate_weekly_earnings

logger = logging.getLogger(__name__)

# Initialize scheduler
scheduler = AsyncIOScheduler()

# Redis client for distributed locking
redis_client = None

# uvicorn --workers names its children SpawnProcess-N; a single-process server runs as MainProcess
SCHEDULER_PROCESS_NAMES = ("SpawnProcess-1", "MainProcess")


async def get_redis_client():
    """Get or create Redis client."""
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return redis_client


async def acquire_lock(lock_name: str, timeout: int = 300) -> bool:
    """
    Acquire a distributed lock using Redis.

    Args:
        lock_name: Name of the lock
        timeout: Lock timeout in seconds

    Returns:
        True if lock acquired, False otherwise
    """
    try:
        client = await get_redis_client()
        # SET NX EX: only set if not exists, with expiry
        result = await client.set(f"tipoko:lock:{lock_name}", "1", nx=True, ex=timeout)
        return result is not None
    except redis.RedisError as e:
        logger.error(f"Failed to acquire lock {lock_name}: {e}")
        return False


async def release_lock(lock_name: str):
    """Release a distributed lock."""
    try:
        client = await get_redis_client()
        await client.delete(f"tipoko:lock:{lock_name}")
    except redis.RedisError as e:
        logger.error(f"Failed to release lock {lock_name}: {e}")


async def run_weekly_earnings(week_date: datetime | None = None):
    """Roll up the week that just ended (or the week of ``week_date``)."""
    lock_name = "weekly_earnings"

    if not await acquire_lock(lock_name, timeout=1800):
        logger.info(f"Skipping {lock_name} - another instance is running")
        return None

    try:
        week_date = week_date or datetime.utcnow() - timedelta(days=7)
        logger.info("Running weekly earnings job")
        async with AsyncSessionLocal() as session:
            result = await calculate_weekly_earnings(session, week_date)
            await session.commit()
        logger.info(f"Weekly earnings job done for {result['week']}: {result['created']} rollups")
        return result
    except Exception as e:
        logger.error(f"Error in weekly earnings job: {e}", exc_info=True)
        return None
    finally:
        await release_lock(lock_name)


def start_scheduler():
    """Start the APScheduler with the weekly earnings cron job."""
    # Run on one process only so the job is not duplicated across workers
    current_pid = os.getpid()
    current_process_name = multiprocessing.current_process().name

    if current_process_name not in SCHEDULER_PROCESS_NAMES:
        logger.info(f"Skipping scheduler on {current_process_name} (PID: {current_pid})")
        return

    logger.info(f"Starting scheduler on {current_process_name} (PID: {current_pid})...")

    scheduler.add_job(
        run_weekly_earnings,
        trigger=CronTrigger(
            day_of_week=settings.WEEKLY_EARNINGS_DAY_OF_WEEK,
            hour=settings.WEEKLY_EARNINGS_HOUR,
            minute=settings.WEEKLY_EARNINGS_MINUTE,
        ),
        id="weekly_earnings",
        name="Calculate weekly earnings",
        replace_existing=True
    )

    scheduler.start()
    logger.info("Scheduler started with weekly earnings job")


def stop_scheduler():
    """Stop the APScheduler."""
    current_pid = os.getpid()
    current_process_name = multiprocessing.current_process().name

    if current_process_name not in SCHEDULER_PROCESS_NAMES:
        logger.info(f"Skipping scheduler shutdown on {current_process_name} (PID: {current_pid})")
        return

    logger.info(f"Stopping scheduler on {current_process_name} (PID: {current_pid})...")
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
    else:
        logger.info("Scheduler was not running")
