"""
Background Scheduler - Periodic maintenance for the engagement engine

This module runs two housekeeping jobs using APScheduler. Neither is
needed for correctness; both keep stored state close to what readers
already compute lazily.

Jobs:
    1. expire_invitations: moves open invitations past their deadline to
       "expired" so listings and exports see fresh statuses
       (every EXPIRY_SWEEP_INTERVAL_HOURS, default 6)
    2. flush_notifications: re-dispatches outbox rows that never reached
       the broker (every OUTBOX_FLUSH_INTERVAL_MINUTES, default 5)
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from talentpool.database import async_session
from talentpool.services.invitations import expire_stale_invitations
from talentpool.services.notifications import flush_pending_notifications
from talentpool.config import get_settings

settings = get_settings()
scheduler = AsyncIOScheduler()
logger = logging.getLogger(__name__)


async def expire_invitations() -> int:
    """Scheduled sweep of invitations past their deadline."""
    async with async_session() as db:
        try:
            return await expire_stale_invitations(db)
        except Exception as e:
            logger.error(f"Invitation expiry sweep failed: {e}")
            return 0


async def flush_notifications() -> int:
    """Scheduled re-dispatch of pending notification outbox rows."""
    async with async_session() as db:
        try:
            return await flush_pending_notifications(db)
        except Exception as e:
            logger.error(f"Notification outbox flush failed: {e}")
            return 0


def start_scheduler():
    """Start the background scheduler"""
    scheduler.add_job(
        expire_invitations,
        trigger=IntervalTrigger(hours=settings.expiry_sweep_interval_hours),
        id="expire_invitations",
        replace_existing=True,
    )
    scheduler.add_job(
        flush_notifications,
        trigger=IntervalTrigger(minutes=settings.outbox_flush_interval_minutes),
        id="flush_notifications",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started: expiry sweep every {settings.expiry_sweep_interval_hours} hours, "
        f"outbox flush every {settings.outbox_flush_interval_minutes} minutes"
    )


def stop_scheduler():
    """Stop the background scheduler"""
    scheduler.shutdown()
