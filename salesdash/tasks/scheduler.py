"""
Background refresh scheduler using APScheduler
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from salesdash.core.config import settings
from salesdash.core.context import DashboardContext

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def start_scheduler(context: DashboardContext):
    """Initialize and start the scheduler (must be called inside the event loop)"""
    global scheduler

    if scheduler is not None:
        return

    scheduler = AsyncIOScheduler()

    # ============================================
    # Data refresh (every REFRESH_INTERVAL_MINUTES)
    # ============================================
    scheduler.add_job(
        func=refresh_loads_job,
        trigger=IntervalTrigger(minutes=settings.REFRESH_INTERVAL_MINUTES),
        args=[context],
        id="refresh_loads",
        name="Reload sales and clients",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")


def stop_scheduler():
    """Stop the scheduler"""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Scheduler stopped")


async def refresh_loads_job(context: DashboardContext) -> int:
    """Reload every store that is not mid-load; returns how many restarted"""
    logger.info("Running data refresh job...")
    restarted = 0
    for resource, store in context.stores.items():
        if store.is_running:
            logger.info(f"Skipping {resource.value} refresh, load still running")
            continue
        if store.refetch():
            restarted += 1
    logger.info(f"Data refresh started {restarted} load(s)")
    return restarted
