"""APScheduler job definitions."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from catalog_sync.config import settings
from catalog_sync.worker.tasks import task_runner

logger = logging.getLogger(__name__)


def setup_scheduler() -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    Brand scrapes run every settings.scheduled_scrape_interval_minutes when
    settings.scheduled_scrape_enabled is set; otherwise the scheduler is empty.

    Returns:
        Configured scheduler instance
    """
    scheduler = AsyncIOScheduler()
    interval = max(1, int(settings.scheduled_scrape_interval_minutes))

    if settings.scheduled_scrape_enabled:
        scheduler.add_job(
            task_runner.scrape_all_brands,
            IntervalTrigger(minutes=interval),
            id="scrape_all_brands",
            name="Refresh catalogs of all active brands",
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,
            misfire_grace_time=600,
            replace_existing=True,
        )
        logger.info("Scheduler configured: brand scrape every %d minutes", interval)
    else:
        logger.info("Scheduler configured: scheduled scraping disabled")

    return scheduler
