"""Background tasks run by the scheduler."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from catalog_sync import metrics
from catalog_sync.db.models import Brand
from catalog_sync.db.session import AsyncSessionLocal
from catalog_sync.ingest.brand_config import BrandConfigError, load_brand_config
from catalog_sync.ingest.registry import ClientRegistry
from catalog_sync.ingest.scrape_service import CatalogScrapeService, ScrapeSummary

logger = logging.getLogger(__name__)


def _has_api(slug: str, api_config: Optional[dict]) -> bool:
    """Scheduled runs only cover brands an API client can scrape."""
    try:
        config = load_brand_config(api_config, slug)
    except BrandConfigError as e:
        logger.warning(f"Skipping {slug} in scheduled scrape: {e}")
        return False
    if not ClientRegistry.supports(config):
        logger.info(f"Skipping {slug} in scheduled scrape: no API client (strategy={config.strategy})")
        return False
    return True


class TaskRunner:
    """
    Runner for scheduled catalog refreshes.

    Each run walks every active API-backed brand and scrapes its leaf
    categories. Browser-only brands are left to the job worker. One brand
    failing does not stop the others.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        scrape_service: Optional[CatalogScrapeService] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.scrape_service = scrape_service or CatalogScrapeService(self.session_factory)

    async def scrape_all_brands(self) -> ScrapeSummary:
        """Scrape every active API-backed brand (scheduled trigger)."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Brand.id, Brand.slug, Brand.api_config)
                .where(Brand.is_active.is_(True))
                .order_by(Brand.id)
            )
            rows = result.all()
        brands = [(brand_id, slug) for brand_id, slug, api_config in rows if _has_api(slug, api_config)]

        if not brands:
            logger.info("No active API-backed brands to scrape")
            metrics.record_scheduler_run("scrape_all_brands", True)
            return ScrapeSummary(success=True, message="No active API-backed brands")

        total = ScrapeSummary(success=True)
        for brand_id, slug in brands:
            try:
                summary = await self.scrape_service.scrape_brand(brand_id)
            except Exception as e:
                logger.error(f"Scheduled scrape of {slug} failed: {e}", exc_info=True)
                total.errors.append(f"{slug}: {e}")
                continue
            logger.info(
                f"Scheduled scrape of {slug}: {summary.products_created} created, "
                f"{summary.products_updated} updated, {len(summary.errors)} errors"
            )
            total.merge(summary)

        total.success = not total.errors or total.categories_processed > 0
        total.message = f"Scraped {len(brands)} brands"
        metrics.record_scheduler_run("scrape_all_brands", total.success)
        return total


task_runner = TaskRunner()
