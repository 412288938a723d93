"""Polling worker for headless-browser scrape jobs."""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from catalog_sync.catalog.persister import CatalogPersister
from catalog_sync.config import settings
from catalog_sync.db.models import Brand, ScrapeJob
from catalog_sync.db.session import AsyncSessionLocal
from catalog_sync.ingest.brand_config import (
    BrandApiConfig,
    BrandConfigError,
    BrowserSelectors,
    load_brand_config,
)
from catalog_sync.ingest.fetchers.headless import BrowserCatalogScraper
from catalog_sync.logging_config import get_logger
from catalog_sync.normalize.processor import CatalogNormalizer, ProductRejected
from catalog_sync.worker.job_queue import ScrapeJobQueue

logger = logging.getLogger(__name__)


class ScrapeJobError(RuntimeError):
    """Raised when a job cannot be processed (unknown brand or URL shape)."""
    pass


class JobKind(str, Enum):
    CATEGORY = "category"
    PRODUCT = "product"


def classify_url(url: str) -> JobKind:
    """Decide whether a job URL is a product page or a category page."""
    path = urlparse(url).path.lower()
    if re.search(settings.worker_product_url_pattern, path):
        return JobKind.PRODUCT
    if re.search(settings.worker_category_url_pattern, path):
        return JobKind.CATEGORY
    raise ScrapeJobError(f"Cannot tell whether {url} is a product or a category page")


def _host(url: Optional[str]) -> str:
    host = urlparse(url or "").netloc.lower()
    return host[4:] if host.startswith("www.") else host


@dataclass
class JobBrand:
    brand_id: int
    slug: str
    config: Optional[BrandApiConfig]

    @property
    def selectors(self) -> BrowserSelectors:
        return self.config.browser if self.config else BrowserSelectors()


class ScrapeWorker:
    """Claims one job per poll cycle and scrapes it with a headless browser."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        queue: Optional[ScrapeJobQueue] = None,
        persister: Optional[CatalogPersister] = None,
        normalizer: Optional[CatalogNormalizer] = None,
        scraper_factory: Optional[Callable[[], BrowserCatalogScraper]] = None,
        poll_interval: Optional[float] = None,
        auto_retries: Optional[int] = None,
        category_product_limit: Optional[int] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.queue = queue or ScrapeJobQueue(self.session_factory)
        self.persister = persister or CatalogPersister(self.session_factory)
        self.normalizer = normalizer or CatalogNormalizer()
        self.scraper_factory = scraper_factory or BrowserCatalogScraper
        self.poll_interval = (
            settings.worker_poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.auto_retries = (
            settings.worker_failed_job_auto_retries if auto_retries is None else auto_retries
        )
        self.category_product_limit = category_product_limit or settings.worker_category_product_limit
        self._stop = asyncio.Event()

    def stop(self):
        logger.info("Scrape worker stopping...")
        self._stop.set()

    async def run(self):
        """Poll until stopped: one job per cycle, then a plain sleep."""
        logger.info(f"Scrape worker started (poll interval {self.poll_interval}s)")
        while not self._stop.is_set():
            try:
                await self.process_next_job()
            except Exception as e:
                # Only queue access can fail here; job errors are handled per job
                logger.error(f"Worker cycle failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Scrape worker stopped")

    async def process_next_job(self) -> Optional[int]:
        """
        Claim and run the oldest pending job.

        Returns:
            Id of the processed job, or None if the queue was empty
        """
        job = await self.queue.claim_next()
        if job is None:
            return None

        log = get_logger(__name__, job_id=job.id)
        log.info(f"Processing job {job.id}: {job.url}")
        try:
            note = await self._run_job(job)
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            if job.attempts <= self.auto_retries:
                log.warning(f"Job {job.id} failed (attempt {job.attempts}), requeueing: {error}")
                await self.queue.release(job.id, error)
            else:
                log.error(f"Job {job.id} failed: {error}", exc_info=True)
                await self.queue.mark_failed(job.id, error)
            return job.id

        await self.queue.mark_done(job.id, note)
        log.info(f"Job {job.id} completed: {note}")
        return job.id

    async def _run_job(self, job: ScrapeJob) -> str:
        kind = classify_url(job.url)
        brand = await self._resolve_brand(job.url)
        async with self.scraper_factory() as scraper:
            if kind is JobKind.CATEGORY:
                return await self._process_category(scraper, brand, job.url)
            return await self._process_product(scraper, brand, job.url)

    async def _resolve_brand(self, url: str) -> JobBrand:
        """Match the job URL's host against brand websites and API base URLs."""
        host = _host(url)
        async with self.session_factory() as db:
            result = await db.execute(select(Brand).where(Brand.is_active.is_(True)).order_by(Brand.id))
            brands = list(result.scalars().all())

        for brand in brands:
            config = None
            if brand.api_config:
                try:
                    config = load_brand_config(brand.api_config, brand.slug)
                except BrandConfigError as e:
                    logger.warning(f"Ignoring configuration of {brand.slug}: {e}")
            hosts = {_host(brand.website_url), _host(config.base_url) if config else ""}
            if host and host in hosts:
                return JobBrand(brand_id=brand.id, slug=brand.slug, config=config)
        raise ScrapeJobError(f"No active brand matches host {host or url}")

    async def _process_category(self, scraper, brand: JobBrand, url: str) -> str:
        product_urls = await scraper.discover_product_urls(
            url, brand.selectors, limit=self.category_product_limit
        )
        saved = rejected = failed = 0
        for product_url in product_urls[: self.category_product_limit]:
            try:
                await self._save_product(scraper, brand, product_url)
                saved += 1
            except ProductRejected as e:
                logger.warning(str(e))
                rejected += 1
            except Exception as e:
                logger.error(f"Product {product_url} failed: {e}", exc_info=True)
                failed += 1
        return f"{len(product_urls)} found, {saved} saved, {rejected} rejected, {failed} failed"

    async def _process_product(self, scraper, brand: JobBrand, url: str) -> str:
        try:
            created = await self._save_product(scraper, brand, url)
        except ProductRejected as e:
            logger.warning(str(e))
            return f"rejected: {e.reason}"
        return "created" if created else "updated"

    async def _save_product(self, scraper, brand: JobBrand, url: str) -> bool:
        raw = await scraper.scrape_product(url, brand.selectors)
        product = self.normalizer.normalize(raw, None, brand.config)
        result = await self.persister.upsert_product(product, brand_id=brand.brand_id)
        return result.created


__all__ = [
    "JobKind",
    "ScrapeJobError",
    "ScrapeWorker",
    "classify_url",
]
