"""Category scraping through retailer APIs: list, fetch, normalize, persist."""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from catalog_sync import metrics
from catalog_sync.catalog.categories import find_category, leaf_descendants
from catalog_sync.catalog.persister import CatalogPersister, PersistenceError
from catalog_sync.db.models import Brand, Category, utcnow
from catalog_sync.db.session import AsyncSessionLocal
from catalog_sync.ingest.base import BaseRetailerClient, RetailerPayloadError
from catalog_sync.ingest.brand_config import BrandApiConfig, BrandConfigError, load_brand_config
from catalog_sync.ingest.http_client import FetchError
from catalog_sync.ingest.registry import ClientRegistry
from catalog_sync.logging_config import get_logger
from catalog_sync.normalize.processor import CatalogNormalizer, NormalizationError, ProductRejected

logger = logging.getLogger(__name__)


@dataclass
class ScrapeSummary:
    """Result of a scrape; per-product problems are listed, not raised."""

    success: bool
    products_created: int = 0
    products_updated: int = 0
    products_rejected: int = 0
    products_found: int = 0
    categories_processed: int = 0
    errors: list[str] = field(default_factory=list)
    message: Optional[str] = None
    duration_seconds: float = 0.0

    @classmethod
    def failure(cls, message: str) -> "ScrapeSummary":
        return cls(success=False, message=message, errors=[message])

    def merge(self, other: "ScrapeSummary") -> None:
        self.products_created += other.products_created
        self.products_updated += other.products_updated
        self.products_rejected += other.products_rejected
        self.products_found += other.products_found
        self.categories_processed += other.categories_processed
        self.errors.extend(other.errors)
        self.duration_seconds += other.duration_seconds

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapeTarget:
    """Plain values needed to scrape one category outside its session."""

    brand_id: int
    brand_slug: str
    config: BrandApiConfig
    category_id: int
    category_api_id: str


def _valid_limit(test_limit: Optional[int]) -> bool:
    return test_limit is None or test_limit >= 1


class CatalogScrapeService:
    """Scrape categories through a brand's API client."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        persister: Optional[CatalogPersister] = None,
        normalizer: Optional[CatalogNormalizer] = None,
        client_factory: Optional[Callable[[BrandApiConfig], BaseRetailerClient]] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.persister = persister or CatalogPersister(self.session_factory)
        self.normalizer = normalizer or CatalogNormalizer()
        self.client_factory = client_factory or ClientRegistry.create_client

    async def scrape_category(
        self,
        brand_id: int,
        category_api_id: Optional[str],
        test_limit: Optional[int] = None,
    ) -> ScrapeSummary:
        """
        Scrape one leaf category of a brand.

        Args:
            brand_id: Brand to scrape
            category_api_id: Retailer-side id of the category
            test_limit: Only fetch the first N products (dry-run verification)

        Returns:
            ScrapeSummary; success is False only for configuration problems
            or a failed listing call
        """
        if not _valid_limit(test_limit):
            return ScrapeSummary.failure(f"test_limit must be a positive integer, got {test_limit}")
        if not category_api_id:
            return ScrapeSummary.failure("Category API identifier is required")

        async with self.session_factory() as db:
            brand = await db.get(Brand, brand_id)
            if brand is None:
                return ScrapeSummary.failure(f"Brand {brand_id} not found")
            category = await find_category(db, brand_id, category_api_id)
            if category is None:
                return ScrapeSummary.failure(
                    f"Brand {brand.slug} has no category with API id {category_api_id}"
                )
            target_or_error = self._target(brand, category)

        if isinstance(target_or_error, str):
            return ScrapeSummary.failure(target_or_error)
        return await self._scrape_target(target_or_error, test_limit)

    async def scrape_category_by_id(
        self, category_id: int, test_limit: Optional[int] = None
    ) -> ScrapeSummary:
        """Scrape a category identified by its catalog id."""
        if not _valid_limit(test_limit):
            return ScrapeSummary.failure(f"test_limit must be a positive integer, got {test_limit}")
        async with self.session_factory() as db:
            category = await db.get(Category, category_id)
            if category is None:
                return ScrapeSummary.failure(f"Category {category_id} not found")
            brand = await db.get(Brand, category.brand_id)
            target_or_error = self._target(brand, category)

        if isinstance(target_or_error, str):
            return ScrapeSummary.failure(target_or_error)
        return await self._scrape_target(target_or_error, test_limit)

    async def scrape_brand(self, brand_id: int, test_limit: Optional[int] = None) -> ScrapeSummary:
        """Scrape every active leaf category of a brand that has a retailer id."""
        if not _valid_limit(test_limit):
            return ScrapeSummary.failure(f"test_limit must be a positive integer, got {test_limit}")
        async with self.session_factory() as db:
            brand = await db.get(Brand, brand_id)
            if brand is None:
                return ScrapeSummary.failure(f"Brand {brand_id} not found")
            result = await db.execute(
                select(Category)
                .where(
                    Category.brand_id == brand_id,
                    Category.is_active.is_(True),
                    Category.is_leaf.is_(True),
                    Category.is_aggregator.is_(False),
                    Category.api_id.is_not(None),
                )
                .order_by(Category.level, Category.sort_order, Category.id)
            )
            categories = list(result.scalars().all())
            targets = [self._target(brand, c) for c in categories]

        return await self._scrape_many(targets, test_limit, label=f"brand {brand_id}")

    async def scrape_category_tree(
        self, category_id: int, test_limit: Optional[int] = None
    ) -> ScrapeSummary:
        """Scrape the scrapeable leaves under a category."""
        if not _valid_limit(test_limit):
            return ScrapeSummary.failure(f"test_limit must be a positive integer, got {test_limit}")
        async with self.session_factory() as db:
            root = await db.get(Category, category_id)
            if root is None:
                return ScrapeSummary.failure(f"Category {category_id} not found")
            brand = await db.get(Brand, root.brand_id)
            leaves = [c for c in await leaf_descendants(db, root) if c.is_scrape_target]
            targets = [self._target(brand, c) for c in leaves]

        return await self._scrape_many(targets, test_limit, label=f"category tree {category_id}")

    # ------------------------------------------------------------------

    @staticmethod
    def _target(brand: Brand, category: Category) -> ScrapeTarget | str:
        """Build a ScrapeTarget, or return why the category cannot be scraped."""
        if not brand.is_active:
            return f"Brand {brand.slug} is inactive"
        if category.is_aggregator:
            return (
                f"Category {category.id} is an aggregator; "
                "it is populated by sibling linking, not scraped"
            )
        if not category.is_leaf:
            return f"Category {category.id} is not a leaf category"
        if not category.api_id:
            return f"Category {category.id} has no API identifier"
        try:
            config = load_brand_config(brand.api_config, brand.slug)
        except BrandConfigError as e:
            return str(e)
        if not ClientRegistry.supports(config):
            return f"Brand {brand.slug} has no API client (strategy={config.strategy}, retailer={config.retailer})"
        return ScrapeTarget(
            brand_id=brand.id,
            brand_slug=brand.slug,
            config=config,
            category_id=category.id,
            category_api_id=category.api_id,
        )

    async def _scrape_many(
        self, targets: list[ScrapeTarget | str], test_limit: Optional[int], label: str
    ) -> ScrapeSummary:
        total = ScrapeSummary(success=True)
        for target in targets:
            if isinstance(target, str):
                total.errors.append(target)
                continue
            summary = await self._scrape_target(target, test_limit)
            if not summary.success:
                total.errors.append(f"category {target.category_id}: {summary.message}")
                continue
            total.merge(summary)

        if targets and total.categories_processed == 0:
            total.success = False
            total.message = f"No category of {label} could be scraped"
        logger.info(
            f"Scrape of {label} finished: {total.categories_processed} categories, "
            f"{total.products_created} created, {total.products_updated} updated, "
            f"{len(total.errors)} errors"
        )
        return total

    async def _scrape_target(self, target: ScrapeTarget, test_limit: Optional[int]) -> ScrapeSummary:
        log = get_logger(__name__, brand=target.brand_slug, category_id=target.category_id)
        started = time.monotonic()
        summary = ScrapeSummary(success=True)

        try:
            client = self.client_factory(target.config)
        except BrandConfigError as e:
            return ScrapeSummary.failure(str(e))

        try:
            try:
                product_ids = await client.list_category_product_ids(target.category_api_id)
            except (FetchError, RetailerPayloadError) as e:
                log.error(f"Listing category {target.category_api_id} failed: {e}")
                return ScrapeSummary.failure(f"Category listing failed: {e}")

            if test_limit is not None:
                product_ids = product_ids[:test_limit]
            summary.products_found = len(product_ids)
            if not product_ids:
                log.info(f"Category {target.category_api_id} has no products")

            filters = await client.get_filters(target.category_api_id) if product_ids else None

            async for fetched in client.fetch_products(product_ids):
                if not fetched.ok:
                    summary.errors.append(fetched.error)
                    metrics.record_product_outcome(target.brand_slug, "failed")
                    continue

                try:
                    product = self.normalizer.normalize(fetched.detail, filters, target.config)
                except ProductRejected as e:
                    log.warning(str(e))
                    summary.products_rejected += 1
                    metrics.record_product_outcome(target.brand_slug, "rejected")
                    continue
                except NormalizationError as e:
                    log.warning(f"Skipping product {fetched.product_id}: {e}")
                    summary.errors.append(f"{fetched.product_id}: {e}")
                    metrics.record_product_outcome(target.brand_slug, "failed")
                    continue

                try:
                    result = await self.persister.upsert_product(
                        product, brand_id=target.brand_id, category_id=target.category_id
                    )
                except PersistenceError as e:
                    log.error(f"Persisting product {fetched.product_id} failed: {e}")
                    summary.errors.append(f"{fetched.product_id}: {e}")
                    metrics.record_product_outcome(target.brand_slug, "failed")
                    continue

                if result.created:
                    summary.products_created += 1
                    metrics.record_product_outcome(target.brand_slug, "created")
                else:
                    summary.products_updated += 1
                    metrics.record_product_outcome(target.brand_slug, "updated")
        finally:
            await client.close()

        async with self.session_factory() as db:
            async with db.begin():
                await db.execute(
                    update(Category)
                    .where(Category.id == target.category_id)
                    .values(last_scraped_at=utcnow())
                )

        summary.categories_processed = 1
        summary.duration_seconds = time.monotonic() - started
        metrics.record_category_scrape(target.brand_slug, summary.duration_seconds)
        log.info(
            f"Category {target.category_api_id}: {summary.products_created} created, "
            f"{summary.products_updated} updated, {summary.products_rejected} rejected, "
            f"{len(summary.errors)} errors in {summary.duration_seconds:.1f}s"
        )
        return summary
