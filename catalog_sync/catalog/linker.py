"""Populate "see all" aggregator categories from their sibling categories."""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from catalog_sync import metrics
from catalog_sync.catalog.persister import CatalogPersister
from catalog_sync.db.models import Brand, Category, product_categories
from catalog_sync.db.session import AsyncSessionLocal
from catalog_sync.ingest.brand_config import BrandConfigError, load_brand_config
from catalog_sync.ingest.registry import ClientRegistry

logger = logging.getLogger(__name__)


class CategoryLinkError(LookupError):
    """Raised when the aggregator category is missing or not an aggregator."""
    pass


@dataclass
class LinkResult:
    success: bool = True
    products_linked: int = 0
    sibling_categories_processed: int = 0
    siblings_skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class CategoryLinker:
    """Adds sibling categories' products to an aggregator category.

    Only association rows are written; products are never duplicated or
    re-normalized. Siblings without products are scraped first when a scrape
    service is available.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        scrape_service=None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.scrape_service = scrape_service
        self._persister = CatalogPersister(self.session_factory)

    async def link_sibling_products(self, aggregator_category_id: int) -> LinkResult:
        """
        Link the products of every sibling category into the aggregator.

        Args:
            aggregator_category_id: Category flagged as "see all"

        Returns:
            LinkResult with the number of new associations

        Raises:
            CategoryLinkError: If the category does not exist or is not an aggregator
        """
        async with self.session_factory() as db:
            aggregator = await db.get(Category, aggregator_category_id)
            if aggregator is None:
                raise CategoryLinkError(f"Category {aggregator_category_id} not found")
            if not aggregator.is_aggregator:
                raise CategoryLinkError(f"Category {aggregator_category_id} is not an aggregator category")

            parent_filter = (
                Category.parent_id == aggregator.parent_id
                if aggregator.parent_id is not None
                else Category.parent_id.is_(None)
            )
            result = await db.execute(
                select(Category)
                .where(
                    Category.brand_id == aggregator.brand_id,
                    parent_filter,
                    Category.level == aggregator.level,
                    Category.id != aggregator.id,
                    Category.is_active.is_(True),
                    Category.is_aggregator.is_(False),
                    Category.api_id.is_not(None),
                )
                .order_by(Category.sort_order, Category.id)
            )
            siblings = [(c.id, c.name) for c in result.scalars().all()]
            brand = await db.get(Brand, aggregator.brand_id)
            has_api = self._has_api(brand)

        link_result = LinkResult()
        logger.info(f"Aggregator {aggregator_category_id}: {len(siblings)} sibling categories")

        for sibling_id, sibling_name in siblings:
            if not has_api:
                reason = f"{sibling_name} ({sibling_id}): brand has no API support"
                logger.info(f"Skipping sibling {reason}")
                link_result.siblings_skipped.append(reason)
                continue

            try:
                product_ids = await self._sibling_product_ids(sibling_id)
                if not product_ids and self.scrape_service is not None:
                    logger.info(f"Sibling {sibling_id} has no products yet, scraping it")
                    summary = await self.scrape_service.scrape_category_by_id(sibling_id)
                    if not summary.success:
                        link_result.errors.append(f"{sibling_name} ({sibling_id}): {summary.message}")
                        continue
                    product_ids = await self._sibling_product_ids(sibling_id)

                linked = await self._link(product_ids, aggregator_category_id)
            except Exception as e:
                logger.error(f"Linking sibling {sibling_id} failed: {e}", exc_info=True)
                link_result.errors.append(f"{sibling_name} ({sibling_id}): {e}")
                continue

            link_result.products_linked += linked
            link_result.sibling_categories_processed += 1
            logger.info(f"Sibling {sibling_name} ({sibling_id}): {linked} new links of {len(product_ids)} products")

        if siblings and link_result.sibling_categories_processed == 0 and link_result.errors:
            link_result.success = False
        metrics.record_sibling_links(link_result.products_linked)
        return link_result

    @staticmethod
    def _has_api(brand: Brand) -> bool:
        try:
            config = load_brand_config(brand.api_config, brand.slug)
        except BrandConfigError:
            return False
        return ClientRegistry.supports(config)

    async def _sibling_product_ids(self, category_id: int) -> list[int]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(product_categories.c.product_id)
                .where(product_categories.c.category_id == category_id)
                .order_by(product_categories.c.product_id)
            )
            return [row[0] for row in result.all()]

    async def _link(self, product_ids: list[int], aggregator_id: int) -> int:
        """Associate products with the aggregator in one transaction."""
        if not product_ids:
            return 0
        linked = 0
        async with self.session_factory() as db:
            async with db.begin():
                for product_id in product_ids:
                    if await self._persister.ensure_category_link(db, product_id, aggregator_id):
                        linked += 1
        return linked
