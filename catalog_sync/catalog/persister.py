"""Idempotent, per-product transactional catalog writes."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from catalog_sync.db.models import (
    ColorVariant,
    Product,
    ProductImage,
    Size,
    product_categories,
    utcnow,
)
from catalog_sync.normalize.canonical import CanonicalProduct

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Raised when a product could not be written; nothing of it was committed."""
    pass


@dataclass
class UpsertResult:
    product_id: int
    created: bool


class CatalogPersister:
    """Writes canonical products, one transaction per product.

    Existing rows are matched by retailer id, then source URL, then product
    code, all within the brand. Matched products have their mutable fields
    overwritten and their variants (with images and sizes) replaced.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def upsert_product(
        self,
        product: CanonicalProduct,
        brand_id: int,
        category_id: Optional[int] = None,
    ) -> UpsertResult:
        """
        Create or update a product and link it to a category.

        Args:
            product: Normalized product
            brand_id: Owning brand
            category_id: Category to associate (kept if already linked)

        Returns:
            UpsertResult with the row id and whether it was created

        Raises:
            PersistenceError: If the transaction failed
        """
        try:
            return await self._upsert_once(product, brand_id, category_id)
        except IntegrityError:
            # A concurrent writer created the same product between our lookup
            # and insert; the retry finds it and updates instead.
            logger.info(f"Retrying upsert of {product.external_id or product.url} after conflict")
            try:
                return await self._upsert_once(product, brand_id, category_id)
            except SQLAlchemyError as e:
                raise PersistenceError(f"{product.external_id or product.url}: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"{product.external_id or product.url}: {e}") from e

    async def _upsert_once(
        self,
        product: CanonicalProduct,
        brand_id: int,
        category_id: Optional[int],
    ) -> UpsertResult:
        async with self.session_factory() as db:
            async with db.begin():
                existing = await self.find_existing(db, product, brand_id)
                now = utcnow()

                if existing is None:
                    row = Product(
                        brand_id=brand_id,
                        external_id=product.external_id,
                        slug=await self._unique_slug(db, brand_id, product),
                        created_at=now,
                    )
                    self._apply_fields(row, product, now)
                    row.variants = self._build_variants(product)
                    db.add(row)
                    await db.flush()
                    created = True
                else:
                    row = existing
                    self._apply_fields(row, product, now)
                    if product.external_id and not row.external_id:
                        row.external_id = product.external_id
                    # Retailers give no stable ids for sub-entities: replace wholesale
                    row.variants.clear()
                    await db.flush()
                    row.variants.extend(self._build_variants(product))
                    await db.flush()
                    created = False

                if category_id is not None:
                    await self.ensure_category_link(db, row.id, category_id)

                product_id = row.id

        logger.debug(f"{'Created' if created else 'Updated'} product {product_id} ({product.name})")
        return UpsertResult(product_id=product_id, created=created)

    async def find_existing(
        self, db: AsyncSession, product: CanonicalProduct, brand_id: int
    ) -> Optional[Product]:
        """First match by retailer id, then URL, then product code, locked for update."""
        lookups = [
            (Product.external_id, product.external_id),
            (Product.url, product.url),
            (Product.product_code, product.product_code),
        ]
        for column, value in lookups:
            if not value:
                continue
            result = await db.execute(
                select(Product)
                .where(Product.brand_id == brand_id, column == value)
                .options(
                    selectinload(Product.variants).selectinload(ColorVariant.images),
                    selectinload(Product.variants).selectinload(ColorVariant.sizes),
                )
                .order_by(Product.id)
                .limit(1)
                .with_for_update()
            )
            row = result.scalars().first()
            if row is not None:
                return row
        return None

    async def ensure_category_link(self, db: AsyncSession, product_id: int, category_id: int) -> bool:
        """Add the product to a category unless it is already there."""
        exists = await db.execute(
            select(product_categories.c.product_id).where(
                product_categories.c.product_id == product_id,
                product_categories.c.category_id == category_id,
            )
        )
        if exists.first() is not None:
            return False
        await db.execute(
            insert(product_categories).values(
                product_id=product_id, category_id=category_id, created_at=utcnow()
            )
        )
        return True

    @staticmethod
    def _apply_fields(row: Product, product: CanonicalProduct, now) -> None:
        row.name = product.name
        row.base_price = product.price_display
        row.base_price_amount = product.price_amount
        row.currency = product.currency
        row.product_code = product.product_code
        row.url = product.url
        row.description = product.description
        row.composition = product.composition
        row.care_instructions = product.care_instructions
        row.primary_image = product.primary_image
        row.updated_at = now
        row.last_scraped_at = now

    @staticmethod
    def _build_variants(product: CanonicalProduct) -> list[ColorVariant]:
        variants = []
        for v_index, variant in enumerate(product.variants):
            variants.append(ColorVariant(
                name=variant.name,
                code=variant.code,
                background_color=variant.hex_color,
                price=variant.price,
                discount_price=variant.discount_price,
                availability=variant.availability,
                sku=variant.sku,
                sort_order=v_index,
                images=[
                    ProductImage(
                        url=url,
                        alt_text=f"{product.name} - {variant.name}",
                        sort_order=i,
                    )
                    for i, url in enumerate(variant.images)
                ],
                sizes=[
                    Size(label=size.label, availability=size.availability, sort_order=i)
                    for i, size in enumerate(variant.sizes)
                ],
            ))
        return variants

    @staticmethod
    async def _unique_slug(db: AsyncSession, brand_id: int, product: CanonicalProduct) -> str:
        """Brand-unique slug; collisions get the retailer id or a counter appended."""
        base = product.slug
        candidates = [base]
        suffix = product.external_id or product.product_code
        if suffix:
            candidates.append(f"{base}-{suffix}".lower().replace("/", "-"))

        for candidate in candidates:
            taken = await db.execute(
                select(Product.id).where(Product.brand_id == brand_id, Product.slug == candidate)
            )
            if taken.first() is None:
                return candidate

        counter = 2
        while True:
            candidate = f"{base}-{counter}"
            taken = await db.execute(
                select(Product.id).where(Product.brand_id == brand_id, Product.slug == candidate)
            )
            if taken.first() is None:
                return candidate
            counter += 1
