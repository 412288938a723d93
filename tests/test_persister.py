"""Tests for the catalog persister."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from catalog_sync.catalog.persister import CatalogPersister
from catalog_sync.db.models import ColorVariant, Product, ProductImage, Size, product_categories
from payloads import canonical_product


async def _count(session_factory, model) -> int:
    async with session_factory() as db:
        return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_upsert_is_idempotent(session_factory, zara_brand, zara_tree):
    """Test that upserting twice yields one product and replaces children."""
    persister = CatalogPersister(session_factory)
    category_id = zara_tree["dresses"].id

    first = await persister.upsert_product(canonical_product(), zara_brand.id, category_id)
    second = await persister.upsert_product(
        canonical_product(sizes=("S", "M"), price="999.00"), zara_brand.id, category_id
    )

    assert first.created is True
    assert second.created is False
    assert second.product_id == first.product_id
    assert await _count(session_factory, Product) == 1
    assert await _count(session_factory, ColorVariant) == 1
    assert await _count(session_factory, ProductImage) == 2
    assert await _count(session_factory, Size) == 2
    assert await _count(session_factory, product_categories) == 1

    async with session_factory() as db:
        product = (await db.execute(
            select(Product)
            .options(selectinload(Product.variants).selectinload(ColorVariant.sizes))
            .where(Product.id == first.product_id)
        )).scalar_one()
    assert product.base_price_amount == Decimal("999.00")
    assert product.primary_image == "https://static.zara.net/1.jpg"
    assert [s.label for s in product.variants[0].sizes] == ["S", "M"]
    assert product.last_scraped_at is not None


@pytest.mark.asyncio
async def test_match_by_url_without_external_id(session_factory, zara_brand):
    """Test that browser-scraped products are matched by their URL."""
    persister = CatalogPersister(session_factory)
    url = "https://www.zara.com/tr/tr/x-p01234.html"

    first = await persister.upsert_product(canonical_product(external_id=None, url=url), zara_brand.id)
    second = await persister.upsert_product(canonical_product(external_id=None, url=url), zara_brand.id)

    assert second.created is False
    assert second.product_id == first.product_id


@pytest.mark.asyncio
async def test_slug_collisions_get_suffixes(session_factory, zara_brand):
    """Test that two products with the same name get distinct slugs."""
    persister = CatalogPersister(session_factory)

    a = await persister.upsert_product(canonical_product(external_id="101", product_code="A"), zara_brand.id)
    b = await persister.upsert_product(canonical_product(external_id="102", product_code="B"), zara_brand.id)

    async with session_factory() as db:
        slugs = {p.id: p.slug for p in (await db.execute(select(Product))).scalars()}
    assert slugs[a.product_id] == "keten-gomlek"
    assert slugs[b.product_id] == "keten-gomlek-102"


@pytest.mark.asyncio
async def test_category_link_is_added_once(session_factory, zara_brand, zara_tree):
    """Test that re-linking a product to the same category is a no-op."""
    persister = CatalogPersister(session_factory)
    result = await persister.upsert_product(canonical_product(), zara_brand.id)

    async with session_factory() as db:
        async with db.begin():
            added = await persister.ensure_category_link(db, result.product_id, zara_tree["shirts"].id)
            again = await persister.ensure_category_link(db, result.product_id, zara_tree["shirts"].id)

    assert (added, again) == (True, False)


@pytest.mark.asyncio
async def test_deleting_product_cascades(session_factory, zara_brand):
    """Test that variants, images and sizes go with their product."""
    persister = CatalogPersister(session_factory)
    result = await persister.upsert_product(canonical_product(), zara_brand.id)

    async with session_factory() as db:
        product = await db.get(Product, result.product_id)
        await db.delete(product)
        await db.commit()

    assert await _count(session_factory, ColorVariant) == 0
    assert await _count(session_factory, Size) == 0
    assert await _count(session_factory, ProductImage) == 0
