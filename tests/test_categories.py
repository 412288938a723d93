"""Tests for category tree helpers."""

import pytest
from sqlalchemy import select

from catalog_sync.catalog.categories import (
    CategoryTreeError,
    attach_category,
    find_category,
    leaf_descendants,
)
from catalog_sync.db.models import Brand, Category


@pytest.mark.asyncio
async def test_child_level_is_parent_level_plus_one(session_factory, zara_tree):
    """Test that a child sits exactly one level below its parent."""
    async with session_factory() as db:
        categories = {c.id: c for c in (await db.execute(select(Category))).scalars()}

    for category in categories.values():
        if category.parent_id is not None:
            assert category.level == categories[category.parent_id].level + 1
    assert categories[zara_tree["root"].id].is_leaf is False
    assert categories[zara_tree["dresses"].id].level == 1


@pytest.mark.asyncio
async def test_cross_brand_parent_is_rejected(session_factory, zara_brand, zara_tree):
    """Test that a category cannot hang under another brand's tree."""
    async with session_factory() as db:
        other = Brand(name="Pull&Bear", slug="pull-and-bear")
        db.add(other)
        await db.flush()
        with pytest.raises(CategoryTreeError):
            await attach_category(db, other, "Elbise", parent=zara_tree["root"])


@pytest.mark.asyncio
async def test_find_and_leaf_descendants(session_factory, zara_brand, zara_tree):
    """Test api id lookup and leaf collection in sort order."""
    async with session_factory() as db:
        found = await find_category(db, zara_brand.id, "2420369")
        leaves = await leaf_descendants(db, zara_tree["root"])

    assert found.id == zara_tree["shirts"].id
    assert [c.name for c in leaves] == ["Tümünü Gör", "Elbise", "Gömlek"]
