"""Category tree helpers."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.db.models import Brand, Category
from catalog_sync.normalize.canonical import slugify

logger = logging.getLogger(__name__)


class CategoryTreeError(ValueError):
    """Raised when a category would break the tree's shape."""
    pass


async def attach_category(
    db: AsyncSession,
    brand: Brand,
    name: str,
    parent: Optional[Category] = None,
    api_id: Optional[str] = None,
    is_aggregator: bool = False,
    gender: Optional[str] = None,
    sort_order: int = 0,
    slug: Optional[str] = None,
) -> Category:
    """
    Add a category under ``parent`` (or as a root).

    The new category sits one level below its parent and starts as a leaf;
    the parent stops being a leaf.

    Raises:
        CategoryTreeError: If the parent belongs to another brand
    """
    if parent is not None and parent.brand_id != brand.id:
        raise CategoryTreeError(
            f"Parent category {parent.id} belongs to brand {parent.brand_id}, not {brand.id}"
        )

    category = Category(
        brand_id=brand.id,
        parent_id=parent.id if parent is not None else None,
        name=name,
        slug=slug or slugify(f"{parent.slug}-{name}" if parent is not None else name),
        level=parent.level + 1 if parent is not None else 0,
        sort_order=sort_order,
        is_leaf=True,
        is_aggregator=is_aggregator,
        api_id=api_id,
        gender=gender,
    )
    if parent is not None:
        parent.is_leaf = False
    db.add(category)
    await db.flush()
    return category


async def find_category(
    db: AsyncSession, brand_id: int, api_id: str
) -> Optional[Category]:
    """Category of a brand with the given retailer id, preferring leaves."""
    result = await db.execute(
        select(Category)
        .where(Category.brand_id == brand_id, Category.api_id == str(api_id))
        .order_by(Category.is_leaf.desc(), Category.is_aggregator.asc(), Category.id)
    )
    return result.scalars().first()


async def leaf_descendants(db: AsyncSession, category: Category) -> list[Category]:
    """Active leaf categories under ``category`` (itself included if it is one)."""
    result = await db.execute(
        select(Category).where(Category.brand_id == category.brand_id)
    )
    by_parent: dict[Optional[int], list[Category]] = {}
    for node in result.scalars().all():
        by_parent.setdefault(node.parent_id, []).append(node)

    leaves = []
    stack = [category]
    while stack:
        node = stack.pop()
        children = sorted(by_parent.get(node.id, []), key=lambda c: (c.sort_order, c.id), reverse=True)
        if children:
            stack.extend(children)
        elif node.is_active:
            leaves.append(node)
    return leaves
