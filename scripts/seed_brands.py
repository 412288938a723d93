#!/usr/bin/env python3
"""
Brand seeding script for the two reference retailers.

Inserts (or refreshes the configuration of) the Zara-style and
Pull&Bear-style brands. Every configuration is validated through
BrandApiConfig before it is written, so a typo fails here rather than in
the first scrape.

With --sample-categories a small women's tree is added for each brand,
including a "see all" aggregator whose siblings carry retailer ids.
"""

import asyncio
import sys

from sqlalchemy import select

from catalog_sync.catalog.categories import attach_category
from catalog_sync.db.models import Base, Brand, Category
from catalog_sync.db.session import AsyncSessionLocal, engine
from catalog_sync.ingest.brand_config import load_brand_config

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "tr-TR,tr;q=0.9,en;q=0.8",
}

BRANDS = [
    {
        "name": "Zara",
        "slug": "zara",
        "website_url": "https://www.zara.com/tr/tr",
        "api_config": {
            "retailer": "zara",
            "base_url": "https://www.zara.com/tr/tr",
            "endpoints": {
                "category_products": "/category/{categoryId}/products?ajax=true",
                "product_detail": "/products-details?productIds={productId}&ajax=true",
                "product_extra": "/product/{productId}/extra-detail?ajax=true",
                "filters": "/category/{categoryId}/filters?ajax=true",
            },
            "headers": {
                **BROWSER_HEADERS,
                "Referer": "https://www.zara.com/tr/tr/",
                "Origin": "https://www.zara.com",
            },
            "currency": "TL",
            "product_url_template": "https://www.zara.com/tr/tr/{product}.html",
            "politeness": {
                "request_delay_seconds": 1.0,
                "max_retries": 3,
                "retry_delay_seconds": 1.0,
                "concurrent_requests": 1,
            },
        },
        "sample_categories": [("Elbise", "2458839"), ("Gömlek", "2420369"), ("Pantolon", "2420795")],
    },
    {
        "name": "Pull&Bear",
        "slug": "pull-and-bear",
        "website_url": "https://www.pullandbear.com/tr",
        "api_config": {
            "retailer": "pullbear",
            "base_url": "https://www.pullandbear.com",
            "endpoints": {
                "category_products": (
                    "/itxrest/3/catalog/store/25009521/20309457/category/{categoryId}/product"
                    "?languageId=-43&showProducts=false&priceFilter=true&appId=1"
                ),
                "product_detail": (
                    "/itxrest/2/catalog/store/25009521/20309457/category/0/product/{productId}/detail"
                    "?languageId=-43&appId=1"
                ),
            },
            "headers": {
                **BROWSER_HEADERS,
                "Referer": "https://www.pullandbear.com/tr/",
                "Origin": "https://www.pullandbear.com",
            },
            "currency": "TL",
            "product_url_template": "https://www.pullandbear.com/tr/{product}",
            "politeness": {
                "request_delay_seconds": 1.5,
                "max_retries": 3,
                "retry_delay_seconds": 2.0,
                "concurrent_requests": 1,
            },
        },
        "sample_categories": [("Elbise", "1030204731"), ("Tişört", "1030204838")],
    },
]


async def seed_brands(with_categories: bool = False):
    """Insert or update the reference brands."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        for entry in BRANDS:
            load_brand_config(entry["api_config"], entry["name"])

            result = await db.execute(select(Brand).where(Brand.slug == entry["slug"]))
            brand = result.scalar_one_or_none()
            if brand is None:
                brand = Brand(name=entry["name"], slug=entry["slug"])
                db.add(brand)
                print(f"Created brand {entry['name']}")
            else:
                print(f"Updated configuration of {entry['name']}")
            brand.website_url = entry["website_url"]
            brand.api_config = entry["api_config"]
            brand.is_active = True
            await db.flush()

            if with_categories:
                await seed_sample_categories(db, brand, entry["sample_categories"])

        await db.commit()


async def seed_sample_categories(db, brand: Brand, leaves: list[tuple[str, str]]):
    """Women's root with leaf categories and a "see all" aggregator."""
    result = await db.execute(
        select(Category).where(Category.brand_id == brand.id, Category.parent_id.is_(None))
    )
    if result.scalars().first() is not None:
        print(f"  {brand.name} already has categories, skipping")
        return

    root = await attach_category(db, brand, "Kadın", gender="women")
    for index, (name, api_id) in enumerate(leaves, start=1):
        await attach_category(db, brand, name, parent=root, api_id=api_id, sort_order=index)
    await attach_category(db, brand, "Tümünü Gör", parent=root, is_aggregator=True, sort_order=0)
    print(f"  Added {len(leaves) + 2} sample categories for {brand.name}")


async def list_brands():
    """List stored brands."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Brand).order_by(Brand.id))
        brands = result.scalars().all()

    if not brands:
        print("No brands found.")
        return
    for brand in brands:
        retailer = (brand.api_config or {}).get("retailer", "-")
        status = "active" if brand.is_active else "inactive"
        print(f"[{brand.id}] {brand.name} ({brand.slug}) retailer={retailer} {status}")


if __name__ == "__main__":
    if len(sys.argv) > 1:
        if sys.argv[1] == "--list":
            asyncio.run(list_brands())
        elif sys.argv[1] == "--sample-categories":
            asyncio.run(seed_brands(with_categories=True))
        elif sys.argv[1] == "--help":
            print("Usage: python scripts/seed_brands.py [OPTIONS]")
            print("")
            print("Options:")
            print("  --list               List stored brands")
            print("  --sample-categories  Also add a small sample category tree")
            print("  --help               Show this help message")
        else:
            print(f"Unknown option: {sys.argv[1]}")
    else:
        asyncio.run(seed_brands())
