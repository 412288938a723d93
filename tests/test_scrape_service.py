"""Tests for API-driven category scraping."""

import httpx
import pytest
from sqlalchemy import func, select

from catalog_sync.db.models import Brand, Category, Product, product_categories
from catalog_sync.ingest.http_client import HttpFetcher
from catalog_sync.ingest.registry import ClientRegistry
from catalog_sync.ingest.scrape_service import CatalogScrapeService

from payloads import zara_color, zara_detail, zara_listing


def _zara_handler(listing_ids, failing=(), details=None, listing_status=200, raising=None):
    details = details or {}
    raising = raising or {}

    def handler(request):
        if "/category/" in request.url.path:
            if listing_status != 200:
                return httpx.Response(listing_status)
            return httpx.Response(200, json=zara_listing(listing_ids))
        pid = request.url.params["productIds"]
        if pid in raising:
            raise raising[pid](f"{pid} unreachable", request=request)
        if pid in failing:
            return httpx.Response(500)
        return httpx.Response(200, json=[details.get(pid) or zara_detail(pid)])

    return handler


def _service(session_factory, handler):
    def client_factory(config):
        fetcher = HttpFetcher(
            policy=config.politeness.retry_policy(),
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        return ClientRegistry.create_client(config, fetcher=fetcher)

    return CatalogScrapeService(session_factory, client_factory=client_factory)


@pytest.mark.asyncio
async def test_timed_out_product_does_not_stop_the_batch(session_factory, zara_brand, zara_tree):
    """Test 101/102/103 where 102 times out on every attempt: two created, one error."""
    service = _service(
        session_factory,
        _zara_handler(["101", "102", "103"], raising={"102": httpx.ReadTimeout}),
    )

    summary = await service.scrape_category(zara_brand.id, "2458839")

    assert summary.success is True
    assert summary.products_found == 3
    assert summary.products_created == 2
    assert summary.products_updated == 0
    assert len(summary.errors) == 1
    assert "102" in summary.errors[0]

    async with session_factory() as db:
        linked = (await db.execute(
            select(func.count()).select_from(product_categories)
            .where(product_categories.c.category_id == zara_tree["dresses"].id)
        )).scalar_one()
        category = await db.get(Category, zara_tree["dresses"].id)
    assert linked == 2
    assert category.last_scraped_at is not None

    async with session_factory() as db:
        stored = set((await db.execute(select(Product.external_id))).scalars())
    assert stored == {"101", "103"}


@pytest.mark.asyncio
async def test_second_scrape_updates(session_factory, zara_brand, zara_tree):
    """Test that re-scraping the same category updates instead of duplicating."""
    service = _service(session_factory, _zara_handler(["101", "103"]))

    await service.scrape_category(zara_brand.id, "2458839")
    summary = await service.scrape_category(zara_brand.id, "2458839")

    assert (summary.products_created, summary.products_updated) == (0, 2)
    async with session_factory() as db:
        assert (await db.execute(select(func.count()).select_from(Product))).scalar_one() == 2


@pytest.mark.asyncio
async def test_test_limit_caps_products(session_factory, zara_brand, zara_tree):
    """Test that test_limit only fetches the first N listed products."""
    service = _service(session_factory, _zara_handler(["101", "102", "103"]))

    summary = await service.scrape_category(zara_brand.id, "2458839", test_limit=1)

    assert summary.products_found == 1
    assert summary.products_created == 1


@pytest.mark.asyncio
async def test_rejected_products_are_counted_separately(session_factory, zara_brand, zara_tree):
    """Test that rejections are not errors."""
    no_sizes = zara_detail("102", colors=[zara_color("800", "Siyah", sizes=())])
    service = _service(session_factory, _zara_handler(["101", "102"], details={"102": no_sizes}))

    summary = await service.scrape_category(zara_brand.id, "2458839")

    assert summary.products_created == 1
    assert summary.products_rejected == 1
    assert summary.errors == []


@pytest.mark.asyncio
async def test_listing_failure_fails_the_operation(session_factory, zara_brand, zara_tree):
    """Test that a failed listing call is a top-level failure."""
    service = _service(session_factory, _zara_handler([], listing_status=503))

    summary = await service.scrape_category(zara_brand.id, "2458839")

    assert summary.success is False
    assert "listing" in summary.message.lower()
    assert summary.products_created == 0


@pytest.mark.asyncio
async def test_missing_api_id_fails(session_factory, zara_brand):
    """Test the missing category identifier guard."""
    service = _service(session_factory, _zara_handler([]))

    summary = await service.scrape_category(zara_brand.id, None)

    assert summary.success is False
    assert summary.message == "Category API identifier is required"


@pytest.mark.asyncio
async def test_aggregator_is_never_scraped(session_factory, zara_brand, zara_tree):
    """Test that a "see all" category is refused."""
    service = _service(session_factory, _zara_handler(["101"]))

    summary = await service.scrape_category_by_id(zara_tree["see_all"].id)

    assert summary.success is False
    assert "aggregator" in summary.message


@pytest.mark.asyncio
async def test_brand_without_configuration_fails(session_factory, zara_tree):
    """Test that a malformed brand configuration is a top-level failure."""
    async with session_factory() as db:
        brand = await db.get(Brand, zara_tree["root"].brand_id)
        brand.api_config = {"retailer": "zara"}
        await db.commit()
    service = _service(session_factory, _zara_handler(["101"]))

    summary = await service.scrape_category(brand.id, "2458839")

    assert summary.success is False
    assert "invalid API configuration" in summary.message


@pytest.mark.asyncio
async def test_brand_scrape_covers_every_leaf(session_factory, zara_brand, zara_tree):
    """Test brand-wide scraping of both leaf categories, skipping the aggregator."""
    service = _service(session_factory, _zara_handler(["101", "102"]))

    summary = await service.scrape_brand(zara_brand.id)

    assert summary.success is True
    assert summary.categories_processed == 2
    assert summary.products_created == 2
    assert summary.products_updated == 2


@pytest.mark.asyncio
async def test_category_tree_scrape(session_factory, zara_brand, zara_tree):
    """Test subtree scraping from the root category."""
    service = _service(session_factory, _zara_handler(["101"]))

    summary = await service.scrape_category_tree(zara_tree["root"].id)

    assert summary.categories_processed == 2
    assert summary.products_created == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failure",
    [
        lambda handler_ids: _zara_handler(handler_ids, failing={"102"}),
        lambda handler_ids: _zara_handler(handler_ids, raising={"102": httpx.ProxyError}),
        lambda handler_ids: _zara_handler(handler_ids, raising={"102": httpx.UnsupportedProtocol}),
        lambda handler_ids: _zara_handler(handler_ids, raising={"102": httpx.DecodingError}),
    ],
    ids=["http-500", "proxy-error", "unsupported-protocol", "decoding-error"],
)
async def test_any_fetch_failure_is_recorded_per_product(session_factory, zara_brand, zara_tree, failure):
    """Test that every kind of detail fetch failure is one error, not an aborted batch."""
    service = _service(session_factory, failure(["101", "102", "103"]))

    summary = await service.scrape_category(zara_brand.id, "2458839")

    assert summary.success is True
    assert summary.products_created == 2
    assert len(summary.errors) == 1
    assert "102" in summary.errors[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("test_limit", [0, -1])
async def test_non_positive_test_limit_is_refused(session_factory, zara_brand, zara_tree, test_limit):
    """Test that a zero or negative limit neither disables the cap nor truncates silently."""
    service = _service(session_factory, _zara_handler(["101", "102", "103"]))

    results = [
        await service.scrape_category(zara_brand.id, "2458839", test_limit=test_limit),
        await service.scrape_category_by_id(zara_tree["dresses"].id, test_limit=test_limit),
        await service.scrape_brand(zara_brand.id, test_limit=test_limit),
        await service.scrape_category_tree(zara_tree["root"].id, test_limit=test_limit),
    ]

    for summary in results:
        assert summary.success is False
        assert "test_limit" in summary.message
    async with session_factory() as db:
        assert (await db.execute(select(func.count()).select_from(Product))).scalar_one() == 0


@pytest.mark.asyncio
async def test_tree_scrape_keeps_every_product_without_limit(session_factory, zara_brand, zara_tree):
    service = _service(session_factory, _zara_handler(["101", "102", "103"]))

    summary = await service.scrape_category_tree(zara_tree["root"].id)

    assert summary.products_found == 6
