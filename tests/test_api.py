"""Tests for the HTTP API routes."""

from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from catalog_sync.api.routes import categories, jobs, scrape
from catalog_sync.catalog.linker import CategoryLinkError, LinkResult
from catalog_sync.config import settings
from catalog_sync.ingest.scrape_service import ScrapeSummary
from catalog_sync.worker.job_queue import ScrapeJobQueue

ADMIN = {"X-Admin-API-Key": "secret"}


@pytest.fixture
def scrape_service():
    service = AsyncMock()
    service.scrape_category.return_value = ScrapeSummary(
        success=True, products_created=2, products_updated=1, products_found=3, categories_processed=1
    )
    service.scrape_brand.return_value = ScrapeSummary(success=True, categories_processed=4)
    service.scrape_category_tree.return_value = ScrapeSummary.failure("Category 99 not found")
    return service


@pytest.fixture
def linker():
    return AsyncMock()


@pytest_asyncio.fixture
async def client(session_factory, scrape_service, linker, monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", "secret")

    app = FastAPI()
    app.include_router(scrape.router)
    app.include_router(categories.router)
    app.include_router(jobs.router)
    app.dependency_overrides[scrape.get_scrape_service] = lambda: scrape_service
    app.dependency_overrides[categories.get_linker] = lambda: linker
    app.dependency_overrides[jobs.get_job_queue] = lambda: ScrapeJobQueue(session_factory)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


@pytest.mark.asyncio
async def test_scrape_category(client, scrape_service):
    """Test that a category scrape returns the run summary."""
    response = await client.post(
        "/api/scrape",
        json={"brand_id": 1, "category_api_id": "2458839", "test_limit": 5},
        headers=ADMIN,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["products_created"] == 2
    assert body["products_found"] == 3
    scrape_service.scrape_category.assert_awaited_once_with(1, "2458839", test_limit=5)


@pytest.mark.asyncio
async def test_scrape_rejects_non_positive_limit(client, scrape_service):
    response = await client.post(
        "/api/scrape",
        json={"brand_id": 1, "category_api_id": "2458839", "test_limit": 0},
        headers=ADMIN,
    )

    assert response.status_code == 422
    scrape_service.scrape_category.assert_not_awaited()


@pytest.mark.asyncio
async def test_scrape_brand_and_tree(client, scrape_service):
    brand = await client.post("/api/scrape/brand/1", headers=ADMIN)
    tree = await client.post("/api/scrape/category/99/tree?test_limit=2", headers=ADMIN)

    assert brand.json()["categories_processed"] == 4
    assert tree.status_code == 200
    assert tree.json()["success"] is False
    assert tree.json()["message"] == "Category 99 not found"
    scrape_service.scrape_category_tree.assert_awaited_once_with(99, test_limit=2)


@pytest.mark.asyncio
async def test_scrape_requires_valid_key(client, scrape_service):
    """Test that scrape triggers are refused with a wrong admin key."""
    response = await client.post("/api/scrape/brand/1", headers={"X-Admin-API-Key": "wrong"})

    assert response.status_code == 403
    scrape_service.scrape_brand.assert_not_awaited()


@pytest.mark.asyncio
async def test_admin_routes_unavailable_without_configured_key(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", "")

    response = await client.post("/api/scrape/brand/1", headers=ADMIN)

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_link_siblings(client, linker):
    linker.link_sibling_products.return_value = LinkResult(
        products_linked=7, sibling_categories_processed=2
    )

    response = await client.post("/api/categories/12/link-siblings", headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["products_linked"] == 7
    linker.link_sibling_products.assert_awaited_once_with(12)


@pytest.mark.asyncio
async def test_link_siblings_not_aggregator(client, linker):
    linker.link_sibling_products.side_effect = CategoryLinkError("Category 12 is not an aggregator category")

    response = await client.post("/api/categories/12/link-siblings", headers=ADMIN)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_job_lifecycle(client, session_factory):
    """Test enqueue, lookup, listing and operator retry of a job."""
    created = await client.post(
        "/api/jobs", json={"url": "https://www.zara.com/tr/tr/keten-gomlek-p01234.html"}, headers=ADMIN
    )
    assert created.status_code == 201
    job = created.json()
    assert job["status"] == "PENDING"
    assert job["attempts"] == 0

    fetched = await client.get(f"/api/jobs/{job['id']}")
    assert fetched.json()["url"] == "https://www.zara.com/tr/tr/keten-gomlek-p01234.html"

    # Pending jobs cannot be retried
    conflict = await client.post(f"/api/jobs/{job['id']}/retry", headers=ADMIN)
    assert conflict.status_code == 409

    queue = ScrapeJobQueue(session_factory)
    await queue.claim_next()
    await queue.mark_failed(job["id"], "PageLoadError: Navigation timeout")

    failed = await client.get("/api/jobs", params={"status": "failed"})
    assert [j["id"] for j in failed.json()] == [job["id"]]

    retried = await client.post(f"/api/jobs/{job['id']}/retry", headers=ADMIN)
    assert retried.status_code == 200
    assert retried.json()["status"] == "PENDING"
    assert retried.json()["error_message"] is None


@pytest.mark.asyncio
async def test_job_errors(client):
    missing = await client.get("/api/jobs/404")
    bad_status = await client.get("/api/jobs", params={"status": "RUNNING"})
    bad_url = await client.post("/api/jobs", json={"url": "not a url"}, headers=ADMIN)
    retry_missing = await client.post("/api/jobs/404/retry", headers=ADMIN)

    assert missing.status_code == 404
    assert bad_status.status_code == 400
    assert bad_url.status_code == 422
    assert retry_missing.status_code == 404


@pytest.mark.asyncio
async def test_enqueue_requires_key(client):
    response = await client.post(
        "/api/jobs", json={"url": "https://www.zara.com/tr/tr/a-p01.html"}, headers={"X-Admin-API-Key": "nope"}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/scrape/brand/1", "/api/scrape/category/3/tree"])
@pytest.mark.parametrize("test_limit", [0, -1])
async def test_bulk_scrape_rejects_non_positive_limit(client, scrape_service, path, test_limit):
    response = await client.post(path, params={"test_limit": test_limit}, headers=ADMIN)

    assert response.status_code == 422
    scrape_service.scrape_brand.assert_not_awaited()
    scrape_service.scrape_category_tree.assert_not_awaited()
