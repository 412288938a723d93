"""Tests for scheduled brand refreshes."""

from unittest.mock import AsyncMock

import pytest

from catalog_sync.config import settings
from catalog_sync.db.models import Brand
from catalog_sync.ingest.scrape_service import ScrapeSummary
from catalog_sync.worker.scheduler import setup_scheduler
from catalog_sync.worker.tasks import TaskRunner

from payloads import PULLBEAR_CONFIG, ZARA_CONFIG

BROWSER_ONLY_CONFIG = {"retailer": "mango", "strategy": "browser", "base_url": "https://shop.mango.com/tr"}


async def _add_brand(session_factory, slug, api_config=None, is_active=True):
    async with session_factory() as db:
        brand = Brand(name=slug.title(), slug=slug, is_active=is_active, api_config=api_config)
        db.add(brand)
        await db.commit()
        return brand.id


@pytest.mark.asyncio
async def test_scrape_all_brands_continues_after_failure(session_factory):
    """Test that one failing brand does not stop the others."""
    zara = await _add_brand(session_factory, "zara", dict(ZARA_CONFIG))
    pullbear = await _add_brand(session_factory, "pullbear", dict(PULLBEAR_CONFIG))
    await _add_brand(session_factory, "bershka", dict(ZARA_CONFIG), is_active=False)

    service = AsyncMock()
    service.scrape_brand.side_effect = [
        RuntimeError("listing endpoint down"),
        ScrapeSummary(success=True, products_created=3, categories_processed=2),
    ]
    runner = TaskRunner(session_factory=session_factory, scrape_service=service)

    summary = await runner.scrape_all_brands()

    assert [c.args[0] for c in service.scrape_brand.await_args_list] == [zara, pullbear]
    assert summary.success is True
    assert summary.products_created == 3
    assert summary.errors == ["zara: listing endpoint down"]


@pytest.mark.asyncio
async def test_scrape_all_brands_without_brands(session_factory):
    service = AsyncMock()
    runner = TaskRunner(session_factory=session_factory, scrape_service=service)

    summary = await runner.scrape_all_brands()

    assert summary.success is True
    service.scrape_brand.assert_not_awaited()


@pytest.mark.asyncio
async def test_scrape_all_brands_all_failed(session_factory):
    await _add_brand(session_factory, "zara", dict(ZARA_CONFIG))
    service = AsyncMock()
    service.scrape_brand.return_value = ScrapeSummary.failure("Brand zara has no API configuration")
    runner = TaskRunner(session_factory=session_factory, scrape_service=service)

    summary = await runner.scrape_all_brands()

    assert summary.success is False
    assert summary.errors == ["Brand zara has no API configuration"]


def test_scheduler_registers_brand_scrape(monkeypatch):
    monkeypatch.setattr(settings, "scheduled_scrape_enabled", True)
    monkeypatch.setattr(settings, "scheduled_scrape_interval_minutes", 30)

    scheduler = setup_scheduler()

    assert [job.id for job in scheduler.get_jobs()] == ["scrape_all_brands"]


def test_scheduler_disabled(monkeypatch):
    monkeypatch.setattr(settings, "scheduled_scrape_enabled", False)

    assert setup_scheduler().get_jobs() == []


@pytest.mark.asyncio
async def test_scrape_all_brands_skips_brands_without_api(session_factory):
    """Test that browser-only and unconfigured brands are left out of scheduled runs."""
    zara = await _add_brand(session_factory, "zara", dict(ZARA_CONFIG))
    await _add_brand(session_factory, "mango", BROWSER_ONLY_CONFIG)
    await _add_brand(session_factory, "lefties")
    await _add_brand(session_factory, "stradivarius", {"retailer": "zara"})

    service = AsyncMock()
    service.scrape_brand.return_value = ScrapeSummary(success=True, products_updated=4, categories_processed=1)
    runner = TaskRunner(session_factory=session_factory, scrape_service=service)

    summary = await runner.scrape_all_brands()

    service.scrape_brand.assert_awaited_once_with(zara)
    assert summary.success is True
    assert summary.errors == []
