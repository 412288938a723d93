"""Tests for the Zara-style and Pull&Bear-style API clients."""

import httpx
import pytest

from catalog_sync.ingest.base import RetailerPayloadError
from catalog_sync.ingest.brand_config import BrandConfigError, load_brand_config
from catalog_sync.ingest.http_client import HttpFetcher
from catalog_sync.ingest.registry import ClientRegistry
from catalog_sync.ingest.retailers.pullbear import PullBearClient
from catalog_sync.ingest.retailers.zara import ZaraClient

from payloads import PULLBEAR_CONFIG, ZARA_CONFIG, pullbear_detail, zara_detail, zara_listing


def _client(client_class, raw_config, handler):
    config = load_brand_config(raw_config, "test")
    fetcher = HttpFetcher(
        policy=config.politeness.retry_policy(),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return client_class(config, fetcher=fetcher)


@pytest.mark.asyncio
async def test_zara_listing_flattens_product_groups():
    """Test that ids come out of productGroups/elements/commercialComponents in order."""
    requested = []

    def handler(request):
        requested.append(str(request.url))
        payload = zara_listing(["101", "102", "101", "103"])
        return httpx.Response(200, json=payload)

    client = _client(ZaraClient, ZARA_CONFIG, handler)
    ids = await client.list_category_product_ids("2458839")

    assert ids == ["101", "102", "103"]
    assert requested == ["https://www.zara.com/tr/tr/category/2458839/products?ajax=true"]


@pytest.mark.asyncio
async def test_zara_detail_picks_requested_product():
    """Test that the detail list entry for the requested id is returned."""

    def handler(request):
        assert request.url.params["productIds"] == "102"
        return httpx.Response(200, json=[zara_detail("101"), zara_detail("102")])

    client = _client(ZaraClient, ZARA_CONFIG, handler)
    detail = await client.get_product_detail("102")

    assert detail.id == "102"
    assert detail.colors[0].name == "Siyah"
    assert [s.name for s in detail.colors[0].sizes] == ["S", "M", "L"]


@pytest.mark.asyncio
async def test_zara_detail_missing_product():
    """Test that an empty detail list is a payload error."""
    client = _client(ZaraClient, ZARA_CONFIG, lambda request: httpx.Response(200, json=[]))

    with pytest.raises(RetailerPayloadError):
        await client.get_product_detail("999")


@pytest.mark.asyncio
async def test_fetch_products_continues_past_failures():
    """Test that one failing product is yielded as an error and the batch goes on."""

    def handler(request):
        pid = request.url.params["productIds"]
        if pid == "102":
            return httpx.Response(500)
        return httpx.Response(200, json=[zara_detail(pid)])

    client = _client(ZaraClient, ZARA_CONFIG, handler)
    results = [f async for f in client.fetch_products(["101", "102", "103"])]

    assert [r.product_id for r in results] == ["101", "102", "103"]
    assert [r.ok for r in results] == [True, False, True]
    assert "102" in results[1].error


@pytest.mark.asyncio
async def test_zara_extra_detail_sections():
    """Test composition and care text read from extra-detail sections."""
    raw = dict(ZARA_CONFIG)
    raw["endpoints"] = dict(ZARA_CONFIG["endpoints"], product_extra="/product/{productId}/extra-detail?ajax=true")

    def handler(request):
        return httpx.Response(200, json=[
            {"sectionType": "materials", "components": [{"datatype": "paragraph", "text": {"value": "%100 keten"}}]},
            {"sectionType": "care", "components": [{"datatype": "paragraph", "text": {"value": "30°C yıkayın"}}]},
        ])

    client = _client(ZaraClient, raw, handler)
    extra = await client.get_product_extra("101")

    assert extra.composition == "%100 keten"
    assert extra.care_instructions == "30°C yıkayın"


@pytest.mark.asyncio
async def test_pullbear_listing_and_detail():
    """Test the flat productIds listing and bundle-summary detail."""

    def handler(request):
        if request.url.path.endswith("/product"):
            return httpx.Response(200, json={"productIds": [555, 556]})
        return httpx.Response(200, json=pullbear_detail("555"))

    client = _client(PullBearClient, PULLBEAR_CONFIG, handler)
    ids = await client.list_category_product_ids("1030204731")
    detail = await client.get_product_detail("555")

    assert ids == ["555", "556"]
    assert detail.bundle.detail.colors[0].name == "Beyaz"
    assert detail.bundle.detail.composition_text() == "Dış: Pamuk %100"


@pytest.mark.asyncio
async def test_pullbear_listing_rejects_non_object():
    """Test that a listing that is not an object fails the listing call."""
    client = _client(PullBearClient, PULLBEAR_CONFIG, lambda request: httpx.Response(200, json=[1, 2]))

    with pytest.raises(RetailerPayloadError):
        await client.list_category_product_ids("1")


def test_registry_creates_clients_by_retailer():
    """Test registry lookups for known and unknown retailers."""
    assert isinstance(ClientRegistry.create_client(load_brand_config(ZARA_CONFIG)), ZaraClient)
    assert isinstance(ClientRegistry.create_client(load_brand_config(PULLBEAR_CONFIG)), PullBearClient)

    unknown = load_brand_config(dict(ZARA_CONFIG, retailer="mango"))
    assert not ClientRegistry.supports(unknown)
    with pytest.raises(BrandConfigError):
        ClientRegistry.create_client(unknown)


def test_browser_only_brand_has_no_api_client():
    """Test that a browser-strategy brand cannot build an API client."""
    config = load_brand_config({"retailer": "zara", "strategy": "browser", "base_url": "https://www.zara.com"})

    assert not config.supports_api
    with pytest.raises(BrandConfigError):
        ZaraClient(config)


def test_malformed_config_is_rejected():
    """Test that configuration is validated when loaded."""
    with pytest.raises(BrandConfigError):
        load_brand_config({"base_url": "https://x.test"}, "broken")
    with pytest.raises(BrandConfigError):
        load_brand_config(None, "empty")
