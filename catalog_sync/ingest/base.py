"""Base interface for retailer API clients."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Iterable, Optional

from pydantic import ValidationError

from catalog_sync.ingest.brand_config import BrandApiConfig, BrandConfigError
from catalog_sync.ingest.http_client import FetchError, HttpFetcher
from catalog_sync.ingest.schemas import FiltersPayload, ProductExtraDetail, RawProductDetail

logger = logging.getLogger(__name__)


class RetailerPayloadError(ValueError):
    """A retailer response did not have the expected shape."""
    pass


@dataclass
class ProductFetch:
    """Outcome of fetching one product id from a listing."""

    product_id: str
    detail: Optional[RawProductDetail] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.detail is not None


class BaseRetailerClient(ABC):
    """Abstract base class for retailer API clients.

    Subclasses know one retailer's listing and detail payloads. Retry,
    timeout and pacing come from the brand configuration.
    """

    retailer: str = ""

    def __init__(self, config: BrandApiConfig, fetcher: Optional[HttpFetcher] = None):
        if not config.supports_api:
            raise BrandConfigError(
                f"{config.retailer}: API strategy requires endpoint templates"
            )
        self.config = config
        self.fetcher = fetcher or HttpFetcher(
            policy=config.politeness.retry_policy(),
            headers=config.headers,
        )

    @abstractmethod
    async def list_category_product_ids(self, category_api_id: str) -> list[str]:
        """
        List product ids of a category, in retailer order.

        Args:
            category_api_id: Retailer-side category identifier

        Returns:
            Product ids (empty if the category has none)

        Raises:
            FetchError: If the listing call fails
            RetailerPayloadError: If the listing payload is malformed
        """
        pass

    @abstractmethod
    async def get_product_detail(self, product_id: str) -> RawProductDetail:
        """
        Fetch the primary detail payload for a product.

        Raises:
            FetchError: If the detail call fails
            RetailerPayloadError: If the payload does not describe the product
        """
        pass

    def parse_extra(self, payload: Any) -> Optional[ProductExtraDetail]:
        """Convert an extra-detail response; retailers without one return None."""
        return None

    def _url(self, endpoint: str, **params: object) -> str:
        url = self.config.build_url(endpoint, **params)
        if url is None:
            raise BrandConfigError(f"{self.retailer}: endpoint '{endpoint}' is not configured")
        return url

    async def get_product_extra(self, product_id: str) -> Optional[ProductExtraDetail]:
        """Fetch composition/care text. Failures leave the fields empty."""
        url = self.config.build_url("product_extra", productId=product_id)
        if not url:
            return None
        try:
            payload = await self.fetcher.get_json(url)
            return self.parse_extra(payload)
        except (FetchError, RetailerPayloadError, ValidationError) as e:
            logger.warning(f"{self.retailer}: extra detail unavailable for {product_id}: {e}")
            return None

    async def get_filters(self, category_api_id: str) -> Optional[FiltersPayload]:
        """Fetch the category facets payload, if the retailer has one."""
        url = self.config.build_url("filters", categoryId=category_api_id)
        if not url:
            return None
        try:
            payload = await self.fetcher.get_json(url)
            return FiltersPayload.model_validate(payload)
        except (FetchError, ValidationError) as e:
            logger.warning(f"{self.retailer}: filters unavailable for category {category_api_id}: {e}")
            return None

    async def fetch_products(self, product_ids: Iterable[str]) -> AsyncIterator[ProductFetch]:
        """
        Fetch detail (and extra detail) for each id in order.

        A failing id is yielded with its error and the iteration continues.
        """
        delay = self.config.politeness.request_delay_seconds
        for index, product_id in enumerate(product_ids):
            if index and delay:
                await asyncio.sleep(delay)
            try:
                detail = await self.get_product_detail(product_id)
            except (FetchError, RetailerPayloadError, ValidationError) as e:
                logger.warning(f"{self.retailer}: skipping product {product_id}: {e}")
                yield ProductFetch(product_id=product_id, error=f"{product_id}: {e}")
                continue

            extra = await self.get_product_extra(product_id)
            if extra is not None:
                detail.extra = extra
            yield ProductFetch(product_id=product_id, detail=detail)

    async def close(self):
        await self.fetcher.close()
