"""Pull&Bear-style retailer client.

Listing returns a flat ``productIds`` array. Detail data lives in the first
``bundleProductSummaries`` entry. There is no facets endpoint.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from catalog_sync.ingest.base import BaseRetailerClient, RetailerPayloadError
from catalog_sync.ingest.schemas import (
    ProductExtraDetail,
    PullBearBundleDetail,
    PullBearCategoryListing,
    PullBearProductDetail,
)

logger = logging.getLogger(__name__)


class PullBearClient(BaseRetailerClient):
    """API client for Pull&Bear-style catalogs."""

    retailer = "pullbear"

    async def list_category_product_ids(self, category_api_id: str) -> list[str]:
        url = self._url("category_products", categoryId=category_api_id)
        payload = await self.fetcher.get_json(url)
        if not isinstance(payload, dict):
            raise RetailerPayloadError(f"category {category_api_id}: expected an object")
        try:
            listing = PullBearCategoryListing.model_validate(payload)
        except ValidationError as e:
            raise RetailerPayloadError(f"category {category_api_id}: {e}") from e

        ids = [pid for pid in listing.product_ids if pid]
        logger.info(f"pullbear: category {category_api_id} lists {len(ids)} products")
        return ids

    async def get_product_detail(self, product_id: str) -> PullBearProductDetail:
        url = self._url("product_detail", productId=product_id)
        payload = await self.fetcher.get_json(url)
        if not isinstance(payload, dict):
            raise RetailerPayloadError(f"product {product_id}: expected an object")
        detail = PullBearProductDetail.model_validate(payload)
        if detail.id is None:
            detail.id = product_id
        return detail

    def parse_extra(self, payload: Any) -> Optional[ProductExtraDetail]:
        if not isinstance(payload, dict):
            raise RetailerPayloadError("extra detail: expected an object")
        block = PullBearBundleDetail.model_validate(payload)
        composition = block.composition_text()
        care = block.care_text()
        if not composition and not care:
            return None
        return ProductExtraDetail(
            composition=composition or None,
            care_instructions=care or None,
        )
