"""Zara-style retailer client.

Listing: ``category/{categoryId}/products`` returns productGroups whose
elements carry commercialComponents (the products). Detail:
``products-details?productIds={productId}`` returns a list. Colors and sizes
may also be read from the category ``filters`` facets.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from catalog_sync.ingest.base import BaseRetailerClient, RetailerPayloadError
from catalog_sync.ingest.schemas import (
    ProductExtraDetail,
    ZaraCategoryListing,
    ZaraExtraSection,
    ZaraProductDetail,
)

logger = logging.getLogger(__name__)

COMPOSITION_SECTIONS = ("materials", "composition")
CARE_SECTIONS = ("care",)


class ZaraClient(BaseRetailerClient):
    """API client for Zara-style catalogs."""

    retailer = "zara"

    async def list_category_product_ids(self, category_api_id: str) -> list[str]:
        url = self._url("category_products", categoryId=category_api_id)
        payload = await self.fetcher.get_json(url)
        if not isinstance(payload, dict):
            raise RetailerPayloadError(f"category {category_api_id}: expected an object")
        try:
            listing = ZaraCategoryListing.model_validate(payload)
        except ValidationError as e:
            raise RetailerPayloadError(f"category {category_api_id}: {e}") from e

        ids = listing.product_ids()
        logger.info(f"zara: category {category_api_id} lists {len(ids)} products")
        return ids

    async def get_product_detail(self, product_id: str) -> ZaraProductDetail:
        url = self._url("product_detail", productId=product_id)
        payload = await self.fetcher.get_json(url)
        entry = _pick_entry(payload, product_id)
        if entry is None:
            raise RetailerPayloadError(f"product {product_id} missing from detail response")
        detail = ZaraProductDetail.model_validate(entry)
        if detail.id is None:
            detail.id = product_id
        return detail

    def parse_extra(self, payload: Any) -> Optional[ProductExtraDetail]:
        if isinstance(payload, dict):
            payload = payload.get("sections") or payload.get("detail") or []
        if not isinstance(payload, list):
            raise RetailerPayloadError("extra detail: expected a list of sections")

        sections = [ZaraExtraSection.model_validate(s) for s in payload if isinstance(s, dict)]
        composition = " ".join(
            s.text() for s in sections if (s.section_type or "").lower() in COMPOSITION_SECTIONS
        ).strip()
        care = " ".join(
            s.text() for s in sections if (s.section_type or "").lower() in CARE_SECTIONS
        ).strip()
        if not composition and not care:
            return None
        return ProductExtraDetail(
            composition=composition or None,
            care_instructions=care or None,
        )


def _pick_entry(payload: Any, product_id: str) -> Optional[dict]:
    """Find the entry for ``product_id`` in a products-details response."""
    if isinstance(payload, dict):
        entries = payload.get("products")
        if entries is None:
            entries = [payload]
    else:
        entries = payload
    if not isinstance(entries, list):
        return None

    entries = [e for e in entries if isinstance(e, dict)]
    for entry in entries:
        if str(entry.get("id")) == str(product_id):
            return entry
    return entries[0] if len(entries) == 1 else None
