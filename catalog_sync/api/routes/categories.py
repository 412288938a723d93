"""Aggregator category API routes."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from catalog_sync.api.deps import require_admin_api_key
from catalog_sync.catalog.linker import CategoryLinker, CategoryLinkError
from catalog_sync.ingest.scrape_service import CatalogScrapeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/categories", tags=["categories"])


class LinkSiblingsResponse(BaseModel):
    """Response model for sibling linking."""
    success: bool
    products_linked: int
    sibling_categories_processed: int
    siblings_skipped: List[str]
    errors: List[str]


def get_linker() -> CategoryLinker:
    return CategoryLinker(scrape_service=CatalogScrapeService())


@router.post(
    "/{category_id}/link-siblings",
    response_model=LinkSiblingsResponse,
    dependencies=[Depends(require_admin_api_key)],
)
async def link_siblings(category_id: int, linker: CategoryLinker = Depends(get_linker)):
    """Link the products of sibling categories into a "see all" category."""
    try:
        result = await linker.link_sibling_products(category_id)
    except CategoryLinkError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return LinkSiblingsResponse(**result.to_dict())
