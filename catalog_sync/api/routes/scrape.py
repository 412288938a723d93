"""Category, brand and subtree scrape triggers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from catalog_sync.api.deps import require_admin_api_key
from catalog_sync.ingest.scrape_service import CatalogScrapeService, ScrapeSummary

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/scrape",
    tags=["scrape"],
    dependencies=[Depends(require_admin_api_key)],
)


class ScrapeRequest(BaseModel):
    """Request model for a single category scrape."""
    brand_id: int
    category_api_id: str
    test_limit: Optional[int] = Field(default=None, ge=1)


class ScrapeResponse(BaseModel):
    """Summary of a scrape run."""
    success: bool
    products_created: int
    products_updated: int
    products_rejected: int
    products_found: int
    categories_processed: int
    errors: List[str]
    message: Optional[str] = None
    duration_seconds: float


def get_scrape_service() -> CatalogScrapeService:
    return CatalogScrapeService()


def _response(summary: ScrapeSummary) -> ScrapeResponse:
    return ScrapeResponse(**summary.to_dict())


@router.post("", response_model=ScrapeResponse)
async def scrape_category(
    request: ScrapeRequest,
    service: CatalogScrapeService = Depends(get_scrape_service),
):
    """Scrape one category through the brand's retailer API."""
    logger.info(
        f"Scrape requested: brand={request.brand_id} category={request.category_api_id} "
        f"limit={request.test_limit}"
    )
    summary = await service.scrape_category(
        request.brand_id, request.category_api_id, test_limit=request.test_limit
    )
    return _response(summary)


@router.post("/brand/{brand_id}", response_model=ScrapeResponse)
async def scrape_brand(
    brand_id: int,
    test_limit: Optional[int] = Query(default=None, ge=1),
    service: CatalogScrapeService = Depends(get_scrape_service),
):
    """Scrape every eligible leaf category of a brand."""
    return _response(await service.scrape_brand(brand_id, test_limit=test_limit))


@router.post("/category/{category_id}/tree", response_model=ScrapeResponse)
async def scrape_category_tree(
    category_id: int,
    test_limit: Optional[int] = Query(default=None, ge=1),
    service: CatalogScrapeService = Depends(get_scrape_service),
):
    """Scrape all leaf categories below a category."""
    return _response(await service.scrape_category_tree(category_id, test_limit=test_limit))
