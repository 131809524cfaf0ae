"""Catalog read endpoints: search, statistics and daily deals."""

from fastapi import APIRouter, Depends, HTTPException, Query

from solewatch.core.exceptions import CatalogNotFoundError
from solewatch.dependencies import get_catalog_service
from solewatch.schemas.common import ApiResponse
from solewatch.services.catalog_service import CatalogService

router = APIRouter()

CATALOG_UNAVAILABLE = "Deals catalog is not available yet"


@router.get("/search", response_model=ApiResponse)
async def search_deals(
    query: str = Query("", description="Free text containing a brand and model"),
    limit: int = Query(12, ge=1, le=50),
    service: CatalogService = Depends(get_catalog_service),
):
    """Find deals whose brand and model both appear in the query."""
    if not query.strip():
        raise HTTPException(status_code=400, detail="Missing query parameter")
    try:
        results = await service.search(query, limit=limit)
    except CatalogNotFoundError:
        raise HTTPException(status_code=404, detail=CATALOG_UNAVAILABLE)
    return ApiResponse(status="success", data=[deal.to_wire() for deal in results])


@router.get("/stats", response_model=ApiResponse)
async def deal_stats(service: CatalogService = Depends(get_catalog_service)):
    """Catalog totals and discount bands."""
    try:
        stats = await service.stats()
    except CatalogNotFoundError:
        raise HTTPException(status_code=404, detail=CATALOG_UNAVAILABLE)
    return ApiResponse(status="success", data=stats.model_dump(by_alias=True))


@router.get("/daily", response_model=ApiResponse)
async def daily_deals(
    count: int = Query(8, ge=1, le=24),
    service: CatalogService = Depends(get_catalog_service),
):
    """A random selection of marked-down deals with images."""
    try:
        deals = await service.daily_sample(count=count)
    except CatalogNotFoundError:
        raise HTTPException(status_code=404, detail=CATALOG_UNAVAILABLE)
    return ApiResponse(status="success", data=[deal.to_wire() for deal in deals])
