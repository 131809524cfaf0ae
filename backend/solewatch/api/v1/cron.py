"""Cron trigger endpoints for the daily merge and alert check."""

from fastapi import APIRouter, Depends, HTTPException

from solewatch.config import settings
from solewatch.core.exceptions import CatalogNotFoundError, ConfigurationError
from solewatch.dependencies import ServiceContainer, get_container, verify_cron_secret
from solewatch.schemas.common import ApiResponse

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.post("/merge-deals", response_model=ApiResponse)
async def merge_deals(container: ServiceContainer = Depends(get_container)):
    """Run all enabled sources and publish a fresh catalog."""
    try:
        pipeline = container.pipeline_service()
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=e.message)

    result = await pipeline.run(enabled_sources=settings.get_enabled_sources())
    return ApiResponse(
        status="success",
        data={
            "totalDeals": result.stats.total_deals,
            "dealsByStore": result.stats.deals_by_store,
            "scraperResults": {
                source_id: stats.model_dump(by_alias=True)
                for source_id, stats in result.source_stats.items()
            },
        },
    )


@router.post("/check-alerts", response_model=ApiResponse)
async def check_alerts(container: ServiceContainer = Depends(get_container)):
    """Email every alert with new matching deals."""
    try:
        summary = await container.notification_service.run_alert_check()
    except CatalogNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return ApiResponse(status="success", data=summary.to_dict())
