"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from solewatch.api.v1 import alerts, cron, deals, health

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
api_v1_router.include_router(deals.router, prefix="/deals", tags=["deals"])
api_v1_router.include_router(cron.router, prefix="/cron", tags=["cron"])
