"""Health check endpoint."""

from fastapi import APIRouter, Depends

from solewatch.config import settings
from solewatch.dependencies import ServiceContainer, get_container
from solewatch.schemas import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(container: ServiceContainer = Depends(get_container)):
    """Return service health status.

    Checks that blob storage is reachable and whether email delivery and
    link signing are configured.
    """
    checks = {}

    try:
        await container.store.list(settings.CATALOG_KEY)
        checks["storage"] = "ok"
    except Exception as e:
        checks["storage"] = f"error: {str(e)}"

    checks["mailer"] = "ok" if container.mailer is not None else "disabled"
    checks["link_signing"] = "ok" if settings.ALERTS_LINK_SECRET else "disabled"

    overall_status = "ok" if checks["storage"] == "ok" else "degraded"
    return HealthCheckResponse(
        status=overall_status,
        environment=settings.ENVIRONMENT,
        checks=checks,
    )
