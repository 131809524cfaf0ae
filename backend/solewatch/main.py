"""SoleWatch Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from solewatch.api.v1.router import api_v1_router
from solewatch.config import settings
from solewatch.core.logging_config import configure_logging
from solewatch.dependencies import close_container, get_container
from solewatch.scrapers.scheduler import DealScheduler

configure_logging()
logger = structlog.get_logger(__name__)

# Global scheduler instance
scheduler: DealScheduler = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    global scheduler

    logger.info(
        "api_starting",
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
    )

    if settings.SCHEDULER_ENABLED and settings.ENVIRONMENT != "test":
        container = get_container()

        async def run_merge():
            return await container.pipeline_service().run(
                enabled_sources=settings.get_enabled_sources()
            )

        scheduler = DealScheduler(
            run_merge=run_merge,
            run_alert_check=container.notification_service.run_alert_check,
        )
        scheduler.schedule_daily_jobs()
        scheduler.start()
    else:
        logger.info("scheduler_disabled")

    yield

    logger.info("api_stopping")
    if scheduler:
        scheduler.stop()
        scheduler = None
    await close_container()


app = FastAPI(
    title="SoleWatch API",
    description="Running shoe deal aggregator and price alerts",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.SITE_BASE_URL,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "SoleWatch API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
