"""Service wiring and FastAPI dependency providers."""

import hmac
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from solewatch.config import settings
from solewatch.scrapers.factory import SourceFactory
from solewatch.scrapers.pipeline_service import PipelineService
from solewatch.services.alert_service import AlertService
from solewatch.services.catalog_service import CatalogService
from solewatch.services.mailer import Mailer, SendGridMailer
from solewatch.services.notification_service import NotificationService
from solewatch.storage.blob_store import BlobStore, LocalBlobStore
from solewatch.storage.repositories import AlertRepository, CatalogRepository

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


class ServiceContainer:
    """Holds one instance of every service for the process.

    The alert repository's write lock only protects writers that share the
    same instance, so everything must come from one container.
    """

    def __init__(
        self,
        store: BlobStore,
        mailer: Optional[Mailer] = None,
        source_factory: Optional[SourceFactory] = None,
    ):
        self.store = store
        self.mailer = mailer
        self.catalog_repository = CatalogRepository(store, settings.CATALOG_KEY)
        self.alert_repository = AlertRepository(store, settings.ALERTS_KEY)
        self.alert_service = AlertService(self.alert_repository)
        self.catalog_service = CatalogService(self.catalog_repository)
        self.notification_service = NotificationService(
            self.catalog_repository, self.alert_service, mailer
        )
        self._source_factory = source_factory

    @property
    def source_factory(self) -> SourceFactory:
        if self._source_factory is None:
            self._source_factory = SourceFactory.from_file(settings.SOURCES_FILE)
        return self._source_factory

    def pipeline_service(self) -> PipelineService:
        return PipelineService(self.source_factory, self.catalog_repository)

    async def close(self) -> None:
        if self.mailer is not None:
            await self.mailer.close()


def build_container() -> ServiceContainer:
    """Build services from settings."""
    mailer = SendGridMailer(settings.SENDGRID_API_KEY) if settings.SENDGRID_API_KEY else None
    if mailer is None:
        logger.warning("mailer_disabled", reason="no_sendgrid_api_key")
    return ServiceContainer(LocalBlobStore(settings.BLOB_DIR), mailer=mailer)


_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    global _container
    if _container is None:
        _container = build_container()
    return _container


async def close_container() -> None:
    """Close the process container, if one was built."""
    global _container
    if _container is not None:
        await _container.close()
        _container = None


def get_alert_service(container: ServiceContainer = Depends(get_container)) -> AlertService:
    return container.alert_service


def get_catalog_service(container: ServiceContainer = Depends(get_container)) -> CatalogService:
    return container.catalog_service


def get_notification_service(
    container: ServiceContainer = Depends(get_container),
) -> NotificationService:
    return container.notification_service


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>`` when a secret is configured."""
    if not settings.CRON_SECRET:
        return
    if credentials is None or not hmac.compare_digest(
        credentials.credentials.encode("utf-8"), settings.CRON_SECRET.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
