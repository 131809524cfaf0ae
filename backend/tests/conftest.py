"""Shared fixtures for the SoleWatch test suite."""

from datetime import datetime, timezone
from typing import List

import pytest

from solewatch.core.exceptions import DeliveryError
from solewatch.schemas.deal import Deal
from solewatch.scrapers.base import SourceContext
from solewatch.services.alert_service import AlertService
from solewatch.services.mailer import EmailMessage, Mailer
from solewatch.storage.blob_store import LocalBlobStore
from solewatch.storage.repositories import AlertRepository, CatalogRepository

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def now():
    return NOW


class FakeMailer(Mailer):
    """Records messages; addresses in ``fail_for`` raise DeliveryError."""

    def __init__(self, fail_for=()):
        self.sent: List[EmailMessage] = []
        self.fail_for = set(fail_for)

    async def send(self, message: EmailMessage) -> None:
        if message.to in self.fail_for:
            raise DeliveryError(message.to, "provider rejected message")
        self.sent.append(message)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def mailer_factory():
    return FakeMailer


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"))


@pytest.fixture
def alert_repository(blob_store):
    return AlertRepository(blob_store, "alerts.json")


@pytest.fixture
def catalog_repository(blob_store):
    return CatalogRepository(blob_store, "deals.json")


@pytest.fixture
def alert_service(alert_repository):
    return AlertService(alert_repository, ttl_days=30, max_active=7)


@pytest.fixture
def context():
    return SourceContext(
        source_id="running-warehouse",
        store="Running Warehouse",
        base_url="https://www.runningwarehouse.com",
    )


def make_deal(**overrides) -> Deal:
    """A valid discrete deal; keyword overrides use field names."""
    fields = dict(
        listing_name="ASICS Men's GT-2000 12",
        brand="ASICS",
        model="GT-2000 12",
        sale_price=95.0,
        original_price=140.0,
        discount_percent=32,
        store="Running Warehouse",
        listing_url="https://www.runningwarehouse.com/asics-gt-2000-12",
        image_url="https://img.runningwarehouse.com/asics-gt-2000-12.jpg",
        gender="mens",
        shoe_type="road",
        scraped_at=NOW,
    )
    fields.update(overrides)
    return Deal(**fields)


@pytest.fixture
def deal_factory():
    return make_deal
