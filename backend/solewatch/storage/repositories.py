"""Repositories for the catalog and alert documents stored in a BlobStore."""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List

import structlog
from pydantic import ValidationError

from solewatch.core.exceptions import CatalogNotFoundError
from solewatch.schemas.alert import Alert
from solewatch.schemas.deal import Deal
from solewatch.storage.blob_store import BlobStore

logger = structlog.get_logger(__name__)


class CatalogRepository:
    """Reads and writes the merged deals catalog."""

    def __init__(self, store: BlobStore, key: str):
        self.store = store
        self.key = key

    async def load_document(self) -> Dict[str, Any]:
        """Load the raw catalog document.

        Raises:
            CatalogNotFoundError: If no catalog has been written yet
        """
        content = await self.store.read(self.key)
        if content is None:
            raise CatalogNotFoundError(self.key)
        try:
            document = json.loads(content)
        except ValueError as e:
            logger.warning("catalog_document_malformed", key=self.key, error=str(e))
            return {"deals": []}
        if not isinstance(document, dict):
            logger.warning("catalog_document_malformed", key=self.key, error="not an object")
            return {"deals": []}
        return document

    async def load_deals(self) -> List[Deal]:
        """Load catalog deals, skipping entries that no longer parse."""
        document = await self.load_document()
        raw_deals = document.get("deals")
        if not isinstance(raw_deals, list):
            return []

        deals = []
        skipped = 0
        for raw in raw_deals:
            try:
                deals.append(Deal.model_validate(raw))
            except ValidationError:
                skipped += 1
        if skipped:
            logger.warning("catalog_deals_skipped", key=self.key, skipped=skipped)
        return deals

    async def save_document(self, document: Dict[str, Any]) -> str:
        return await self.store.put(self.key, json.dumps(document, indent=2))


class AlertRepository:
    """Reads and writes the alerts document.

    Every change is a read-modify-write of the whole document. The lock makes
    this process the single writer for the duration of a ``transaction()``.
    """

    def __init__(self, store: BlobStore, key: str):
        self.store = store
        self.key = key
        self._lock = asyncio.Lock()

    async def load(self) -> List[Alert]:
        """Load all alerts. A missing or malformed document counts as empty."""
        content = await self.store.read(self.key)
        if content is None:
            return []
        try:
            document = json.loads(content)
        except ValueError as e:
            logger.warning("alerts_document_malformed", key=self.key, error=str(e))
            return []

        raw_alerts = document.get("alerts") if isinstance(document, dict) else None
        if not isinstance(raw_alerts, list):
            return []

        alerts = []
        for raw in raw_alerts:
            try:
                alerts.append(Alert.model_validate(raw))
            except ValidationError as e:
                logger.warning("stored_alert_invalid", key=self.key, error=str(e))
        return alerts

    async def save(self, alerts: List[Alert]) -> None:
        document = {
            "alerts": [alert.to_document() for alert in alerts],
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }
        await self.store.put(self.key, json.dumps(document, indent=2))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[List[Alert]]:
        """Hold the write lock, yield the alerts, and save them on success.

        Nothing is written if the body raises.
        """
        async with self._lock:
            alerts = await self.load()
            yield alerts
            await self.save(alerts)
