"""Deal pipeline orchestration.

Runs every enabled source concurrently, hands their raw records to the merge
engine, and writes the resulting catalog document to blob storage.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import List, Optional, Set

import structlog

from solewatch.config import settings
from solewatch.scrapers.base import BaseSource
from solewatch.scrapers.factory import SourceFactory
from solewatch.services.merge_service import (
    MergeEngine,
    MergeResult,
    SourceResult,
    build_catalog_document,
)
from solewatch.storage.repositories import CatalogRepository

logger = structlog.get_logger(__name__)


class PipelineService:
    """Service for running sources and publishing the merged catalog.

    A failing source is recorded in the catalog's per-source results and
    never stops the others.
    """

    def __init__(
        self,
        factory: SourceFactory,
        catalog: CatalogRepository,
        merge_engine: Optional[MergeEngine] = None,
        concurrency: int = settings.SOURCE_CONCURRENCY,
    ):
        self.factory = factory
        self.catalog = catalog
        self.merge_engine = merge_engine or MergeEngine()
        self.concurrency = max(1, concurrency)
        self.logger = logger.bind(service="pipeline_service")

    async def collect(self, enabled_sources: Optional[Set[str]] = None) -> List[SourceResult]:
        """Fetch raw records from all enabled sources.

        Returns:
            One SourceResult per source, in registration order
        """
        sources = self.factory.create_sources(enabled_sources)
        semaphore = asyncio.Semaphore(self.concurrency)
        self.logger.info(
            "collection_started",
            sources=len(sources),
            concurrency=self.concurrency,
        )
        return list(
            await asyncio.gather(*(self._run_source(source, semaphore) for source in sources))
        )

    async def _run_source(self, source: BaseSource, semaphore: asyncio.Semaphore) -> SourceResult:
        async with semaphore:
            started = time.monotonic()
            try:
                records = await source.fetch_raw_records()
                result = SourceResult(context=source.context, records=records)
                self.logger.info(
                    "source_fetched",
                    source=source.source_id,
                    records=len(records),
                )
            except Exception as e:
                self.logger.error(
                    "source_fetch_failed",
                    source=source.source_id,
                    error=str(e),
                    exc_info=True,
                )
                result = SourceResult(context=source.context, error=str(e))
            finally:
                await source.cleanup()

            result.duration_ms = int((time.monotonic() - started) * 1000)
            return result

    async def run(
        self,
        enabled_sources: Optional[Set[str]] = None,
        now: Optional[datetime] = None,
    ) -> MergeResult:
        """Collect, merge and publish the catalog.

        Args:
            enabled_sources: Source ids to run; None runs every source
            now: Run time recorded in the catalog

        Returns:
            The MergeResult that was written
        """
        now = now or datetime.now(timezone.utc)
        results = await self.collect(enabled_sources)
        merged = self.merge_engine.merge(results, enabled_sources=enabled_sources, now=now)
        url = await self.catalog.save_document(build_catalog_document(merged, now))
        self.logger.info(
            "catalog_published",
            url=url,
            total_deals=merged.stats.total_deals,
        )
        return merged
