"""Merge engine: combines normalized deals from every source into one catalog."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

import structlog
from jsonschema import Draft7Validator

from solewatch.schemas.catalog import CatalogDocument, CatalogStats, SourceStats
from solewatch.schemas.deal import DEAL_JSON_SCHEMA, Deal, RejectionReason
from solewatch.scrapers.base import RawRecord, SourceContext
from solewatch.services.deal_normalizer import DealNormalizer

logger = structlog.get_logger(__name__)

_deal_validator = Draft7Validator(DEAL_JSON_SCHEMA)


@dataclass
class SourceResult:
    """What one source produced in a run: its records, or the failure."""

    context: SourceContext
    records: List[RawRecord] = field(default_factory=list)
    error: Optional[str] = None
    duration_ms: Optional[int] = None

    @property
    def source_id(self) -> str:
        return self.context.source_id

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class MergeResult:
    """Deduplicated, sorted catalog plus per-source health."""

    deals: List[Deal]
    source_stats: Dict[str, SourceStats]
    stats: CatalogStats


def compute_catalog_stats(deals: Iterable[Deal]) -> CatalogStats:
    """Totals, per-store counts and discount bands for a set of deals."""
    stats = CatalogStats()
    by_store: Dict[str, int] = {}
    for deal in deals:
        stats.total_deals += 1
        by_store[deal.store] = by_store.get(deal.store, 0) + 1
        if deal.image_url:
            stats.deals_with_images += 1
        discount = deal.effective_discount
        if discount >= 10:
            stats.off10_or_more += 1
        if discount >= 25:
            stats.off25_or_more += 1
        if discount >= 50:
            stats.off50_or_more += 1
    stats.deals_by_store = by_store
    return stats


class MergeEngine:
    """Normalizes, validates, deduplicates and sorts deals from all sources.

    Merging is deterministic: the same source results and the same ``now``
    always produce the same catalog.
    """

    def __init__(self, normalizer: Optional[DealNormalizer] = None):
        self.normalizer = normalizer or DealNormalizer()
        self.logger = logger.bind(service="merge_engine")

    def merge(
        self,
        source_results: List[SourceResult],
        enabled_sources: Optional[Set[str]] = None,
        now: Optional[datetime] = None,
    ) -> MergeResult:
        """Merge source results into the canonical catalog.

        Args:
            source_results: Results in source registration order
            enabled_sources: Source ids to include; None includes all
            now: Run time, stamped on deals without their own ``scrapedAt``

        Returns:
            MergeResult with deals sorted by discount, highest first
        """
        now = now or datetime.now(timezone.utc)
        deals: List[Deal] = []
        source_stats: Dict[str, SourceStats] = {}
        seen = set()

        for result in source_results:
            if enabled_sources is not None and result.source_id not in enabled_sources:
                continue

            stats = SourceStats(
                source_id=result.source_id,
                store=result.context.store,
                ok=result.ok,
                fetched=len(result.records),
                error=result.error,
                duration_ms=result.duration_ms,
            )
            source_stats[result.source_id] = stats

            if not result.ok:
                self.logger.warning(
                    "source_failed",
                    source=result.source_id,
                    error=result.error,
                )
                continue

            for raw in result.records:
                outcome = self.normalizer.normalize(raw, result.context, now=now)
                if not outcome.accepted:
                    self._count_rejection(stats, outcome.reason)
                    continue

                deal = outcome.deal
                errors = sorted(_deal_validator.iter_errors(deal.to_wire()), key=str)
                if errors:
                    self.logger.warning(
                        "deal_failed_schema",
                        source=result.source_id,
                        url=deal.listing_url,
                        error=errors[0].message,
                    )
                    self._count_rejection(stats, RejectionReason.INVALID_RECORD)
                    continue

                if deal.listing_url:
                    key = (deal.store, deal.listing_url)
                    if key in seen:
                        stats.duplicates += 1
                        continue
                    seen.add(key)

                stats.accepted += 1
                deals.append(deal)

            self.logger.info(
                "source_merged",
                source=result.source_id,
                fetched=stats.fetched,
                accepted=stats.accepted,
                rejected=stats.rejected,
                duplicates=stats.duplicates,
            )

        # sorted() is stable, so ties keep first-seen order
        deals = sorted(deals, key=lambda d: d.effective_discount, reverse=True)
        catalog_stats = compute_catalog_stats(deals)

        self.logger.info(
            "merge_completed",
            total_deals=catalog_stats.total_deals,
            sources=len(source_stats),
            failed_sources=sum(1 for s in source_stats.values() if not s.ok),
        )
        return MergeResult(deals=deals, source_stats=source_stats, stats=catalog_stats)

    @staticmethod
    def _count_rejection(stats: SourceStats, reason: Optional[RejectionReason]) -> None:
        code = (reason or RejectionReason.INVALID_RECORD).value
        stats.rejected += 1
        stats.rejection_reasons[code] = stats.rejection_reasons.get(code, 0) + 1


def build_catalog_document(result: MergeResult, now: datetime) -> Dict[str, Any]:
    """Render a merge result as the ``deals.json`` document."""
    document = CatalogDocument(
        last_updated=now.astimezone(timezone.utc).isoformat(),
        total_deals=result.stats.total_deals,
        deals_by_store=result.stats.deals_by_store,
        scraper_results=result.source_stats,
        stats=result.stats,
        deals=[deal.to_wire() for deal in result.deals],
    )
    return document.model_dump(by_alias=True, mode="json")
