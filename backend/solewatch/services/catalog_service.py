"""Read-side queries over the merged catalog."""

import random
from typing import List, Optional

import structlog

from solewatch.schemas.catalog import CatalogStats
from solewatch.schemas.deal import Deal
from solewatch.scrapers.utils.normalizer import is_placeholder_image
from solewatch.services.merge_service import compute_catalog_stats
from solewatch.storage.repositories import CatalogRepository

logger = structlog.get_logger(__name__)


class CatalogService:
    """Search, statistics and the daily deals sample."""

    def __init__(self, repository: CatalogRepository):
        self.repository = repository
        self.logger = logger.bind(service="catalog_service")

    async def load_catalog(self) -> List[Deal]:
        """Raises CatalogNotFoundError when no catalog has been written."""
        return await self.repository.load_deals()

    async def search(self, query: str, limit: int = 12) -> List[Deal]:
        """Deals whose brand and model both appear in the query.

        "Nike Pegasus 41 mens" finds deals with brand "Nike" and model
        "Pegasus 41". Results are cheapest first.
        """
        q = (query or "").strip().lower()
        if not q:
            return []

        deals = await self.load_catalog()
        results = [
            d for d in deals
            if d.brand and d.model and d.brand.lower() in q and d.model.lower() in q
        ]
        results.sort(key=lambda d: (d.effective_sale_price is None, d.effective_sale_price or 0))
        self.logger.info("catalog_search", query=q, results=len(results))
        return results[:limit]

    async def daily_sample(self, count: int = 8, rng: Optional[random.Random] = None) -> List[Deal]:
        """Random pick of marked-down deals that have a usable image."""
        deals = await self.load_catalog()
        eligible = [d for d in deals if _has_real_image(d) and _is_marked_down(d)]
        rng = rng or random.Random()
        if len(eligible) <= count:
            rng.shuffle(eligible)
            return eligible
        return rng.sample(eligible, count)

    async def stats(self) -> CatalogStats:
        return compute_catalog_stats(await self.load_catalog())


def _has_real_image(deal: Deal) -> bool:
    url = deal.image_url or ""
    return url.lower().startswith(("http://", "https://")) and not is_placeholder_image(url)


def _is_marked_down(deal: Deal) -> bool:
    if deal.is_range:
        return (deal.original_price_high or 0) > (deal.sale_price_low or 0)
    if deal.sale_price is None or deal.original_price is None:
        return False
    return deal.original_price > deal.sale_price
