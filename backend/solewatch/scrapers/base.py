"""Base source interface.

Every retailer integration inherits from BaseSource and implements
fetch_raw_records(). Sources only extract; the DealNormalizer turns their
RawRecords into canonical deals.
"""

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
import structlog

from solewatch.config import settings
from solewatch.scrapers.utils.retry import http_retry


@dataclass
class RawRecord:
    """One listing as extracted by a source, before normalization.

    ``data`` keeps whatever field names the source uses. ``price_text`` and
    ``price_html`` carry free text (or an HTML fragment with superscript
    cents) for sources without structured prices.
    """

    data: Dict[str, Any] = field(default_factory=dict)
    price_text: Optional[str] = None
    price_html: Optional[str] = None


@dataclass(frozen=True)
class SourceContext:
    """Per-source facts the normalizer needs."""

    source_id: str
    store: str
    base_url: Optional[str] = None
    fixed_gender: Optional[str] = None  # e.g. a mens-only collection
    fixed_shoe_type: Optional[str] = None

    def __post_init__(self):
        if not self.source_id:
            raise ValueError("source_id is required")
        if not self.store:
            raise ValueError("store is required")


class BaseSource(ABC):
    """Abstract base class for all deal sources."""

    source_type: str = ""  # Must be overridden in subclass (e.g. "json_feed")

    def __init__(self, context: SourceContext):
        self.context = context
        self.rate_limiter = None  # Injected by SourceFactory
        self.logger = structlog.get_logger(source=context.source_id)

    @property
    def source_id(self) -> str:
        return self.context.source_id

    @abstractmethod
    async def fetch_raw_records(self) -> List[RawRecord]:
        """Fetch current listings from this source.

        Returns:
            List of RawRecord objects

        Raises:
            SourceError: If the source cannot be fetched or parsed at all
        """
        pass

    async def cleanup(self) -> None:
        """Release resources held by the source."""
        return None


class BaseHTTPSource(BaseSource):
    """Base class for sources fetched over HTTP with httpx.

    Provides a shared client with a request timeout, per-domain rate
    limiting, retries on transient failures, and a randomized delay between
    consecutive page requests against one retailer.
    """

    def __init__(
        self,
        context: SourceContext,
        http_client: Optional[httpx.AsyncClient] = None,
        page_delay: Optional[tuple] = None,
    ):
        super().__init__(context)
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            follow_redirects=True,
            headers={
                "User-Agent": settings.HTTP_USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )
        self.page_delay = page_delay or (
            settings.PAGE_DELAY_MIN_SECONDS,
            settings.PAGE_DELAY_MAX_SECONDS,
        )

    @http_retry
    async def _get(self, url: str) -> httpx.Response:
        """GET a URL with rate limiting and retries.

        Raises:
            httpx.HTTPError: If the request still fails after retries
        """
        if self.rate_limiter:
            await self.rate_limiter.acquire(urlparse(url).netloc)

        self.logger.info("fetching_url", url=url)
        response = await self.http_client.get(url)
        response.raise_for_status()
        return response

    async def _pause_between_pages(self) -> None:
        low, high = self.page_delay
        if high <= 0:
            return
        await asyncio.sleep(random.uniform(low, high))

    async def cleanup(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
