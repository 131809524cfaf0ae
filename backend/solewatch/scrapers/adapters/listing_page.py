"""Listing page source.

Scrapes server-rendered sale/clearance pages: every product tile matched by
a CSS selector becomes one RawRecord. Prices are left as an HTML fragment for
the normalizer's text price extraction.
"""

from typing import List, Optional

import httpx
from bs4 import BeautifulSoup, Tag

from solewatch.config import settings
from solewatch.core.exceptions import SourceError
from solewatch.schemas.source import SelectorConfig
from solewatch.scrapers.base import BaseHTTPSource, RawRecord, SourceContext
from solewatch.scrapers.utils.normalizer import normalize_whitespace

PAGE_PLACEHOLDER = "{page}"
IMAGE_ATTRIBUTES = ("data-src", "data-original", "data-lazy", "src")


def pick_image_url(img: Optional[Tag]) -> Optional[str]:
    """Best image candidate of an <img>, including lazy-load attributes.

    Falls back to the last (largest) ``srcset`` entry.
    """
    if img is None:
        return None
    for attr in IMAGE_ATTRIBUTES:
        value = (img.get(attr) or "").strip()
        if value:
            break
    else:
        value = ""

    if not value:
        srcset = (img.get("data-srcset") or img.get("srcset") or "").strip()
        parts = [p.strip() for p in srcset.split(",") if p.strip()]
        if parts:
            value = parts[-1].split(" ")[0].strip()

    if not value or value.startswith("data:") or value == "#":
        return None
    return value


def parse_tiles(html: str, selectors: SelectorConfig) -> List[RawRecord]:
    """Turn every product tile on a page into a RawRecord."""
    soup = BeautifulSoup(html, "html.parser")
    records = []
    for tile in soup.select(selectors.tile):
        title_el = tile.select_one(selectors.title) if selectors.title else None
        link_el = tile.select_one(selectors.link) if selectors.link else tile.find("a", href=True)
        image_el = tile.select_one(selectors.image) if selectors.image else tile.find("img")
        price_el = tile.select_one(selectors.price) if selectors.price else tile

        title = normalize_whitespace((title_el or tile).get_text(" "))
        href = link_el.get("href") if link_el is not None else None
        if image_el is not None and image_el.name != "img":
            image_el = image_el.find("img")

        records.append(
            RawRecord(
                data={
                    "title": title,
                    "url": href,
                    "image": pick_image_url(image_el),
                },
                price_html=str(price_el) if price_el is not None else None,
            )
        )
    return records


class ListingPageSource(BaseHTTPSource):
    """Source that scrapes product tiles from HTML listing pages."""

    source_type = "listing_page"

    def __init__(
        self,
        context: SourceContext,
        urls: List[str],
        selectors: SelectorConfig,
        max_pages: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        page_delay: Optional[tuple] = None,
    ):
        super().__init__(context, http_client=http_client, page_delay=page_delay)
        self.urls = urls
        self.selectors = selectors
        self.max_pages = max_pages or settings.MAX_PAGES

    async def fetch_raw_records(self) -> List[RawRecord]:
        records: List[RawRecord] = []
        first_request = True
        for url in self.urls:
            pages = range(1, self.max_pages + 1) if PAGE_PLACEHOLDER in url else [None]
            for page in pages:
                page_url = url.replace(PAGE_PLACEHOLDER, str(page)) if page else url
                if not first_request:
                    await self._pause_between_pages()
                first_request = False

                try:
                    response = await self._get(page_url)
                except httpx.HTTPError as e:
                    if records and page and page > 1:
                        # Past the last page some stores answer 404
                        self.logger.info("pagination_stopped", url=page_url, error=str(e))
                        break
                    raise SourceError(self.source_id, f"request to {page_url} failed: {e}") from e

                tiles = parse_tiles(response.text, self.selectors)
                self.logger.info("page_parsed", url=page_url, tiles=len(tiles))
                if not tiles:
                    break
                records.extend(tiles)
        return records
