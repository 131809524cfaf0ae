"""JSON feed source.

Reads deals from endpoints that already serve structured JSON, such as other
scrapers' output blobs or a retailer's product API.
"""

from typing import Any, Dict, List, Optional

import httpx

from solewatch.core.exceptions import SourceError
from solewatch.scrapers.base import BaseHTTPSource, RawRecord, SourceContext


def extract_records_from_payload(payload: Any) -> List[Dict[str, Any]]:
    """Find the list of deal objects in a feed payload.

    Accepted shapes: a bare list, or an object carrying the list under
    ``deals``, ``items``, ``output.deals`` or ``data.deals``. Entries that
    are not objects are dropped.
    """
    candidates: Any = None
    if isinstance(payload, list):
        candidates = payload
    elif isinstance(payload, dict):
        for path in (("deals",), ("items",), ("output", "deals"), ("data", "deals")):
            node: Any = payload
            for key in path:
                node = node.get(key) if isinstance(node, dict) else None
            if isinstance(node, list):
                candidates = node
                break

    if not candidates:
        return []
    return [item for item in candidates if isinstance(item, dict)]


class JSONFeedSource(BaseHTTPSource):
    """Source backed by one or more JSON endpoints."""

    source_type = "json_feed"

    def __init__(
        self,
        context: SourceContext,
        urls: List[str],
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(context, http_client=http_client)
        self.urls = urls

    async def fetch_raw_records(self) -> List[RawRecord]:
        records: List[RawRecord] = []
        for url in self.urls:
            try:
                response = await self._get(url)
                payload = response.json()
            except httpx.HTTPError as e:
                raise SourceError(self.source_id, f"request to {url} failed: {e}") from e
            except ValueError as e:
                raise SourceError(self.source_id, f"invalid JSON from {url}: {e}") from e

            items = extract_records_from_payload(payload)
            self.logger.info("feed_parsed", url=url, records=len(items))
            records.extend(RawRecord(data=item) for item in items)
        return records
