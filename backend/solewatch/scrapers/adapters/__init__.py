"""Source implementations.

Each source class inherits from BaseSource (usually via BaseHTTPSource) and
implements fetch_raw_records().
"""

from .json_feed import JSONFeedSource, extract_records_from_payload
from .listing_page import ListingPageSource, parse_tiles

__all__ = [
    "JSONFeedSource",
    "ListingPageSource",
    "extract_records_from_payload",
    "parse_tiles",
]
