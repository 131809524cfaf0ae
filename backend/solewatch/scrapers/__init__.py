"""Source system for fetching running shoe listings from retailers.

This package provides:
- Base source classes (BaseSource, BaseHTTPSource) and the RawRecord shape
- Generic configuration-driven sources (JSON feeds, HTML listing pages)
- Utility modules for rate limiting, retries and data normalization
- Factory for creating configured source instances
- Pipeline service and scheduler for the daily merge
"""

from .base import BaseHTTPSource, BaseSource, RawRecord, SourceContext
from .factory import SourceFactory, load_source_definitions

__all__ = [
    # Base classes
    "BaseSource",
    "BaseHTTPSource",
    # Data structures
    "RawRecord",
    "SourceContext",
    # Factory
    "SourceFactory",
    "load_source_definitions",
]
