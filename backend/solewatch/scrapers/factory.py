"""Factory for creating configured source instances."""

import json
from pathlib import Path
from typing import Dict, List, Optional, Set, Type
from urllib.parse import urlparse

import structlog
from pydantic import ValidationError

from solewatch.config import settings
from solewatch.core.exceptions import ConfigurationError
from solewatch.schemas.source import SourceDefinition
from solewatch.scrapers.adapters.json_feed import JSONFeedSource
from solewatch.scrapers.adapters.listing_page import ListingPageSource
from solewatch.scrapers.base import BaseSource, SourceContext
from solewatch.scrapers.utils import DomainRateLimiter

logger = structlog.get_logger(__name__)


def load_source_definitions(path: str) -> List[SourceDefinition]:
    """Read source definitions from a JSON file.

    The file holds either a list of definitions or ``{"sources": [...]}``.
    A missing file means no sources are configured.

    Raises:
        ConfigurationError: If the file is not valid JSON or a definition is
            invalid
    """
    file_path = Path(path)
    if not file_path.is_file():
        logger.warning("sources_file_missing", path=path)
        return []

    try:
        payload = json.loads(file_path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise ConfigurationError(f"Invalid sources file {path}: {e}") from e

    entries = payload.get("sources", []) if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        raise ConfigurationError(f"Invalid sources file {path}: expected a list of sources")

    definitions = []
    seen_ids: Set[str] = set()
    for entry in entries:
        try:
            definition = SourceDefinition.model_validate(entry)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid source definition in {path}: {e}") from e
        if definition.id in seen_ids:
            raise ConfigurationError(f"Duplicate source id in {path}: {definition.id}")
        seen_ids.add(definition.id)
        definitions.append(definition)
    return definitions


class SourceFactory:
    """Creates sources from definitions and injects shared dependencies."""

    def __init__(self, definitions: Optional[List[SourceDefinition]] = None):
        # Shared rate limiter for all sources
        self.rate_limiter = DomainRateLimiter()
        self._definitions: Dict[str, SourceDefinition] = {}
        self._source_types: Dict[str, Type[BaseSource]] = {
            JSONFeedSource.source_type: JSONFeedSource,
            ListingPageSource.source_type: ListingPageSource,
        }
        for definition in definitions or []:
            self.register_definition(definition)

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> "SourceFactory":
        return cls(load_source_definitions(path or settings.SOURCES_FILE))

    def register_definition(self, definition: SourceDefinition) -> None:
        if definition.type not in self._source_types:
            raise ConfigurationError(f"Unknown source type: {definition.type}")
        if definition.type == "listing_page" and definition.selectors is None:
            raise ConfigurationError(f"Listing source {definition.id} needs selectors")
        self._definitions[definition.id] = definition
        if definition.rate_limit_rpm:
            for url in definition.urls:
                self.rate_limiter.set_custom_limit(urlparse(url).netloc, definition.rate_limit_rpm)
        logger.info("source_registered", source=definition.id, source_type=definition.type)

    def get_definition(self, source_id: str) -> Optional[SourceDefinition]:
        return self._definitions.get(source_id)

    def get_registered_sources(self) -> List[str]:
        """Source ids in registration order."""
        return list(self._definitions.keys())

    def create_source(self, source_id: str) -> Optional[BaseSource]:
        """Create a configured source instance, or None if not registered."""
        definition = self._definitions.get(source_id)
        if definition is None:
            logger.warning("source_not_found", source=source_id)
            return None

        context = SourceContext(
            source_id=definition.id,
            store=definition.store,
            base_url=definition.base_url,
            fixed_gender=definition.fixed_gender,
            fixed_shoe_type=definition.fixed_shoe_type,
        )
        if definition.type == "listing_page":
            source: BaseSource = ListingPageSource(
                context,
                urls=definition.urls,
                selectors=definition.selectors,
                max_pages=definition.max_pages,
            )
        else:
            source = JSONFeedSource(context, urls=definition.urls)

        source.rate_limiter = self.rate_limiter
        return source

    def create_sources(self, enabled_sources: Optional[Set[str]] = None) -> List[BaseSource]:
        """Create every enabled source; None enables all registered sources."""
        ids = self.get_registered_sources()
        if enabled_sources is not None:
            unknown = enabled_sources - set(ids)
            if unknown:
                logger.warning("enabled_sources_unknown", sources=sorted(unknown))
            ids = [source_id for source_id in ids if source_id in enabled_sources]
        return [self.create_source(source_id) for source_id in ids]
