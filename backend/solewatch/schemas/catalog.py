"""Catalog document and merge statistics schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SourceStats(BaseModel):
    """Per-source health statistics for one merge run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source_id: str
    store: str
    ok: bool = True
    fetched: int = 0
    accepted: int = 0
    rejected: int = 0
    duplicates: int = 0
    rejection_reasons: Dict[str, int] = Field(default_factory=dict)
    error: Optional[str] = None
    duration_ms: Optional[int] = None


class CatalogStats(BaseModel):
    """Aggregate statistics over the merged catalog."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_deals: int = 0
    deals_by_store: Dict[str, int] = Field(default_factory=dict)
    deals_with_images: int = 0
    off10_or_more: int = Field(0, alias="off10OrMore")
    off25_or_more: int = Field(0, alias="off25OrMore")
    off50_or_more: int = Field(0, alias="off50OrMore")


class CatalogDocument(BaseModel):
    """The canonical ``deals.json`` document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    last_updated: str
    total_deals: int
    deals_by_store: Dict[str, int]
    scraper_results: Dict[str, SourceStats] = Field(default_factory=dict)
    stats: Optional[CatalogStats] = None
    deals: List[Dict[str, Any]] = Field(default_factory=list)
