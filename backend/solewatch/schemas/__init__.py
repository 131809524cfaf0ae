"""Pydantic schemas for SoleWatch.

Wire-format models for deals, alerts and the catalog document, plus API
request/response models.
"""

from solewatch.schemas.alert import (
    Alert,
    AlertCreateRequest,
    AlertListResponse,
    AlertManageRequest,
    parse_timestamp,
    to_number,
)
from solewatch.schemas.catalog import CatalogDocument, CatalogStats, SourceStats
from solewatch.schemas.common import ApiResponse, HealthCheckResponse
from solewatch.schemas.deal import DEAL_JSON_SCHEMA, Deal, RejectionReason
from solewatch.schemas.source import SelectorConfig, SourceDefinition

__all__ = [
    # Common
    "ApiResponse",
    "HealthCheckResponse",
    # Deal
    "Deal",
    "DEAL_JSON_SCHEMA",
    "RejectionReason",
    # Alert
    "Alert",
    "AlertCreateRequest",
    "AlertListResponse",
    "AlertManageRequest",
    "parse_timestamp",
    "to_number",
    # Catalog
    "CatalogDocument",
    "CatalogStats",
    "SourceStats",
    # Sources
    "SelectorConfig",
    "SourceDefinition",
]
