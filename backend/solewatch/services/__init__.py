"""Services module for business logic.

Deal normalization, the merge engine, alert matching and the alert,
notification and catalog services built on top of them.
"""

from solewatch.services.alert_matcher import AlertMatcher, MatchResult, NotificationEvent
from solewatch.services.alert_service import AlertCreated, AlertService
from solewatch.services.catalog_service import CatalogService
from solewatch.services.deal_normalizer import DealNormalizer, NormalizationResult
from solewatch.services.merge_service import MergeEngine, MergeResult, SourceResult
from solewatch.services.notification_service import AlertCheckSummary, NotificationService

__all__ = [
    "AlertMatcher",
    "MatchResult",
    "NotificationEvent",
    "AlertCreated",
    "AlertService",
    "CatalogService",
    "DealNormalizer",
    "NormalizationResult",
    "MergeEngine",
    "MergeResult",
    "SourceResult",
    "AlertCheckSummary",
    "NotificationService",
]
