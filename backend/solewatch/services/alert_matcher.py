"""Alert matching: which alerts have deals worth emailing about today."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import structlog

from solewatch.config import settings
from solewatch.schemas.alert import Alert, to_number
from solewatch.schemas.deal import Deal

logger = structlog.get_logger(__name__)

_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")
_SQUASH_RE = re.compile(r"[^a-z0-9]")

# Squashed brand+model strings shorter than this are too vague to compare
MIN_SQUASHED_LENGTH = 4


def tokenize(text: Optional[str]) -> List[str]:
    """Lowercase alphanumeric tokens: "GT-2000 12" -> ["gt", "2000", "12"]."""
    return [t for t in _TOKEN_SPLIT_RE.split((text or "").lower()) if t]


def squash(text: Optional[str]) -> str:
    """Lowercase with everything but letters and digits removed."""
    return _SQUASH_RE.sub("", (text or "").lower())


def tokens_match(query_tokens: Sequence[str], target_tokens: Sequence[str]) -> bool:
    """True when any query token prefixes, or is prefixed by, a target token.

    An empty query matches everything.
    """
    if not query_tokens:
        return True
    for q in query_tokens:
        for t in target_tokens:
            if t.startswith(q) or q.startswith(t):
                return True
    return False


@dataclass
class NotificationEvent:
    """An alert that should be emailed, with the deals to show."""

    alert: Alert
    matching_deals: List[Deal]
    days_remaining: int
    total_matches: int


@dataclass
class MatchResult:
    events: List[NotificationEvent] = field(default_factory=list)
    checked: int = 0
    skipped_inactive: int = 0
    skipped_cooldown: int = 0
    failed: int = 0


class AlertMatcher:
    """Matches active alerts against a catalog snapshot.

    Matching is fuzzy on brand and model text, strict on price, and respects
    a per-alert cooldown so nobody is emailed twice in one day.
    """

    def __init__(
        self,
        ttl_days: int = settings.ALERT_TTL_DAYS,
        cooldown_hours: int = settings.ALERT_COOLDOWN_HOURS,
        top_n: int = settings.ALERT_EMAIL_TOP_N,
    ):
        self.ttl_days = ttl_days
        self.cooldown = timedelta(hours=cooldown_hours)
        self.top_n = top_n
        self.logger = logger.bind(service="alert_matcher")

    def match(self, catalog: Sequence[Deal], alerts: Sequence[Alert], now: datetime) -> MatchResult:
        """Find notification events for every active alert.

        Args:
            catalog: Deals from the current catalog
            alerts: All stored alerts, active or not
            now: Current time (aware)

        Returns:
            MatchResult; persisting ``lastNotifiedAt`` is the caller's job
        """
        result = MatchResult()

        for alert in alerts:
            try:
                if not alert.is_active(now, self.ttl_days):
                    result.skipped_inactive += 1
                    continue

                result.checked += 1
                if self.in_cooldown(alert, now):
                    result.skipped_cooldown += 1
                    continue

                matches = self.find_matching_deals(alert, catalog)
                if not matches:
                    continue

                matches.sort(key=lambda d: d.effective_sale_price)
                result.events.append(
                    NotificationEvent(
                        alert=alert,
                        matching_deals=matches[: self.top_n],
                        days_remaining=alert.days_remaining(now, self.ttl_days),
                        total_matches=len(matches),
                    )
                )
            except Exception as e:
                self.logger.error(
                    "alert_match_failed",
                    alert_id=getattr(alert, "id", None),
                    error=str(e),
                    exc_info=True,
                )
                result.failed += 1

        self.logger.info(
            "alert_matching_completed",
            checked=result.checked,
            matched=len(result.events),
            skipped_cooldown=result.skipped_cooldown,
            failed=result.failed,
        )
        return result

    def in_cooldown(self, alert: Alert, now: datetime) -> bool:
        if alert.last_notified_at is None:
            return False
        return now - alert.last_notified_at < self.cooldown

    def find_matching_deals(self, alert: Alert, catalog: Sequence[Deal]) -> List[Deal]:
        target = to_number(alert.target_price)
        if target is None:
            return []
        return [deal for deal in catalog if self.deal_matches(alert, deal, target)]

    @staticmethod
    def deal_matches(alert: Alert, deal: Deal, target: float) -> bool:
        price = deal.effective_sale_price
        if price is None or price > target:
            return False

        if not _gender_allows(alert.gender, deal.gender):
            return False

        if not tokens_match(tokenize(alert.brand), tokenize(deal.brand)):
            return False

        if tokens_match(tokenize(alert.model), tokenize(deal.model)):
            return True

        alert_key = squash(alert.brand + alert.model)
        deal_key = squash(deal.brand + deal.model)
        if len(alert_key) < MIN_SQUASHED_LENGTH or len(deal_key) < MIN_SQUASHED_LENGTH:
            return False
        return alert_key in deal_key or deal_key in alert_key


def _gender_allows(alert_gender: Optional[str], deal_gender: str) -> bool:
    """Only a deal labelled with the opposite gender is filtered out."""
    wanted = (alert_gender or "").lower()
    if wanted == "mens":
        return deal_gender != "womens"
    if wanted == "womens":
        return deal_gender != "mens"
    return True
