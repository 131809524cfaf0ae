"""Alert notification delivery.

Runs the matcher over the current catalog, emails each matched alert, and
records ``lastNotifiedAt`` only for the alerts whose email was accepted by
the provider.
"""

import asyncio
import html
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Union
from urllib.parse import quote

import structlog

from solewatch.config import settings
from solewatch.core.exceptions import ConfigurationError, DeliveryError
from solewatch.core.tokens import create_manage_token
from solewatch.schemas.alert import Alert
from solewatch.schemas.deal import Deal
from solewatch.services.alert_matcher import AlertMatcher, NotificationEvent
from solewatch.services.alert_service import AlertService
from solewatch.services.mailer import EmailMessage, Mailer
from solewatch.storage.repositories import CatalogRepository

logger = structlog.get_logger(__name__)

MANAGE_PAGE_PATH = "/pages/cancel_alert.html"


@dataclass(frozen=True)
class NotificationDelivered:
    alert_id: str
    email: str
    deal_count: int


@dataclass(frozen=True)
class NotificationFailed:
    alert_id: str
    email: str
    error: str


NotificationOutcome = Union[NotificationDelivered, NotificationFailed]


@dataclass
class AlertCheckSummary:
    """Counts reported by one alert-check run."""

    checked: int = 0
    matched: int = 0
    sent: int = 0
    failed: int = 0
    skipped_cooldown: int = 0
    outcomes: List[NotificationOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "matched": self.matched,
            "sent": self.sent,
            "failed": self.failed,
            "skippedCooldown": self.skipped_cooldown,
        }


@dataclass(frozen=True)
class ConfirmationOutcome:
    alert_id: str
    sent: bool
    error: Optional[str] = None


def _money(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else ""


def _safe_url(url: Optional[str]) -> str:
    url = (url or "").strip()
    return url if url.lower().startswith(("http://", "https://")) else ""


def format_active_text(days_left: int) -> str:
    if days_left > 0:
        return f"for the next {days_left} day{'' if days_left == 1 else 's'}"
    return "until the end of today"


def render_deal_row(deal: Deal) -> str:
    esc = html.escape
    if deal.is_range:
        price = (
            f"<strong>${_money(deal.sale_price_low)} - ${_money(deal.sale_price_high)}</strong> "
            f"<s>${_money(deal.original_price_high)}</s>"
        )
    else:
        price = (
            f"<strong>${_money(deal.sale_price)}</strong> "
            f"<s>${_money(deal.original_price)}</s>"
        )
    link = _safe_url(deal.listing_url)
    name = f"{esc(deal.brand)} {esc(deal.model)}"
    if link:
        name = f'<a href="{esc(link)}">{name}</a>'
    return f"<li>{name} at {esc(deal.store)}: {price}</li>"


def render_match_email(event: NotificationEvent, manage_url: str) -> str:
    alert = event.alert
    esc = html.escape
    rows = "\n".join(render_deal_row(deal) for deal in event.matching_deals)
    more = ""
    if event.total_matches > len(event.matching_deals):
        more = f"<p>Showing the {len(event.matching_deals)} lowest prices of {event.total_matches} matches.</p>"
    return (
        f"<h2>Deals found: {esc(alert.brand)} {esc(alert.model)}</h2>\n"
        f"<p>These deals are at or below your target of ${esc(str(alert.target_price))}.</p>\n"
        f"<ul>\n{rows}\n</ul>\n{more}"
        f"<p>Your alert stays active {format_active_text(event.days_remaining)}.</p>\n"
        f'<p><a href="{esc(manage_url)}">Manage your alerts</a></p>'
    )


def render_confirmation_email(alert: Alert, manage_url: str) -> str:
    esc = html.escape
    return (
        f"<h2>Alert confirmed: {esc(alert.brand)} {esc(alert.model)}</h2>\n"
        f"<p>We'll email you when we find it at or below ${esc(str(alert.target_price))}.</p>\n"
        f"<p>Alerts stay active for {settings.ALERT_TTL_DAYS} days.</p>\n"
        f'<p><a href="{esc(manage_url)}">Manage your alerts</a></p>'
    )


class NotificationService:
    """Service that emails alert matches and alert confirmations."""

    def __init__(
        self,
        catalog: CatalogRepository,
        alert_service: AlertService,
        mailer: Optional[Mailer],
        matcher: Optional[AlertMatcher] = None,
        sender: Optional[str] = None,
        link_secret: Optional[str] = None,
        site_base_url: Optional[str] = None,
    ):
        self.catalog = catalog
        self.alert_service = alert_service
        self.mailer = mailer
        self.matcher = matcher or AlertMatcher()
        self.sender = sender if sender is not None else settings.get_sender_email()
        self.link_secret = link_secret if link_secret is not None else settings.ALERTS_LINK_SECRET
        self.site_base_url = (site_base_url or settings.SITE_BASE_URL).rstrip("/")
        self.logger = logger.bind(service="notification_service")
        self._run_lock = asyncio.Lock()

    def build_manage_url(self, email: str) -> str:
        """Signed manage link, or the bare page when no secret is set."""
        base = f"{self.site_base_url}{MANAGE_PAGE_PATH}"
        try:
            token = create_manage_token(
                email, self.link_secret, ttl_days=settings.MANAGE_LINK_TTL_DAYS
            )
        except ConfigurationError as e:
            self.logger.warning("manage_token_unavailable", error=str(e))
            return base
        return f"{base}?t={quote(token, safe='')}"

    async def run_alert_check(self, now: Optional[datetime] = None) -> AlertCheckSummary:
        """Match alerts against the catalog and send notification emails.

        Raises:
            CatalogNotFoundError: If no catalog document exists
            ConfigurationError: If matches exist but no mailer is configured
        """
        now = now or datetime.now(timezone.utc)
        async with self._run_lock:
            return await self._check_alerts(now)

    async def _check_alerts(self, now: datetime) -> AlertCheckSummary:
        deals = await self.catalog.load_deals()
        alerts = await self.alert_service.repository.load()

        self.logger.info("alert_check_started", deals=len(deals), alerts=len(alerts))
        match = self.matcher.match(deals, alerts, now)

        summary = AlertCheckSummary(
            checked=match.checked,
            matched=len(match.events),
            failed=match.failed,
            skipped_cooldown=match.skipped_cooldown,
        )
        if match.events and self.mailer is None:
            raise ConfigurationError("Missing SENDGRID_API_KEY")

        for event in match.events:
            outcome = await self._deliver(event)
            summary.outcomes.append(outcome)
            if isinstance(outcome, NotificationDelivered):
                summary.sent += 1
            else:
                summary.failed += 1

        delivered_ids = [
            o.alert_id for o in summary.outcomes if isinstance(o, NotificationDelivered)
        ]
        if delivered_ids:
            await self.alert_service.record_notifications(delivered_ids, now, snapshot=alerts)

        self.logger.info("alert_check_completed", **summary.to_dict())
        return summary

    async def _deliver(self, event: NotificationEvent) -> NotificationOutcome:
        alert = event.alert
        count = len(event.matching_deals)
        message = EmailMessage(
            to=alert.email,
            sender=self.sender,
            subject=f"{event.total_matches} Deal{'' if event.total_matches == 1 else 's'} Found: "
            f"{alert.brand} {alert.model}".strip(),
            html=render_match_email(event, self.build_manage_url(alert.email)),
        )
        try:
            await self.mailer.send(message)
        except DeliveryError as e:
            self.logger.error("alert_email_failed", alert_id=alert.id, error=str(e))
            return NotificationFailed(alert_id=alert.id, email=alert.email, error=str(e))

        self.logger.info("alert_email_sent", alert_id=alert.id, deals=count)
        return NotificationDelivered(alert_id=alert.id, email=alert.email, deal_count=count)

    async def send_confirmation(self, alert: Alert, manage_url: Optional[str] = None) -> ConfirmationOutcome:
        """Best-effort confirmation email; never raises for delivery problems."""
        if self.mailer is None:
            return ConfirmationOutcome(alert_id=alert.id, sent=False, error="no mailer configured")

        message = EmailMessage(
            to=alert.email,
            sender=self.sender,
            subject=f"Alert Confirmed: {alert.brand} {alert.model}",
            html=render_confirmation_email(alert, manage_url or self.build_manage_url(alert.email)),
        )
        try:
            await self.mailer.send(message)
        except DeliveryError as e:
            self.logger.error("confirmation_email_failed", alert_id=alert.id, error=str(e))
            return ConfirmationOutcome(alert_id=alert.id, sent=False, error=str(e))
        return ConfirmationOutcome(alert_id=alert.id, sent=True)
