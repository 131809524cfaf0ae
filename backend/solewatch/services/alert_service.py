"""Alert lifecycle service: create, list, cancel, update and remove alerts."""

import re
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

import structlog

from solewatch.config import settings
from solewatch.core.exceptions import (
    AlertLimitExceededError,
    AlertNotFoundError,
    AlertValidationError,
    InvalidAlertStateError,
)
from solewatch.schemas.alert import EPOCH, Alert
from solewatch.storage.repositories import AlertRepository

logger = structlog.get_logger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
MAX_FIELD_LENGTH = 100


def sanitize_input(value: Any) -> str:
    """Strip markup characters and the word "script", trim, cap length."""
    text = re.sub(r"[<>'\"]", "", str(value or ""))
    text = re.sub(r"script", "", text, flags=re.IGNORECASE)
    return text.strip()[:MAX_FIELD_LENGTH]


def parse_target_price(value: Any) -> Optional[int]:
    """Whole-dollar target price from a form value ("120", 120.0, "99 dollars")."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value == value and abs(value) != float("inf") else None
    match = re.match(r"\s*(\d+)", str(value))
    return int(match.group(1)) if match else None


def generate_alert_id(now_ms: Optional[int] = None) -> str:
    ms = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"alert_{ms}_{suffix}"


@dataclass
class AlertCreated:
    """A newly stored alert and every non-cancelled alert of the same email."""

    alert: Alert
    user_alerts: List[Alert]


class AlertService:
    """Service for managing price alerts.

    All mutations run inside ``AlertRepository.transaction()``, so each one
    is a single read-modify-write of the alerts document.
    """

    def __init__(
        self,
        repository: AlertRepository,
        ttl_days: int = settings.ALERT_TTL_DAYS,
        max_active: int = settings.ALERT_MAX_ACTIVE_PER_EMAIL,
    ):
        self.repository = repository
        self.ttl_days = ttl_days
        self.max_active = max_active
        self.logger = logger.bind(service="alert_service")

    async def create_alert(
        self,
        email: str,
        brand: str,
        model: str,
        target_price: Any,
        gender: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AlertCreated:
        """Validate input and store a new alert.

        Raises:
            AlertValidationError: If email, brand, model or price is invalid
            AlertLimitExceededError: If the email already has the maximum
                number of active alerts
        """
        if not email or "@" not in str(email):
            raise AlertValidationError("Valid email address is required")
        if not brand or not model:
            raise AlertValidationError("Brand and model are required")
        price = parse_target_price(target_price)
        if not price or price <= 0:
            raise AlertValidationError("Valid target price is required")

        clean_email = sanitize_input(email).lower()
        clean_brand = sanitize_input(brand)
        clean_model = sanitize_input(model)
        if not clean_brand or not clean_model:
            raise AlertValidationError("Brand and model are required")

        now = now or datetime.now(timezone.utc)

        async with self.repository.transaction() as alerts:
            active = [
                a for a in alerts
                if a.email == clean_email and a.is_active(now, self.ttl_days)
            ]
            if len(active) >= self.max_active:
                self.logger.info(
                    "alert_limit_reached",
                    email=clean_email,
                    active=len(active),
                )
                raise AlertLimitExceededError(self.max_active, len(active))

            alert = Alert(
                id=generate_alert_id(int(now.timestamp() * 1000)),
                email=clean_email,
                brand=clean_brand,
                model=clean_model,
                gender=sanitize_input(gender) or "both",
                target_price=price,
                set_at=now,
            )
            alerts.append(alert)
            user_alerts = [
                a for a in alerts if a.email == clean_email and a.cancelled_at is None
            ]

        self.logger.info(
            "alert_created",
            alert_id=alert.id,
            brand=alert.brand,
            model=alert.model,
            target_price=price,
        )
        return AlertCreated(alert=alert, user_alerts=user_alerts)

    async def list_alerts(self, email: str) -> List[Alert]:
        """All alerts of an email, newest first."""
        clean_email = str(email or "").strip().lower()
        alerts = await self.repository.load()
        mine = [a for a in alerts if a.email == clean_email]
        mine.sort(key=lambda a: a.set_at or EPOCH, reverse=True)
        return mine

    async def cancel_alert(
        self, email: str, alert_id: str, now: Optional[datetime] = None
    ) -> Alert:
        """Cancel an alert permanently.

        Raises:
            AlertNotFoundError: If the alert does not exist for this email
            InvalidAlertStateError: If the alert is already cancelled
        """
        now = now or datetime.now(timezone.utc)
        async with self.repository.transaction() as alerts:
            index = self._find(alerts, email, alert_id)
            alert = alerts[index]
            if alert.cancelled_at is not None:
                raise InvalidAlertStateError("Alert is already cancelled")
            alerts[index] = alert.model_copy(update={"cancelled_at": now})

        self.logger.info("alert_cancelled", alert_id=alert_id)
        return alerts[index]

    async def update_target_price(
        self,
        email: str,
        alert_id: str,
        target_price: Any,
        now: Optional[datetime] = None,
    ) -> Alert:
        """Change the target price and restart the alert's 30-day window.

        Raises:
            AlertValidationError: If the price is invalid
            AlertNotFoundError: If the alert does not exist for this email
            InvalidAlertStateError: If the alert is cancelled or expired
        """
        price = parse_target_price(target_price)
        if not price or price <= 0:
            raise AlertValidationError("Valid target price is required")

        now = now or datetime.now(timezone.utc)
        async with self.repository.transaction() as alerts:
            index = self._find(alerts, email, alert_id)
            alert = alerts[index]
            if alert.cancelled_at is not None:
                raise InvalidAlertStateError("Cannot update a cancelled alert")
            if alert.is_expired(now, self.ttl_days):
                raise InvalidAlertStateError("Cannot update an expired alert")
            alerts[index] = alert.model_copy(
                update={"target_price": price, "set_at": now, "last_notified_at": None}
            )

        self.logger.info("alert_updated", alert_id=alert_id, target_price=price)
        return alerts[index]

    async def remove_alert(
        self, email: str, alert_id: str, now: Optional[datetime] = None
    ) -> None:
        """Delete an inactive alert.

        Raises:
            AlertNotFoundError: If the alert does not exist for this email
            InvalidAlertStateError: If the alert is still active
        """
        now = now or datetime.now(timezone.utc)
        async with self.repository.transaction() as alerts:
            index = self._find(alerts, email, alert_id)
            if alerts[index].is_active(now, self.ttl_days):
                raise InvalidAlertStateError(
                    "Can only remove inactive (cancelled or expired) alerts"
                )
            del alerts[index]

        self.logger.info("alert_removed", alert_id=alert_id)

    async def record_notifications(
        self,
        alert_ids: Iterable[str],
        now: datetime,
        snapshot: Optional[Iterable[Alert]] = None,
    ) -> int:
        """Set ``lastNotifiedAt`` for many alerts in one write.

        Args:
            alert_ids: Alerts whose notification email was delivered
            now: Notification time
            snapshot: Alerts as they were when matching ran. An alert whose
                ``setAt`` has changed since then was re-armed and is left alone.

        Returns:
            Number of alerts updated
        """
        wanted = set(alert_ids)
        if not wanted:
            return 0

        seen_set_at = {a.id: a.set_at for a in snapshot} if snapshot is not None else None
        updated = 0
        skipped = 0
        async with self.repository.transaction() as alerts:
            for index, alert in enumerate(alerts):
                if alert.id not in wanted:
                    continue
                if seen_set_at is not None and seen_set_at.get(alert.id) != alert.set_at:
                    skipped += 1
                    continue
                alerts[index] = alert.model_copy(update={"last_notified_at": now})
                updated += 1

        self.logger.info("notifications_recorded", updated=updated, skipped_rearmed=skipped)
        return updated

    @staticmethod
    def _find(alerts: List[Alert], email: str, alert_id: str) -> int:
        clean_email = str(email or "").strip().lower()
        for index, alert in enumerate(alerts):
            if alert.id == alert_id and alert.email == clean_email:
                return index
        raise AlertNotFoundError(alert_id)
