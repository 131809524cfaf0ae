"""Outbound email delivery."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from solewatch.config import settings
from solewatch.core.exceptions import ConfigurationError, DeliveryError
from solewatch.scrapers.utils.retry import delivery_retry

logger = structlog.get_logger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


@dataclass(frozen=True)
class EmailMessage:
    to: str
    sender: str
    subject: str
    html: str


class Mailer(ABC):
    """Email delivery provider."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> None:
        """Hand a message to the provider.

        Raises:
            DeliveryError: If the provider did not accept the message
        """

    async def close(self) -> None:
        """Release provider resources."""


class SendGridMailer(Mailer):
    """Mailer speaking the SendGrid v3 HTTP API."""

    def __init__(self, api_key: str, http_client: Optional[httpx.AsyncClient] = None):
        if not api_key:
            raise ConfigurationError("Missing SENDGRID_API_KEY")
        self.api_key = api_key
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT_SECONDS
        )

    async def send(self, message: EmailMessage) -> None:
        if not message.sender:
            raise DeliveryError(message.to, "no sender address configured")
        try:
            await self._post(message)
        except httpx.HTTPError as e:
            logger.warning("sendgrid_send_failed", to=message.to, error=str(e))
            raise DeliveryError(message.to, str(e)) from e
        logger.info("email_sent", to=message.to, subject=message.subject)

    @delivery_retry
    async def _post(self, message: EmailMessage) -> None:
        payload = {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": message.sender},
            "subject": message.subject,
            "content": [{"type": "text/html", "value": message.html}],
        }
        response = await self.http_client.post(
            SENDGRID_SEND_URL,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        response.raise_for_status()

    async def close(self) -> None:
        await self.http_client.aclose()
