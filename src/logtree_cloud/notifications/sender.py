"""Email and SMS delivery for rule alerts and usage warnings.

Delivery is fire-and-forget from the caller's point of view: every send
returns ``True`` on success and ``False`` on failure, and never raises.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from logtree_cloud.config import settings

logger = logging.getLogger(__name__)

SENDGRID_MAIL_URL = "https://api.sendgrid.com/v3/mail/send"
TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class Notifier(Protocol):
    async def send_email(self, to: str, subject: str, text: str) -> bool: ...

    async def send_sms(self, to: str, body: str) -> bool: ...


def _format_sendgrid_mail(to: str, subject: str, text: str) -> dict[str, Any]:
    return {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": settings.sendgrid_from_email, "name": "Logtree"},
        "subject": subject,
        "content": [{"type": "text/plain", "value": text}],
    }


class HttpNotifier:
    """Sends email through SendGrid and SMS through Twilio."""

    def __init__(
        self,
        timeout: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout or settings.notification_timeout_seconds
        self._transport = transport

    async def _post(self, url: str, **kwargs: Any) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, **kwargs)
                if resp.is_success:
                    logger.info("Notification delivered via %s (status=%d)", url, resp.status_code)
                    return True
                logger.warning(
                    "Notification delivery failed via %s (status=%d body=%s)",
                    url,
                    resp.status_code,
                    resp.text[:200],
                )
                return False
        except Exception:
            logger.exception("Notification delivery error via %s", url)
            return False

    async def send_email(self, to: str, subject: str, text: str) -> bool:
        if not settings.sendgrid_api_key:
            logger.warning("SendGrid is not configured, dropping email to %s", to)
            return False
        return await self._post(
            SENDGRID_MAIL_URL,
            json=_format_sendgrid_mail(to, subject, text),
            headers={"Authorization": f"Bearer {settings.sendgrid_api_key}"},
        )

    async def send_sms(self, to: str, body: str) -> bool:
        if not settings.twilio_account_sid:
            logger.warning("Twilio is not configured, dropping SMS to %s", to)
            return False
        return await self._post(
            TWILIO_MESSAGES_URL.format(sid=settings.twilio_account_sid),
            data={"To": to, "From": settings.twilio_from_phone_number, "Body": body},
            auth=(settings.twilio_account_sid, settings.twilio_auth_token),
        )
