"""Email delivery for confirmation messages via SendGrid / Resend integration."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass
class MailMessage:
    to: str
    subject: str
    body: str
    is_html_body: bool = True
    bcc: Optional[str] = None


class EmailSender:
    """Sends transactional emails.

    Supports SendGrid and Resend via environment configuration.
    Falls back to logging if no provider is configured.
    """

    def __init__(
        self,
        provider: str = "",
        api_key: str = "",
        from_email: str = "demo@try-sites.local",
        from_name: str = "Try-Sites",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.provider = provider.lower()  # "sendgrid" or "resend"
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self._http_client = http_client

    async def send(self, message: MailMessage) -> bool:
        """Send a message; returns True when the provider accepted it."""
        if self.provider == "sendgrid":
            return await self._send_sendgrid(message)
        elif self.provider == "resend":
            return await self._send_resend(message)
        else:
            logger.info(
                "No email provider configured; message '%s' to %s not sent",
                message.subject,
                message.to,
            )
            return False

    async def _post(self, url: str, payload: dict) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self._http_client is not None:
            return await self._http_client.post(url, headers=headers, json=payload, timeout=30)
        async with httpx.AsyncClient() as client:
            return await client.post(url, headers=headers, json=payload, timeout=30)

    async def _send_sendgrid(self, message: MailMessage) -> bool:
        """Send via SendGrid v3 API."""
        personalization: dict = {"to": [{"email": message.to}]}
        if message.bcc:
            personalization["bcc"] = [{"email": message.bcc}]
        content_type = "text/html" if message.is_html_body else "text/plain"
        try:
            resp = await self._post(
                "https://api.sendgrid.com/v3/mail/send",
                {
                    "personalizations": [personalization],
                    "from": {"email": self.from_email, "name": self.from_name},
                    "subject": message.subject,
                    "content": [{"type": content_type, "value": message.body}],
                },
            )
            if resp.status_code in (200, 202):
                logger.info("SendGrid email sent to %s", message.to)
                return True
            logger.warning("SendGrid error: %s %s", resp.status_code, resp.text)
            return False
        except httpx.HTTPError:
            logger.exception("SendGrid send failed")
            return False

    async def _send_resend(self, message: MailMessage) -> bool:
        """Send via Resend API."""
        payload: dict = {
            "from": f"{self.from_name} <{self.from_email}>",
            "to": [message.to],
            "subject": message.subject,
        }
        payload["html" if message.is_html_body else "text"] = message.body
        if message.bcc:
            payload["bcc"] = [message.bcc]
        try:
            resp = await self._post("https://api.resend.com/emails", payload)
            if resp.status_code in (200, 201):
                logger.info("Resend email sent to %s", message.to)
                return True
            logger.warning("Resend error: %s %s", resp.status_code, resp.text)
            return False
        except httpx.HTTPError:
            logger.exception("Resend send failed")
            return False
