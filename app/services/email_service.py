"""
services/email_service.py
-------------------------
Outbound email through the Resend HTTP API.

Without RESEND_API_KEY the sender runs in MOCK mode: messages are logged
and reported as delivered, so local setups can exercise the review-request
flow end to end.

send() never raises for provider problems; callers get an EmailResult and
decide what a failed delivery means for them.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailSender:

    def __init__(
        self,
        api_key: str,
        api_url: str,
        sender: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._sender = sender
        self._timeout = timeout
        self._transport = transport
        if self.mock:
            logger.info("EmailSender in MOCK mode, set RESEND_API_KEY to deliver email")

    @property
    def mock(self) -> bool:
        return not self._api_key

    async def send(self, message: EmailMessage) -> EmailResult:
        if self.mock:
            logger.info("Mock email accepted", to=message.to, subject=message.subject)
            return EmailResult(success=True, message_id="mock")

        payload = {
            "from": self._sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
        except httpx.TimeoutException as exc:
            logger.error("Email provider timeout", to=message.to, error=str(exc))
            return EmailResult(success=False, error="timeout")
        except httpx.HTTPError as exc:
            logger.error("Email provider unreachable", to=message.to, error=str(exc))
            return EmailResult(success=False, error="connection_error")

        if response.status_code >= 400:
            logger.error(
                "Email provider rejected message",
                to=message.to,
                status_code=response.status_code,
                body=response.text[:500],
            )
            return EmailResult(success=False, error=f"http_{response.status_code}")

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        logger.info("Email sent", to=message.to, message_id=message_id)
        return EmailResult(success=True, message_id=message_id)


# Module singleton shared across requests
email_sender = EmailSender(
    api_key=settings.RESEND_API_KEY,
    api_url=settings.EMAIL_API_URL,
    sender=settings.EMAIL_FROM,
    timeout=settings.EMAIL_TIMEOUT_SECONDS,
)


def get_email_sender() -> EmailSender:
    """FastAPI dependency."""
    return email_sender
