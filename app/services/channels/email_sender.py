"""Email delivery through the Resend HTTP API."""

import httpx

from app.config import settings
from app.models.domain.notification_domain import Channel, ChannelSendResult, NotificationPayload
from app.services.channels.base import ChannelSendError, HttpChannelSender
from app.services.channels.templates import format_email_html, format_email_subject

RESEND_EMAILS_URL = "https://api.resend.com/emails"


class EmailSender(HttpChannelSender):
    channel = Channel.EMAIL

    def __init__(
        self,
        api_key: str | None = None,
        from_address: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout or settings.NOTIFICATION_SEND_TIMEOUT_SECONDS, transport)
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_address = from_address or settings.EMAIL_FROM

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    async def _deliver(self, destination: str, payload: NotificationPayload) -> str | None:
        return await self._send_email(
            destination, format_email_subject(payload), format_email_html(payload)
        )

    async def send_html(
        self, user_id: str, destination: str, subject: str, html: str
    ) -> ChannelSendResult:
        """Send a pre-rendered email (used for digests)."""
        return await self._attempt(user_id, lambda: self._send_email(destination, subject, html))

    async def _send_email(self, destination: str, subject: str, html: str) -> str | None:
        data = await self._post_json(
            RESEND_EMAILS_URL,
            {"from": self.from_address, "to": [destination], "subject": subject, "html": html},
            {"Authorization": f"Bearer {self.api_key}"},
        )
        if "id" not in data:
            raise ChannelSendError("Resend response missing message id", channel=self.channel)
        return data["id"]
