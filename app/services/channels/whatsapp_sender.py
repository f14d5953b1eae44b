"""WhatsApp delivery through the WhatsApp Business Cloud API."""

import httpx

from app.config import settings
from app.models.domain.notification_domain import Channel, NotificationPayload
from app.services.channels.base import HttpChannelSender
from app.services.channels.templates import format_whatsapp_message

WHATSAPP_MESSAGES_URL = "https://graph.facebook.com/v18.0/{phone_id}/messages"


class WhatsAppSender(HttpChannelSender):
    channel = Channel.WHATSAPP

    def __init__(
        self,
        api_key: str | None = None,
        phone_id: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout or settings.NOTIFICATION_SEND_TIMEOUT_SECONDS, transport)
        self.api_key = api_key if api_key is not None else settings.WHATSAPP_API_KEY
        self.phone_id = phone_id if phone_id is not None else settings.WHATSAPP_PHONE_ID

    def is_enabled(self) -> bool:
        return bool(self.api_key and self.phone_id)

    async def _deliver(self, destination: str, payload: NotificationPayload) -> str | None:
        data = await self._post_json(
            WHATSAPP_MESSAGES_URL.format(phone_id=self.phone_id),
            {
                "messaging_product": "whatsapp",
                "to": destination.lstrip("+"),
                "type": "text",
                "text": {"body": format_whatsapp_message(payload)},
            },
            {"Authorization": f"Bearer {self.api_key}"},
        )
        messages = data.get("messages") or []
        return messages[0].get("id") if messages else None
