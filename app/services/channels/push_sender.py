"""Push delivery through Firebase Cloud Messaging (legacy HTTP API)."""

import httpx

from app.config import settings
from app.models.domain.notification_domain import Channel, NotificationPayload
from app.services.channels.base import ChannelSendError, HttpChannelSender
from app.services.channels.templates import format_push_notification

FCM_SEND_URL = "https://fcm.googleapis.com/fcm/send"


class PushSender(HttpChannelSender):
    channel = Channel.PUSH

    def __init__(
        self,
        server_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout or settings.NOTIFICATION_SEND_TIMEOUT_SECONDS, transport)
        self.server_key = server_key if server_key is not None else settings.FIREBASE_SERVER_KEY

    def is_enabled(self) -> bool:
        return bool(self.server_key)

    async def _deliver(self, destination: str, payload: NotificationPayload) -> str | None:
        data = await self._post_json(
            FCM_SEND_URL,
            {"to": destination, **format_push_notification(payload)},
            {"Authorization": f"key={self.server_key}"},
        )

        if not data:
            raise ChannelSendError("FCM returned an unexpected response body", channel=self.channel)

        # FCM answers 200 even for rejected tokens
        results = data.get("results") or [{}]
        if data.get("failure"):
            raise ChannelSendError(
                f"FCM rejected message: {results[0].get('error', 'unknown error')}",
                channel=self.channel,
            )
        return results[0].get("message_id")
