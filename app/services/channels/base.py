"""
Uniform contract for notification channel senders.

A sender never raises out of send(): provider failures and missing
credentials both come back as a failed ChannelSendResult so the
dispatcher's retry bookkeeping treats them the same way.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

import httpx

from app.infrastructure.observability.logging import get_logger
from app.models.domain.notification_domain import Channel, ChannelSendResult, NotificationPayload

logger = get_logger(__name__)


class ChannelSendError(Exception):
    """A single delivery attempt on one channel failed."""

    def __init__(self, message: str, channel: Channel, status_code: int | None = None):
        super().__init__(message)
        self.channel = channel
        self.status_code = status_code


@runtime_checkable
class ChannelSender(Protocol):
    channel: Channel

    def is_enabled(self) -> bool: ...

    async def send(self, destination: str, payload: NotificationPayload) -> ChannelSendResult: ...

    async def health_check(self) -> bool: ...


class HttpChannelSender:
    """
    Shared send() flow for HTTP-based providers.

    Subclasses set `channel` and implement is_enabled() and _deliver(),
    which returns the provider message id or raises ChannelSendError.
    """

    channel: Channel

    def __init__(self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self._transport = transport

    def is_enabled(self) -> bool:
        raise NotImplementedError

    async def _deliver(self, destination: str, payload: NotificationPayload) -> str | None:
        raise NotImplementedError

    async def send(self, destination: str, payload: NotificationPayload) -> ChannelSendResult:
        return await self._attempt(payload.user_id, lambda: self._deliver(destination, payload))

    async def health_check(self) -> bool:
        # Providers expose no cheap probe endpoint; configured means healthy
        return self.is_enabled()

    async def _attempt(
        self, user_id: str, deliver: Callable[[], Awaitable[str | None]]
    ) -> ChannelSendResult:
        """Run one delivery and fold every failure mode into a result."""
        if not self.is_enabled():
            logger.warning(
                "Channel not configured, skipping send",
                channel=self.channel.value,
                user_id=user_id,
            )
            return ChannelSendResult(
                success=False,
                channel=self.channel,
                error=f"{self.channel.value} channel not configured",
            )

        try:
            message_id = await deliver()

        except ChannelSendError as e:
            logger.error(
                "Channel send failed",
                channel=self.channel.value,
                user_id=user_id,
                status_code=e.status_code,
                error=str(e),
            )
            return ChannelSendResult(success=False, channel=self.channel, error=str(e))

        except httpx.HTTPError as e:
            logger.error(
                "Channel send failed",
                channel=self.channel.value,
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ChannelSendResult(
                success=False, channel=self.channel, error=f"{type(e).__name__}: {e}"
            )

        logger.info(
            "Channel send succeeded",
            channel=self.channel.value,
            user_id=user_id,
            message_id=message_id,
        )
        return ChannelSendResult(success=True, channel=self.channel, message_id=message_id)

    async def _post_json(
        self, url: str, body: dict[str, Any], headers: dict[str, str]
    ) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(url, json=body, headers=headers)

        if not response.is_success:
            raise ChannelSendError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                channel=self.channel,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
