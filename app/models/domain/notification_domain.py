"""
Notification domain model and per-channel delivery state machine.

Each channel on a notification moves through
    PENDING -> SENT
    PENDING -> RETRYING -> ... -> SENT | FAILED
and the notification's aggregate status is recomputed from its channels
after every attempt. A notification counts as SENT as soon as any channel
delivered; FAILED only when every attempted channel is terminally failed.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Channel(str, Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    PUSH = "push"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    RETRYING = "RETRYING"


class NotificationType(str, Enum):
    CONTEST_REMINDER = "CONTEST_REMINDER"
    CONTEST_STARTING = "CONTEST_STARTING"
    CONTEST_ENDING = "CONTEST_ENDING"
    DAILY_DIGEST = "DAILY_DIGEST"
    WEEKLY_DIGEST = "WEEKLY_DIGEST"
    SYSTEM_ALERT = "SYSTEM_ALERT"


CHANNEL_ORDER = list(Channel)


def retry_delay(base_delay_seconds: int, retry_count: int) -> timedelta:
    """Exponential backoff: base, 2*base, 4*base, ..."""
    return timedelta(seconds=base_delay_seconds * (2 ** max(retry_count - 1, 0)))


class ErrorHistoryEntry(BaseModel):
    timestamp: datetime
    error: str
    channel: Channel | None = None
    attempt: int = 1


class NotificationPayload(BaseModel):
    """Channel-agnostic message content built once per dispatch."""

    user_id: str
    contest_id: str | None = None
    contest_name: str
    platform: str
    start_time: datetime
    hours_until_start: int
    website_url: str | None = None


class ChannelSendResult(BaseModel):
    """Uniform result every channel sender returns."""

    success: bool
    channel: Channel
    message_id: str | None = None
    error: str | None = None


class ChannelDeliveryStatus(BaseModel):
    channel: Channel
    status: NotificationStatus = NotificationStatus.PENDING
    sent_at: datetime | None = None
    failed_at: datetime | None = None
    error: str | None = None
    retry_count: int = 0
    last_retry_at: datetime | None = None
    next_retry_at: datetime | None = None
    message_id: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status in (NotificationStatus.SENT, NotificationStatus.FAILED)

    def is_due(self, now: datetime) -> bool:
        return (
            self.status == NotificationStatus.RETRYING
            and self.next_retry_at is not None
            and self.next_retry_at <= now
        )

    def record_success(self, now: datetime, message_id: str | None = None) -> None:
        self.status = NotificationStatus.SENT
        self.sent_at = now
        self.message_id = message_id
        self.error = None
        self.next_retry_at = None

    def record_failure(
        self, now: datetime, error: str, max_retries: int, base_delay_seconds: int
    ) -> None:
        self.retry_count += 1
        self.failed_at = now
        self.error = error

        if self.retry_count < max_retries:
            self.status = NotificationStatus.RETRYING
            self.next_retry_at = now + retry_delay(base_delay_seconds, self.retry_count)
        else:
            self.status = NotificationStatus.FAILED
            self.next_retry_at = None


class Notification(BaseModel):
    id: str | None = None
    user_id: str
    contest_id: str | None = None
    type: NotificationType = NotificationType.CONTEST_REMINDER

    title: str = ""
    message: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)

    channels: list[Channel] = Field(default_factory=list)
    delivery_status: list[ChannelDeliveryStatus] = Field(default_factory=list)
    status: NotificationStatus = NotificationStatus.PENDING

    retry_count: int = 0
    max_retries: int = 3
    next_retry_at: datetime | None = None
    last_retry_at: datetime | None = None

    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    failed_at: datetime | None = None
    error: str | None = None
    error_history: list[ErrorHistoryEntry] = Field(default_factory=list)

    is_active: bool = True
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def successful_channels(self) -> list[Channel]:
        return [d.channel for d in self.delivery_status if d.status == NotificationStatus.SENT]

    @property
    def failed_channels(self) -> list[Channel]:
        return [d.channel for d in self.delivery_status if d.status == NotificationStatus.FAILED]

    def delivery_for(self, channel: Channel) -> ChannelDeliveryStatus:
        """Return the delivery entry for a channel, adding it on first attempt."""
        for delivery in self.delivery_status:
            if delivery.channel == channel:
                return delivery

        delivery = ChannelDeliveryStatus(channel=channel)
        self.delivery_status.append(delivery)
        self.delivery_status.sort(key=lambda d: CHANNEL_ORDER.index(d.channel))
        if channel not in self.channels:
            self.channels.append(channel)
            self.channels.sort(key=CHANNEL_ORDER.index)
        return delivery

    def pending_channels(self) -> list[Channel]:
        """Channels never attempted yet."""
        return [d.channel for d in self.delivery_status if d.status == NotificationStatus.PENDING]

    def due_channels(self, now: datetime) -> list[Channel]:
        """Channels whose scheduled retry time has arrived."""
        return [d.channel for d in self.delivery_status if d.is_due(now)]

    def unresolved_channels(self) -> list[Channel]:
        return [d.channel for d in self.delivery_status if not d.is_resolved]

    def record_result(
        self, result: ChannelSendResult, now: datetime, base_delay_seconds: int
    ) -> None:
        """Apply one channel attempt's outcome and refresh the aggregate state."""
        delivery = self.delivery_for(result.channel)

        if result.success:
            delivery.record_success(now, result.message_id)
        else:
            error = result.error or "Unknown error"
            delivery.record_failure(now, error, self.max_retries, base_delay_seconds)
            self.error_history.append(
                ErrorHistoryEntry(
                    timestamp=now,
                    error=error,
                    channel=result.channel,
                    attempt=delivery.retry_count,
                )
            )
            self.error = error

        self.recompute_status(now)

    def mark_undeliverable(self, now: datetime, reason: str) -> None:
        """Terminal failure for a notification that has no channel to try."""
        self.error_history.append(ErrorHistoryEntry(timestamp=now, error=reason))
        self.error = reason
        self.status = NotificationStatus.FAILED
        self.failed_at = now
        self.next_retry_at = None
        self.updated_at = now

    def recompute_status(self, now: datetime) -> NotificationStatus:
        statuses = {d.status for d in self.delivery_status}

        if NotificationStatus.SENT in statuses:
            self.status = NotificationStatus.SENT
            if self.sent_at is None:
                self.sent_at = min(d.sent_at for d in self.delivery_status if d.sent_at)
        elif NotificationStatus.RETRYING in statuses:
            self.status = NotificationStatus.RETRYING
        elif statuses == {NotificationStatus.FAILED}:
            self.status = NotificationStatus.FAILED
            self.failed_at = now
        else:
            self.status = NotificationStatus.PENDING

        retry_times = [
            d.next_retry_at
            for d in self.delivery_status
            if d.status == NotificationStatus.RETRYING and d.next_retry_at
        ]
        self.next_retry_at = min(retry_times) if retry_times else None
        self.updated_at = now
        return self.status
