# app/models/api/admin_response.py
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.domain.notification_domain import (
    Channel,
    ChannelDeliveryStatus,
    Notification,
    NotificationStatus,
    NotificationType,
)


class NotificationRetryResponse(BaseModel):
    """Response for POST /admin/notifications/{id}/retry"""

    id: str
    user_id: str
    contest_id: str | None = None
    type: NotificationType
    status: NotificationStatus
    channels: list[Channel] = Field(default_factory=list)
    delivery_status: list[ChannelDeliveryStatus] = Field(default_factory=list)
    retry_count: int
    next_retry_at: datetime | None = None
    error: str | None = None

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationRetryResponse":
        return cls(
            id=notification.id,
            user_id=notification.user_id,
            contest_id=notification.contest_id,
            type=notification.type,
            status=notification.status,
            channels=notification.channels,
            delivery_status=notification.delivery_status,
            retry_count=notification.retry_count,
            next_retry_at=notification.next_retry_at,
            error=notification.error,
        )
