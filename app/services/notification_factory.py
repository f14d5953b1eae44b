"""Construction of contest reminder payloads and PENDING notification records."""

from collections.abc import Iterable
from datetime import datetime, timedelta

from app.models.domain.contest_domain import Contest
from app.models.domain.notification_domain import (
    CHANNEL_ORDER,
    Channel,
    ChannelDeliveryStatus,
    Notification,
    NotificationPayload,
    NotificationType,
)
from app.models.domain.user_domain import UserPreference
from app.services.channels.templates import reminder_message, reminder_title


def build_payload(user_id: str, contest: Contest, now: datetime) -> NotificationPayload:
    return NotificationPayload(
        user_id=user_id,
        contest_id=contest.id,
        contest_name=contest.name,
        platform=contest.platform.value,
        start_time=contest.start_time,
        hours_until_start=max(contest.hours_until_start(now), 0),
        website_url=contest.website_url,
    )


def refresh_payload(payload: NotificationPayload, now: datetime) -> NotificationPayload:
    """Same content with the countdown recomputed for a later attempt."""
    hours = round((payload.start_time - now).total_seconds() / 3600)
    return payload.model_copy(update={"hours_until_start": max(hours, 0)})


def build_notification(
    user: UserPreference,
    contest: Contest,
    type: NotificationType,
    channels: Iterable[Channel],
    now: datetime,
    max_retries: int,
    retention_days: int,
) -> Notification:
    payload = build_payload(user.user_id, contest, now)
    ordered = sorted(set(channels), key=CHANNEL_ORDER.index)

    return Notification(
        user_id=user.user_id,
        contest_id=contest.id,
        type=type,
        title=reminder_title(payload),
        message=reminder_message(payload),
        payload=payload.model_dump(mode="json"),
        channels=ordered,
        delivery_status=[ChannelDeliveryStatus(channel=channel) for channel in ordered],
        max_retries=max_retries,
        scheduled_at=now,
        expires_at=now + timedelta(days=retention_days),
        created_at=now,
        updated_at=now,
    )
