"""
Daily and weekly contest digests.

Users whose alert_frequency is daily or weekly get one email listing the
contests on their platforms starting within the digest horizon, instead of
one reminder per contest. Each digest is recorded as a notification with no
contest id. Digests are sent once; a failed digest is not retried.
"""

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel

from app.config import settings
from app.db.helpers import PersistenceError
from app.infrastructure.observability.logging import get_logger
from app.models.domain.contest_domain import ensure_utc
from app.models.domain.notification_domain import (
    Channel,
    ChannelDeliveryStatus,
    Notification,
    NotificationType,
)
from app.models.domain.user_domain import AlertFrequency
from app.repositories.contest_repository import ContestStore, contest_repository
from app.repositories.notification_repository import NotificationStore, notification_repository
from app.repositories.user_preference_repository import (
    UserPreferenceStore,
    user_preference_repository,
)
from app.services.channels.email_sender import EmailSender
from app.services.channels.templates import digest_subject, format_digest_html

logger = get_logger(__name__)

DIGEST_SETTINGS = {
    AlertFrequency.DAILY: (NotificationType.DAILY_DIGEST, timedelta(hours=24), timedelta(hours=20)),
    AlertFrequency.WEEKLY: (NotificationType.WEEKLY_DIGEST, timedelta(hours=168), timedelta(days=6)),
}


class DigestResult(BaseModel):
    frequency: AlertFrequency
    users: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0


class DigestService:
    def __init__(
        self,
        contest_store: ContestStore | None = None,
        notification_store: NotificationStore | None = None,
        user_store: UserPreferenceStore | None = None,
        email_sender: EmailSender | None = None,
    ):
        self.contest_store = contest_store or contest_repository
        self.notification_store = notification_store or notification_repository
        self.user_store = user_store or user_preference_repository
        self.email_sender = email_sender or EmailSender()

    async def send_digests(
        self, frequency: AlertFrequency, now: datetime | None = None
    ) -> DigestResult:
        if frequency not in DIGEST_SETTINGS:
            raise ValueError(f"No digest for alert frequency {frequency.value}")

        now = ensure_utc(now or datetime.now(UTC))
        notification_type, horizon, min_gap = DIGEST_SETTINGS[frequency]
        result = DigestResult(frequency=frequency)

        if not self.email_sender.is_enabled():
            logger.warning("Email channel disabled, skipping digests", frequency=frequency.value)
            return result

        users = await self.user_store.list_by_frequency(frequency)
        contests = await self.contest_store.query_by_time_range(now, now + horizon)
        result.users = len(users)

        for user in users:
            user_contests = [c for c in contests if c.platform in user.platforms]
            if not user_contests or Channel.EMAIL not in user.deliverable_channels():
                result.skipped += 1
                continue

            try:
                if await self.notification_store.has_notification_since(
                    user.user_id, notification_type, now - min_gap
                ):
                    result.skipped += 1
                    continue

                subject = digest_subject(frequency.value, len(user_contests))
                notification = await self.notification_store.create_if_absent(
                    Notification(
                        user_id=user.user_id,
                        type=notification_type,
                        title=subject,
                        message=f"{len(user_contests)} upcoming contests on your platforms",
                        payload={
                            "frequency": frequency.value,
                            "contest_ids": [c.id for c in user_contests],
                        },
                        channels=[Channel.EMAIL],
                        delivery_status=[ChannelDeliveryStatus(channel=Channel.EMAIL)],
                        max_retries=1,
                        scheduled_at=now,
                        expires_at=now + timedelta(days=settings.NOTIFICATION_RETENTION_DAYS),
                        created_at=now,
                        updated_at=now,
                    )
                )
                if notification is None:
                    result.skipped += 1
                    continue

                send_result = await self.email_sender.send_html(
                    user.user_id,
                    user.email,
                    subject,
                    format_digest_html(user_contests, frequency.value, now),
                )
                notification.record_result(
                    send_result, now, settings.NOTIFICATION_RETRY_BASE_DELAY_SECONDS
                )
                await self.notification_store.save(notification)

            except PersistenceError as e:
                result.failed += 1
                logger.error("Digest persistence failed", user_id=user.user_id, error=str(e))
                continue

            if send_result.success:
                result.sent += 1
            else:
                result.failed += 1

        logger.info("Digests completed", **result.model_dump(mode="json"))
        return result


digest_service = DigestService()
