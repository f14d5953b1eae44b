"""
Multi-channel notification dispatch.

Every channel on a notification is attempted independently and
concurrently; a failing or raising sender only affects its own channel's
delivery entry. Failed channels are rescheduled with exponential backoff
until max_retries, then marked FAILED. The retry sweep resends channels
whose next_retry_at has passed and resumes reminders an interrupted
delivery left PENDING; a manual dispatch by id resends every channel that
has not been delivered yet.
"""

import asyncio
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ValidationError

from app.config import settings
from app.db.helpers import PersistenceError
from app.infrastructure.observability.logging import get_logger, log_notification_outcome
from app.models.domain.contest_domain import Contest, ensure_utc
from app.models.domain.notification_domain import (
    Channel,
    ChannelSendResult,
    Notification,
    NotificationPayload,
    NotificationStatus,
    NotificationType,
)
from app.models.domain.user_domain import UserPreference
from app.repositories.notification_repository import NotificationStore, notification_repository
from app.repositories.user_preference_repository import (
    UserPreferenceStore,
    user_preference_repository,
)
from app.services.channels.base import ChannelSender
from app.services.channels.registry import build_channel_senders
from app.services.notification_factory import build_notification, refresh_payload

logger = get_logger(__name__)


class NotificationNotFoundError(Exception):
    def __init__(self, notification_id: str):
        super().__init__(f"Notification {notification_id} not found")
        self.notification_id = notification_id


class NotificationConflictError(Exception):
    """A newer live notification supersedes the one a manual retry targeted."""

    def __init__(self, notification_id: str, live_id: str | None):
        super().__init__(
            f"Notification {notification_id} is superseded by live notification {live_id}"
        )
        self.notification_id = notification_id
        self.live_id = live_id


class RetrySweepResult(BaseModel):
    skipped: bool = False
    processed: int = 0
    resumed: int = 0
    sent: int = 0
    retrying: int = 0
    failed: int = 0
    errors: int = 0


class NotificationDispatcher:
    def __init__(
        self,
        notification_store: NotificationStore | None = None,
        user_store: UserPreferenceStore | None = None,
        senders: dict[Channel, ChannelSender] | None = None,
        max_retries: int | None = None,
        retry_base_delay_seconds: int | None = None,
        send_timeout_seconds: float | None = None,
        pending_grace_minutes: int | None = None,
    ):
        self.notification_store = notification_store or notification_repository
        self.user_store = user_store or user_preference_repository
        self.senders = senders if senders is not None else build_channel_senders()
        self.max_retries = max_retries or settings.NOTIFICATION_MAX_RETRIES
        self.retry_base_delay_seconds = (
            retry_base_delay_seconds or settings.NOTIFICATION_RETRY_BASE_DELAY_SECONDS
        )
        self.send_timeout_seconds = send_timeout_seconds or settings.NOTIFICATION_SEND_TIMEOUT_SECONDS
        self.pending_grace = timedelta(
            minutes=pending_grace_minutes or settings.NOTIFICATION_PENDING_GRACE_MINUTES
        )
        self.is_running = False

    def channels_for(self, user: UserPreference) -> set[Channel]:
        available = {c for c, sender in self.senders.items() if sender.is_enabled()}
        return user.deliverable_channels() & available

    async def dispatch(
        self,
        user: UserPreference,
        contest: Contest,
        type: NotificationType = NotificationType.CONTEST_REMINDER,
        now: datetime | None = None,
    ) -> Notification:
        """
        Create the notification for (user, contest, type) or resume the live
        one, then attempt every channel that is new or due for retry.
        """
        now = ensure_utc(now or datetime.now(UTC))

        notification = await self.notification_store.find_live(user.user_id, contest.id, type)
        if notification is None:
            candidate = build_notification(
                user,
                contest,
                type,
                self.channels_for(user),
                now,
                max_retries=self.max_retries,
                retention_days=settings.NOTIFICATION_RETENTION_DAYS,
            )
            notification = await self.notification_store.create_if_absent(candidate)
            if notification is None:
                # Lost a race with a concurrent creator
                notification = await self.notification_store.find_live(
                    user.user_id, contest.id, type
                )
            if notification is None:
                raise PersistenceError(
                    "Notification could not be created or loaded", operation="dispatch"
                )

        return await self.deliver(notification, user, now)

    async def deliver(
        self, notification: Notification, user: UserPreference, now: datetime | None = None
    ) -> Notification:
        """Attempt the channels of a notification that are new or due for retry."""
        now = ensure_utc(now or datetime.now(UTC))
        channels = notification.pending_channels() + notification.due_channels(now)
        return await self._deliver(notification, user, channels, now)

    async def dispatch_notification(
        self, notification_id: str, now: datetime | None = None
    ) -> Notification:
        """
        Manually resend every undelivered channel of a notification,
        including channels that already exhausted their retries.

        Raises:
            NotificationNotFoundError: If no notification has this id
            NotificationConflictError: If the notification is FAILED and a newer
                live notification exists for the same user, contest and type
        """
        now = ensure_utc(now or datetime.now(UTC))

        notification = await self.notification_store.get(notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)

        if notification.status == NotificationStatus.FAILED and notification.contest_id:
            live = await self.notification_store.find_live(
                notification.user_id, notification.contest_id, notification.type
            )
            if live is not None:
                raise NotificationConflictError(notification_id, live.id)

        channels = [
            d.channel for d in notification.delivery_status if d.status != NotificationStatus.SENT
        ]
        if not channels:
            logger.info("Notification already delivered on all channels", notification_id=notification_id)
            return notification

        notification.retry_count += 1
        notification.last_retry_at = now

        user = await self.user_store.get(notification.user_id)
        logger.info(
            "Manual notification dispatch",
            notification_id=notification_id,
            channels=[c.value for c in channels],
        )
        return await self._deliver(notification, user, channels, now)

    async def run_retry_sweep(self, now: datetime | None = None, limit: int = 100) -> RetrySweepResult:
        """
        Resend channels whose scheduled retry time has arrived, and resume
        reminders left PENDING past the grace period by an interrupted delivery.
        """
        if self.is_running:
            logger.warning("Retry sweep already running, skipping")
            return RetrySweepResult(skipped=True)

        self.is_running = True
        now = ensure_utc(now or datetime.now(UTC))
        result = RetrySweepResult()

        try:
            due = await self.notification_store.find_due_for_retry(now, limit)
            stalled = await self.notification_store.find_stalled(now - self.pending_grace, limit)

            for notification in due + stalled:
                resuming = notification.status == NotificationStatus.PENDING
                channels = (
                    notification.pending_channels() if resuming else notification.due_channels(now)
                )
                if not channels and not resuming:
                    continue

                try:
                    user = await self.user_store.get(notification.user_id)
                    if resuming:
                        logger.warning(
                            "Resuming stalled notification",
                            notification_id=notification.id,
                            user_id=notification.user_id,
                        )
                    else:
                        notification.retry_count += 1
                        notification.last_retry_at = now
                    updated = await self._deliver(notification, user, channels, now)
                except PersistenceError as e:
                    result.errors += 1
                    logger.error(
                        "Retry sweep failed for notification",
                        notification_id=notification.id,
                        operation=e.operation,
                        error=str(e),
                    )
                    continue

                result.processed += 1
                if resuming:
                    result.resumed += 1
                if updated.status == NotificationStatus.SENT:
                    result.sent += 1
                elif updated.status == NotificationStatus.RETRYING:
                    result.retrying += 1
                elif updated.status == NotificationStatus.FAILED:
                    result.failed += 1

        finally:
            self.is_running = False

        logger.info("Retry sweep completed", **result.model_dump())
        return result

    async def _deliver(
        self,
        notification: Notification,
        user: UserPreference | None,
        channels: list[Channel],
        now: datetime,
    ) -> Notification:
        if user is None or not user.is_active:
            notification.mark_undeliverable(now, "Recipient not found or inactive")
        elif not notification.channels:
            notification.mark_undeliverable(now, "No deliverable channel for user")
        elif channels:
            try:
                payload = refresh_payload(NotificationPayload(**notification.payload), now)
            except ValidationError as e:
                notification.mark_undeliverable(now, f"Invalid notification payload: {e}")
            else:
                results = await asyncio.gather(
                    *(self._send_one(channel, user, payload) for channel in channels)
                )
                for result in results:
                    notification.record_result(result, now, self.retry_base_delay_seconds)

        await self.notification_store.save(notification)

        log_notification_outcome(
            notification.id,
            notification.user_id,
            notification.status.value,
            sent=[c.value for c in notification.successful_channels],
            failed=[c.value for c in notification.failed_channels],
            next_retry_at=notification.next_retry_at.isoformat() if notification.next_retry_at else None,
        )
        return notification

    async def _send_one(
        self, channel: Channel, user: UserPreference, payload: NotificationPayload
    ) -> ChannelSendResult:
        sender = self.senders.get(channel)
        if sender is None:
            return ChannelSendResult(success=False, channel=channel, error="No sender registered")

        destination = user.destination_for(channel)
        if not destination:
            return ChannelSendResult(
                success=False, channel=channel, error=f"No {channel.value} destination for user"
            )

        try:
            return await asyncio.wait_for(
                sender.send(destination, payload), timeout=self.send_timeout_seconds
            )
        except Exception as e:
            # A raising sender is contained to its own channel
            logger.error(
                "Channel sender raised",
                channel=channel.value,
                user_id=user.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ChannelSendResult(
                success=False, channel=channel, error=f"{type(e).__name__}: {e}"
            )


notification_dispatcher = NotificationDispatcher()
