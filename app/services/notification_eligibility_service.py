"""
Notification eligibility.

A windowed join of subscribed users against upcoming contests, filtered by
an anti-join on notifications that are already live (PENDING, RETRYING or
SENT). A FAILED reminder does not block a new one.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from app.config import settings
from app.db.helpers import PersistenceError
from app.infrastructure.observability.logging import get_logger
from app.models.domain.contest_domain import Contest, ensure_utc
from app.models.domain.notification_domain import Channel, Notification, NotificationType
from app.models.domain.user_domain import AlertFrequency, UserPreference
from app.repositories.contest_repository import ContestStore, contest_repository
from app.repositories.notification_repository import NotificationStore, notification_repository
from app.repositories.user_preference_repository import (
    UserPreferenceStore,
    user_preference_repository,
)
from app.services.channels.base import ChannelSender
from app.services.channels.registry import build_channel_senders
from app.services.notification_factory import build_notification

logger = get_logger(__name__)


@dataclass(slots=True)
class EligiblePair:
    user: UserPreference
    contest: Contest
    type: NotificationType = NotificationType.CONTEST_REMINDER


class NotificationEligibilityService:
    def __init__(
        self,
        contest_store: ContestStore | None = None,
        notification_store: NotificationStore | None = None,
        user_store: UserPreferenceStore | None = None,
        senders: dict[Channel, ChannelSender] | None = None,
    ):
        self.contest_store = contest_store or contest_repository
        self.notification_store = notification_store or notification_repository
        self.user_store = user_store or user_preference_repository
        self.senders = senders if senders is not None else build_channel_senders()

    def available_channels(self) -> set[Channel]:
        return {channel for channel, sender in self.senders.items() if sender.is_enabled()}

    def channels_for(self, user: UserPreference) -> set[Channel]:
        """Channels the user opted into, has a destination for, and we can send on."""
        return user.deliverable_channels() & self.available_channels()

    async def _reminder_candidates(self) -> list[UserPreference]:
        users = await self.user_store.list_active_subscribers()
        candidates = []

        for user in users:
            if not user.is_active or not user.platforms:
                continue
            # Digest users are served by the digest job
            if user.alert_frequency is not AlertFrequency.IMMEDIATE:
                continue
            if not self.channels_for(user):
                logger.debug("User has no deliverable channel", user_id=user.user_id)
                continue
            candidates.append(user)

        return candidates

    async def compute_eligible_pairs(self, now: datetime | None = None) -> list[EligiblePair]:
        """
        (user, contest, CONTEST_REMINDER) triples where the contest starts
        within [now, now + notify_before] and no live reminder exists.
        """
        now = ensure_utc(now or datetime.now(UTC))
        users = await self._reminder_candidates()
        if not users:
            return []

        widest = max(user.notify_before for user in users)
        platforms = set().union(*(user.platforms for user in users))

        contests = [
            contest
            for contest in await self.contest_store.query_by_time_range(
                now, now + timedelta(hours=widest)
            )
            if contest.platform in platforms and contest.id
        ]
        if not contests:
            return []

        blocked = await self.notification_store.find_blocking_keys(
            [contest.id for contest in contests], NotificationType.CONTEST_REMINDER
        )

        pairs = []
        for user in users:
            window_end = now + timedelta(hours=user.notify_before)
            for contest in contests:
                if contest.platform not in user.platforms:
                    continue
                if not now <= contest.start_time <= window_end:
                    continue
                if (user.user_id, contest.id) in blocked:
                    continue
                pairs.append(EligiblePair(user=user, contest=contest))

        logger.info(
            "Eligible notification pairs computed",
            users=len(users),
            contests=len(contests),
            eligible=len(pairs),
        )
        return pairs

    async def create_notifications(
        self, now: datetime | None = None
    ) -> list[tuple[Notification, UserPreference]]:
        """
        Record a PENDING reminder for every eligible pair.

        Returns:
            The newly created notifications with their recipient
        """
        now = ensure_utc(now or datetime.now(UTC))
        created = []

        for pair in await self.compute_eligible_pairs(now):
            notification = build_notification(
                pair.user,
                pair.contest,
                pair.type,
                self.channels_for(pair.user),
                now,
                max_retries=settings.NOTIFICATION_MAX_RETRIES,
                retention_days=settings.NOTIFICATION_RETENTION_DAYS,
            )
            try:
                stored = await self.notification_store.create_if_absent(notification)
            except PersistenceError as e:
                logger.error(
                    "Failed to create notification",
                    user_id=pair.user.user_id,
                    contest_id=pair.contest.id,
                    error=str(e),
                )
                continue

            if stored is not None:
                created.append((stored, pair.user))

        logger.info("Notifications created", count=len(created))
        return created
