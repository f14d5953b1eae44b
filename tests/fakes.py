"""In-memory stand-ins for the stores, channel senders and platform adapters."""

from datetime import UTC, datetime

from app.db.helpers import PersistenceError
from app.models.domain.contest_domain import Contest, Platform
from app.models.domain.notification_domain import (
    Channel,
    ChannelSendResult,
    Notification,
    NotificationPayload,
    NotificationStatus,
    NotificationType,
)
from app.models.domain.user_domain import UserPreference

FIXED_NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


class FakeContestStore:
    def __init__(self):
        self.contests: dict[tuple[Platform, str], Contest] = {}
        self.fail_on: set[str] = set()
        self.upsert_calls = 0
        self._next_id = 1

    async def upsert(self, contest: Contest) -> bool:
        self.upsert_calls += 1
        if contest.external_id in self.fail_on:
            raise PersistenceError("write failed", operation="upsert")

        existing = self.contests.get(contest.key)
        contest_id = existing.id if existing else f"contest-{self._next_id}"
        if not existing:
            self._next_id += 1
        self.contests[contest.key] = contest.model_copy(update={"id": contest_id})
        return existing is None

    def _filter(self, predicate, platform):
        return sorted(
            (c for c in self.contests.values() if predicate(c) and (platform is None or c.platform == platform)),
            key=lambda c: c.start_time,
        )

    async def query_by_time_range(self, start, end, platform=None):
        return self._filter(lambda c: start <= c.start_time <= end, platform)

    async def find_upcoming(self, now, platform=None):
        return self._filter(lambda c: c.start_time > now, platform)

    async def find_running(self, now, platform=None):
        return self._filter(lambda c: c.start_time <= now <= c.end_time, platform)

    async def find_finished(self, now, platform=None):
        return self._filter(lambda c: c.end_time < now, platform)

    async def get(self, contest_id):
        return next((c for c in self.contests.values() if c.id == contest_id), None)

    async def get_by_external_id(self, platform, external_id):
        return self.contests.get((platform, external_id))

    async def delete_older_than(self, cutoff):
        stale = [key for key, c in self.contests.items() if c.end_time < cutoff]
        for key in stale:
            del self.contests[key]
        return len(stale)


class FakeNotificationStore:
    def __init__(self):
        self.notifications: dict[str, Notification] = {}
        self.save_calls = 0
        self._next_id = 1

    def _live(self, user_id, contest_id, type):
        return next(
            (
                n
                for n in self.notifications.values()
                if n.user_id == user_id
                and n.contest_id == contest_id
                and n.type == type
                and n.status != NotificationStatus.FAILED
            ),
            None,
        )

    async def create_if_absent(self, notification: Notification):
        if notification.contest_id is not None and self._live(
            notification.user_id, notification.contest_id, notification.type
        ):
            return None

        stored = notification.model_copy(deep=True, update={"id": f"notif-{self._next_id}"})
        self._next_id += 1
        self.notifications[stored.id] = stored
        return stored.model_copy(deep=True)

    async def find_blocking_keys(self, contest_ids, type):
        return {
            (n.user_id, n.contest_id)
            for n in self.notifications.values()
            if n.type == type and n.contest_id in contest_ids and n.status != NotificationStatus.FAILED
        }

    async def get(self, notification_id):
        n = self.notifications.get(notification_id)
        return n.model_copy(deep=True) if n else None

    async def find_live(self, user_id, contest_id, type):
        n = self._live(user_id, contest_id, type)
        return n.model_copy(deep=True) if n else None

    async def save(self, notification: Notification):
        self.save_calls += 1
        self.notifications[notification.id] = notification.model_copy(deep=True)

    async def find_due_for_retry(self, now, limit=100):
        due = [
            n
            for n in self.notifications.values()
            if n.status == NotificationStatus.RETRYING
            and n.is_active
            and n.next_retry_at is not None
            and n.next_retry_at <= now
        ]
        return [n.model_copy(deep=True) for n in due[:limit]]

    async def find_stalled(self, before, limit=100):
        stalled = [
            n
            for n in self.notifications.values()
            if n.status == NotificationStatus.PENDING
            and n.is_active
            and n.contest_id is not None
            and n.updated_at <= before
        ]
        return [n.model_copy(deep=True) for n in stalled[:limit]]

    async def has_notification_since(self, user_id, type, since):
        return any(
            n.user_id == user_id and n.type == type and n.created_at >= since
            for n in self.notifications.values()
        )

    async def expire(self, now):
        count = 0
        for n in self.notifications.values():
            if n.is_active and n.expires_at is not None and n.expires_at <= now:
                n.is_active = False
                count += 1
        return count

    def for_user(self, user_id, type=NotificationType.CONTEST_REMINDER):
        return [n for n in self.notifications.values() if n.user_id == user_id and n.type == type]


class FakeUserStore:
    def __init__(self, users=None):
        self.users: dict[str, UserPreference] = {u.user_id: u for u in users or []}

    def add(self, user: UserPreference):
        self.users[user.user_id] = user

    async def list_active_subscribers(self):
        return [u for u in self.users.values() if u.is_active and u.platforms]

    async def list_by_frequency(self, frequency):
        return [
            u
            for u in await self.list_active_subscribers()
            if u.alert_frequency == frequency
        ]

    async def get(self, user_id):
        return self.users.get(user_id)


class FakeSender:
    def __init__(self, channel: Channel, enabled: bool = True, fail: bool = False, raises: Exception | None = None):
        self.channel = channel
        self.enabled = enabled
        self.fail = fail
        self.raises = raises
        self.calls: list[tuple[str, NotificationPayload]] = []

    def is_enabled(self) -> bool:
        return self.enabled

    async def send(self, destination: str, payload: NotificationPayload) -> ChannelSendResult:
        self.calls.append((destination, payload))
        if self.raises is not None:
            raise self.raises
        if not self.enabled:
            return ChannelSendResult(success=False, channel=self.channel, error="not configured")
        if self.fail:
            return ChannelSendResult(success=False, channel=self.channel, error="provider rejected")
        return ChannelSendResult(
            success=True, channel=self.channel, message_id=f"{self.channel.value}-{len(self.calls)}"
        )

    async def health_check(self) -> bool:
        return self.enabled


class FakeAdapter:
    def __init__(self, platform: Platform, contests=None, error: Exception | None = None):
        self.platform = platform
        self.contests = contests or []
        self.error = error
        self.calls = 0

    async def fetch_contests(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.contests)

    async def fetch_upcoming_contests(self):
        return [c for c in await self.fetch_contests() if c.is_upcoming(datetime.now(UTC))]

    async def fetch_running_contests(self):
        return [c for c in await self.fetch_contests() if c.is_running(datetime.now(UTC))]

    async def health_check(self):
        return self.error is None

