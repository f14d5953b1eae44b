"""
End-to-end pipeline: platform API -> contest sync -> eligibility -> delivery,
wired with real adapters over canned HTTP responses and in-memory stores.
"""

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from app.integrations.platforms.base import PlatformConfig
from app.integrations.platforms.codeforces import CodeforcesAdapter
from app.integrations.platforms.leetcode import LeetCodeAdapter
from app.models.domain.contest_domain import Platform
from app.models.domain.notification_domain import Channel, NotificationStatus
from app.services.contest_sync_service import ContestSyncService
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.notification_eligibility_service import NotificationEligibilityService


def _codeforces_transport(start: datetime):
    body = {
        "status": "OK",
        "result": [
            {
                "id": 2050,
                "name": "Codeforces Round 2050 (Div. 2)",
                "type": "CF",
                "phase": "BEFORE",
                "durationSeconds": 7200,
                "startTimeSeconds": int(start.timestamp()),
            }
        ],
    }
    return httpx.MockTransport(lambda request: httpx.Response(200, json=body))


def _failing_transport():
    return httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))


@pytest.mark.asyncio
async def test_synced_contest_produces_one_delivered_reminder(
    contest_store, notification_store, user_store, senders, make_user
):
    now = datetime.now(UTC).replace(microsecond=0)
    start = now + timedelta(hours=10)
    config = PlatformConfig(retry_attempts=2, retry_delay=0)

    sync = ContestSyncService(
        adapters={
            Platform.CODEFORCES: CodeforcesAdapter(config=config, transport=_codeforces_transport(start)),
            Platform.LEETCODE: LeetCodeAdapter(config=config, transport=_failing_transport()),
        },
        store=contest_store,
    )
    eligibility = NotificationEligibilityService(
        contest_store=contest_store,
        notification_store=notification_store,
        user_store=user_store,
        senders=senders,
    )
    dispatcher = NotificationDispatcher(
        notification_store=notification_store,
        user_store=user_store,
        senders=senders,
        max_retries=3,
        retry_base_delay_seconds=300,
        send_timeout_seconds=1.0,
    )
    user_store.add(make_user("U", notify_before=24))

    summary = await sync.sync_all()
    await sync.sync_all()

    assert summary.results[Platform.CODEFORCES].contests_added == 1
    assert summary.results[Platform.LEETCODE].success is False
    assert len(contest_store.contests) == 1

    created = await eligibility.create_notifications(now)
    assert len(created) == 1
    notification, user = created[0]
    assert notification.status == NotificationStatus.PENDING
    assert notification.user_id == "U"

    delivered = await dispatcher.deliver(notification, user, now)

    assert delivered.status == NotificationStatus.SENT
    assert delivered.successful_channels == [Channel.EMAIL]
    _, payload = senders[Channel.EMAIL].calls[0]
    assert payload.contest_name == "Codeforces Round 2050 (Div. 2)"
    assert payload.hours_until_start == 10

    # Next check cycle finds nothing new
    assert await eligibility.create_notifications(now + timedelta(minutes=15)) == []
    assert len(notification_store.notifications) == 1
