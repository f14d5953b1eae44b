from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from app.db.helpers import PersistenceError
from app.jobs.contest_cleanup_job import ContestCleanupJob
from app.jobs.contest_sync_job import ContestSyncJob
from app.jobs.digest_job import DigestJob
from app.jobs.notification_job import NotificationJob
from app.jobs.scheduling import next_daily_run
from app.models.domain.contest_domain import Platform
from app.models.domain.notification_domain import Channel, NotificationStatus
from app.models.domain.user_domain import AlertFrequency
from app.services.contest_sync_service import ContestSyncService
from app.services.digest_service import DigestResult
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.notification_eligibility_service import NotificationEligibilityService
from tests.fakes import FakeAdapter


def test_next_daily_run_is_strictly_in_the_future():
    morning = datetime(2026, 3, 2, 1, 30, tzinfo=UTC)
    at_hour = datetime(2026, 3, 2, 2, 0, tzinfo=UTC)

    assert next_daily_run(morning, 2) == datetime(2026, 3, 2, 2, 0, tzinfo=UTC)
    assert next_daily_run(at_hour, 2) == datetime(2026, 3, 3, 2, 0, tzinfo=UTC)


@pytest.fixture
def notification_job(contest_store, notification_store, user_store, senders):
    dispatcher = NotificationDispatcher(
        notification_store=notification_store,
        user_store=user_store,
        senders=senders,
        max_retries=3,
        retry_base_delay_seconds=300,
        send_timeout_seconds=1.0,
    )
    eligibility = NotificationEligibilityService(
        contest_store=contest_store,
        notification_store=notification_store,
        user_store=user_store,
        senders=senders,
    )
    return NotificationJob(eligibility, dispatcher, notification_store)


@pytest.mark.asyncio
async def test_notification_job_creates_and_delivers(
    notification_job, contest_store, user_store, senders, make_contest, make_user, now
):
    await contest_store.upsert(make_contest("1"))
    await contest_store.upsert(make_contest("2", starts_in=timedelta(hours=30)))
    user_store.add(make_user())

    first = await notification_job.run_once(now)
    second = await notification_job.run_once(now + timedelta(minutes=15))

    assert first["success"] is True
    assert first["created"] == 1
    assert first["sent"] == 1
    assert second["created"] == 0
    assert len(senders[Channel.EMAIL].calls) == 1


@pytest.mark.asyncio
async def test_notification_job_runs_retry_sweep(
    notification_job, contest_store, notification_store, user_store, senders, make_contest, make_user, now
):
    await contest_store.upsert(make_contest("1"))
    user_store.add(make_user())
    senders[Channel.EMAIL].fail = True

    first = await notification_job.run_once(now)
    senders[Channel.EMAIL].fail = False
    later = await notification_job.run_once(now + timedelta(minutes=15))

    assert first["retrying"] == 1
    assert later["retry_sweep"]["sent"] == 1
    [notification] = notification_store.for_user("user-1")
    assert notification.status == NotificationStatus.SENT


@pytest.mark.asyncio
async def test_notification_job_keeps_going_when_a_step_fails(notification_job, notification_store, now):
    notification_store.expire = AsyncMock(side_effect=PersistenceError("db down", operation="expire"))

    result = await notification_job.run_once(now)

    assert result["success"] is False
    assert "Failed to expire notifications" in result["errors"][0]
    assert result["retry_sweep"] is not None
    assert notification_job.is_running is False


@pytest.mark.asyncio
async def test_notification_job_expires_old_notifications(
    notification_job, contest_store, notification_store, user_store, make_contest, make_user, now
):
    await contest_store.upsert(make_contest("1"))
    user_store.add(make_user())
    await notification_job.run_once(now)

    result = await notification_job.run_once(now + timedelta(days=91))

    assert result["expired"] == 1


@pytest.mark.asyncio
async def test_digest_job_sends_weekly_on_monday():
    service = AsyncMock()
    service.send_digests.side_effect = lambda frequency, now: DigestResult(frequency=frequency)
    job = DigestJob(service)
    monday = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)

    monday_result = await job.run_once(monday)
    tuesday_result = await job.run_once(monday + timedelta(days=1))

    assert set(monday_result["digests"]) == {"daily", "weekly"}
    assert set(tuesday_result["digests"]) == {"daily"}
    assert service.send_digests.await_args_list[0].args[0] is AlertFrequency.DAILY


@pytest.mark.asyncio
async def test_cleanup_job_reports_persistence_failure(now):
    service = AsyncMock()
    service.cleanup_old_contests.side_effect = PersistenceError("db down", operation="delete_older_than")
    job = ContestCleanupJob(service)

    result = await job.run_once(days=90, now=now)

    assert result["success"] is False
    assert job.is_running is False


@pytest.mark.asyncio
async def test_cleanup_job_deletes_expired_contests(contest_store, make_contest, now):
    await contest_store.upsert(make_contest("old", starts_in=-timedelta(days=120)))
    job = ContestCleanupJob(ContestSyncService(adapters={}, store=contest_store))

    result = await job.run_once(days=90, now=now)

    assert result["success"] is True
    assert result["deleted"] == 1


@pytest.mark.asyncio
async def test_contest_sync_job_records_last_result(contest_store, make_contest):
    service = ContestSyncService(
        adapters={Platform.CODEFORCES: FakeAdapter(Platform.CODEFORCES, [make_contest("1")])},
        store=contest_store,
    )
    job = ContestSyncJob(service)

    result = await job.run_once()

    assert result["success"] is True
    assert result["total_added"] == 1
    status = job.get_job_status()
    assert status["last_run_time"] is not None
    assert status["is_running"] is False


@pytest.mark.asyncio
async def test_contest_sync_job_without_adapters(contest_store):
    job = ContestSyncJob(ContestSyncService(adapters={}, store=contest_store))

    result = await job.run_once()

    assert result["success"] is False
    assert "No platform adapters" in result["error"]


@pytest.mark.asyncio
async def test_notification_job_resumes_reminder_left_pending_by_failed_save(
    notification_job, contest_store, notification_store, user_store, senders, make_contest, make_user, now
):
    await contest_store.upsert(make_contest("1"))
    user_store.add(make_user())
    save = notification_store.save
    attempts = {"count": 0}

    async def save_failing_once(notification):
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise PersistenceError("connection lost", operation="save")
        await save(notification)

    notification_store.save = save_failing_once

    first = await notification_job.run_once(now)
    [stuck] = notification_store.for_user("user-1")
    assert first["created"] == 1
    assert first["success"] is False
    assert stuck.status == NotificationStatus.PENDING

    later = await notification_job.run_once(now + timedelta(minutes=15))

    assert later["created"] == 0
    assert later["retry_sweep"]["resumed"] == 1
    assert later["retry_sweep"]["sent"] == 1
    [notification] = notification_store.for_user("user-1")
    assert notification.status == NotificationStatus.SENT
    assert notification.successful_channels == [Channel.EMAIL]
