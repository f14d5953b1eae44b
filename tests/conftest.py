from datetime import timedelta

import pytest

from app.models.domain.contest_domain import Contest, Platform
from app.models.domain.notification_domain import Channel
from app.models.domain.user_domain import AlertFrequency, NotificationChannels, UserPreference
from tests.fakes import (
    FIXED_NOW,
    FakeContestStore,
    FakeNotificationStore,
    FakeSender,
    FakeUserStore,
)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def contest_store():
    return FakeContestStore()


@pytest.fixture
def notification_store():
    return FakeNotificationStore()


@pytest.fixture
def user_store():
    return FakeUserStore()


@pytest.fixture
def make_contest(now):
    def _make(
        external_id: str = "1234",
        platform: Platform = Platform.CODEFORCES,
        starts_in: timedelta = timedelta(hours=10),
        duration: timedelta = timedelta(hours=3),
        **overrides,
    ) -> Contest:
        start = now + starts_in
        fields = {
            "platform": platform,
            "external_id": external_id,
            "name": f"Round {external_id}",
            "start_time": start,
            "end_time": start + duration,
            "website_url": f"https://example.test/{external_id}",
        }
        fields.update(overrides)
        return Contest(**fields)

    return _make


@pytest.fixture
def make_user():
    def _make(
        user_id: str = "user-1",
        platforms=(Platform.CODEFORCES,),
        notify_before: int = 24,
        email: str | None = "coder@example.test",
        phone_number: str | None = None,
        push_token: str | None = None,
        channels: dict | None = None,
        alert_frequency: AlertFrequency = AlertFrequency.IMMEDIATE,
        is_active: bool = True,
    ) -> UserPreference:
        return UserPreference(
            user_id=user_id,
            email=email,
            phone_number=phone_number,
            push_token=push_token,
            platforms=set(platforms),
            notify_before=notify_before,
            notification_channels=NotificationChannels(**(channels or {"email": True})),
            alert_frequency=alert_frequency,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def senders():
    return {
        Channel.EMAIL: FakeSender(Channel.EMAIL),
        Channel.WHATSAPP: FakeSender(Channel.WHATSAPP),
        Channel.PUSH: FakeSender(Channel.PUSH),
    }
