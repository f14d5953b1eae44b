import pytest
from pydantic import ValidationError

from app.config import Settings


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)


def test_defaults_are_valid():
    config = _settings()

    assert config.NOTIFICATION_CHECK_INTERVAL_MINUTES <= 60
    assert config.CONTEST_CLEANUP_DAYS == 90


def test_check_interval_longer_than_smallest_window_is_rejected():
    with pytest.raises(ValidationError):
        _settings(NOTIFICATION_CHECK_INTERVAL_MINUTES=61)


def test_non_positive_check_interval_is_rejected():
    with pytest.raises(ValidationError):
        _settings(NOTIFICATION_CHECK_INTERVAL_MINUTES=0)


def test_max_retries_must_be_positive():
    with pytest.raises(ValidationError):
        _settings(NOTIFICATION_MAX_RETRIES=0)


def test_platform_config_reads_per_platform_settings():
    config = _settings(LEETCODE_ENABLED=False, LEETCODE_TIMEOUT_SECONDS=7.5, PLATFORM_RETRY_ATTEMPTS=5)

    platform_config = config.get_platform_config("leetcode")

    assert platform_config["enabled"] is False
    assert platform_config["timeout"] == 7.5
    assert platform_config["retry_attempts"] == 5


def test_development_pool_is_smaller():
    assert _settings(environment="development").get_db_pool_config()["max_size"] == 5
    assert _settings(environment="production", DB_POOL_MAX_SIZE=20).get_db_pool_config()["max_size"] == 20
