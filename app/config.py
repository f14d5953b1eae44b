from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"

# Smallest lead time a user may configure (hours). The notification check
# interval must fit inside it or contests can start between two checks.
MIN_NOTIFY_BEFORE_HOURS = 1
MAX_NOTIFY_BEFORE_HOURS = 168


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Database settings
    DATABASE_URL: str = "postgresql://localhost:5432/codenotify"

    # Admin trigger endpoints (disabled when unset)
    ADMIN_API_KEY: str | None = None

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # CONTEST SYNC
    # =================================================================
    CONTEST_SYNC_ENABLED: bool = True
    CONTEST_SYNC_INTERVAL_HOURS: float = 6.0
    CONTEST_CLEANUP_ENABLED: bool = True
    CONTEST_CLEANUP_DAYS: int = 90
    CONTEST_CLEANUP_HOUR: int = 2  # UTC

    PLATFORM_USER_AGENT: str = "CodeNotify/1.0"
    PLATFORM_RETRY_ATTEMPTS: int = 3
    PLATFORM_RETRY_DELAY_SECONDS: float = 1.0
    PLATFORM_LOOKBACK_DAYS: int = 30
    CODECHEF_PAST_CONTESTS_LIMIT: int = 20

    CODEFORCES_ENABLED: bool = True
    CODEFORCES_TIMEOUT_SECONDS: float = 10.0
    LEETCODE_ENABLED: bool = True
    LEETCODE_TIMEOUT_SECONDS: float = 15.0
    CODECHEF_ENABLED: bool = True
    CODECHEF_TIMEOUT_SECONDS: float = 15.0
    ATCODER_ENABLED: bool = True
    ATCODER_TIMEOUT_SECONDS: float = 15.0

    # =================================================================
    # NOTIFICATIONS
    # =================================================================
    NOTIFICATIONS_ENABLED: bool = True
    NOTIFICATION_CHECK_INTERVAL_MINUTES: int = 15
    NOTIFICATION_MAX_RETRIES: int = 3
    NOTIFICATION_RETRY_BASE_DELAY_SECONDS: int = 300
    NOTIFICATION_RETENTION_DAYS: int = 90
    NOTIFICATION_SEND_TIMEOUT_SECONDS: float = 10.0
    NOTIFICATION_PENDING_GRACE_MINUTES: int = 5
    DIGEST_ENABLED: bool = True
    DIGEST_HOUR: int = 8  # UTC

    # Channel credentials
    RESEND_API_KEY: str | None = None
    EMAIL_FROM: str = "CodeNotify <noreply@codenotify.dev>"
    WHATSAPP_API_KEY: str | None = None
    WHATSAPP_PHONE_ID: str | None = None
    FIREBASE_SERVER_KEY: str | None = None
    APP_BASE_URL: str = "http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_notification_window(self) -> "Settings":
        if self.NOTIFICATION_CHECK_INTERVAL_MINUTES <= 0:
            raise ValueError("NOTIFICATION_CHECK_INTERVAL_MINUTES must be positive")
        if self.NOTIFICATION_CHECK_INTERVAL_MINUTES > MIN_NOTIFY_BEFORE_HOURS * 60:
            raise ValueError(
                "NOTIFICATION_CHECK_INTERVAL_MINUTES must not exceed the smallest "
                f"notify-before window ({MIN_NOTIFY_BEFORE_HOURS * 60} minutes)"
            )
        if self.NOTIFICATION_MAX_RETRIES < 1:
            raise ValueError("NOTIFICATION_MAX_RETRIES must be at least 1")
        return self

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update({"min_size": 1, "max_size": 5, "timeout": 15.0})

        return config

    def get_platform_config(self, platform: str) -> dict:
        """
        Per-platform adapter configuration.

        Args:
            platform: Platform value, e.g. "codeforces"
        """
        prefix = platform.upper()
        return {
            "enabled": getattr(self, f"{prefix}_ENABLED"),
            "timeout": getattr(self, f"{prefix}_TIMEOUT_SECONDS"),
            "retry_attempts": self.PLATFORM_RETRY_ATTEMPTS,
            "retry_delay": self.PLATFORM_RETRY_DELAY_SECONDS,
            "user_agent": self.PLATFORM_USER_AGENT,
        }


settings = Settings()
