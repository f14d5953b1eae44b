"""Read-only access to the user preference columns the notifier needs."""

from typing import Protocol

from app.db.helpers import fetch_all, fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.user_domain import AlertFrequency, UserPreference

logger = get_logger(__name__)


class UserPreferenceStore(Protocol):
    async def list_active_subscribers(self) -> list[UserPreference]: ...

    async def list_by_frequency(self, frequency: AlertFrequency) -> list[UserPreference]: ...

    async def get(self, user_id: str) -> UserPreference | None: ...


class UserPreferenceRepository:
    SELECT_COLUMNS = """
        id, email, phone_number, push_token, platforms, notify_before,
        notification_channels, alert_frequency, is_active
    """

    @classmethod
    def _row_to_preference(cls, row: dict | None) -> UserPreference | None:
        if not row:
            return None

        return UserPreference(
            user_id=str(row["id"]),
            email=row.get("email"),
            phone_number=row.get("phone_number"),
            push_token=row.get("push_token"),
            platforms=set(row.get("platforms") or []),
            notify_before=row.get("notify_before") or 24,
            notification_channels=row.get("notification_channels") or {},
            alert_frequency=row.get("alert_frequency") or AlertFrequency.IMMEDIATE,
            is_active=row.get("is_active", True),
        )

    @classmethod
    def _rows_to_preferences(cls, rows: list[dict]) -> list[UserPreference]:
        preferences = []
        for row in rows:
            try:
                preferences.append(cls._row_to_preference(row))
            except ValueError as e:
                # Invalid stored preferences exclude the user, not the batch
                logger.warning("Skipping user with invalid preferences", user_id=row.get("id"), error=str(e))
        return preferences

    @with_db_retry(max_retries=2)
    async def list_active_subscribers(self) -> list[UserPreference]:
        """Active users subscribed to at least one platform."""
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM users
            WHERE is_active AND cardinality(platforms) > 0
        """
        return self._rows_to_preferences(await fetch_all(query))

    @with_db_retry(max_retries=2)
    async def list_by_frequency(self, frequency: AlertFrequency) -> list[UserPreference]:
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM users
            WHERE is_active AND cardinality(platforms) > 0 AND alert_frequency = %s
        """
        return self._rows_to_preferences(await fetch_all(query, (frequency.value,)))

    @with_db_retry(max_retries=2)
    async def get(self, user_id: str) -> UserPreference | None:
        query = f"SELECT {self.SELECT_COLUMNS} FROM users WHERE id = %s"
        return self._row_to_preference(await fetch_one(query, (user_id,)))


user_preference_repository = UserPreferenceRepository()
