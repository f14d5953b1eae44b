"""
Notification store.

Notifications are never deleted; expiry flips is_active. Delivery state
and error history are stored as JSONB documents on the row.
"""

from datetime import datetime
from typing import Protocol

from psycopg.types.json import Jsonb

from app.db.helpers import execute_query, fetch_all, fetch_one, fetch_val, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.notification_domain import (
    Notification,
    NotificationStatus,
    NotificationType,
)

logger = get_logger(__name__)


class NotificationStore(Protocol):
    async def create_if_absent(self, notification: Notification) -> Notification | None: ...

    async def find_blocking_keys(
        self, contest_ids: list[str], type: NotificationType
    ) -> set[tuple[str, str]]: ...

    async def get(self, notification_id: str) -> Notification | None: ...

    async def find_live(
        self, user_id: str, contest_id: str, type: NotificationType
    ) -> Notification | None: ...

    async def save(self, notification: Notification) -> None: ...

    async def find_due_for_retry(self, now: datetime, limit: int = 100) -> list[Notification]: ...

    async def find_stalled(self, before: datetime, limit: int = 100) -> list[Notification]: ...

    async def has_notification_since(
        self, user_id: str, type: NotificationType, since: datetime
    ) -> bool: ...

    async def expire(self, now: datetime) -> int: ...


class NotificationRepository:
    """PostgreSQL-backed NotificationStore."""

    SELECT_COLUMNS = """
        id, user_id, contest_id, type, title, message, payload,
        channels, delivery_status, status, retry_count, max_retries,
        next_retry_at, last_retry_at, scheduled_at, sent_at, failed_at,
        error, error_history, is_active, expires_at, created_at, updated_at
    """

    @classmethod
    def _row_to_notification(cls, row: dict | None) -> Notification | None:
        if not row:
            return None

        return Notification(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            contest_id=str(row["contest_id"]) if row.get("contest_id") else None,
            type=row["type"],
            title=row.get("title") or "",
            message=row.get("message") or "",
            payload=row.get("payload") or {},
            channels=row.get("channels") or [],
            delivery_status=row.get("delivery_status") or [],
            status=row["status"],
            retry_count=row.get("retry_count", 0),
            max_retries=row.get("max_retries", 3),
            next_retry_at=row.get("next_retry_at"),
            last_retry_at=row.get("last_retry_at"),
            scheduled_at=row.get("scheduled_at"),
            sent_at=row.get("sent_at"),
            failed_at=row.get("failed_at"),
            error=row.get("error"),
            error_history=row.get("error_history") or [],
            is_active=row.get("is_active", True),
            expires_at=row.get("expires_at"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _json_columns(notification: Notification) -> tuple:
        return (
            Jsonb(notification.payload),
            [channel.value for channel in notification.channels],
            Jsonb([d.model_dump(mode="json") for d in notification.delivery_status]),
            Jsonb([e.model_dump(mode="json") for e in notification.error_history]),
        )

    @with_db_retry(max_retries=2)
    async def create_if_absent(self, notification: Notification) -> Notification | None:
        """
        Insert a notification unless a live (non-FAILED) one already exists
        for the same (user, contest, type).

        Returns:
            The stored notification, or None if one already existed
        """
        payload, channels, delivery_status, error_history = self._json_columns(notification)
        query = f"""
            INSERT INTO notifications (
                user_id, contest_id, type, title, message, payload,
                channels, delivery_status, status, retry_count, max_retries,
                scheduled_at, error_history, is_active, expires_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, contest_id, type) WHERE status <> 'FAILED' DO NOTHING
            RETURNING {self.SELECT_COLUMNS}
        """

        row = await fetch_one(
            query,
            (
                notification.user_id,
                notification.contest_id,
                notification.type.value,
                notification.title,
                notification.message,
                payload,
                channels,
                delivery_status,
                notification.status.value,
                notification.retry_count,
                notification.max_retries,
                notification.scheduled_at,
                error_history,
                notification.is_active,
                notification.expires_at,
            ),
        )

        if not row:
            logger.debug(
                "Notification already exists",
                user_id=notification.user_id,
                contest_id=notification.contest_id,
                type=notification.type.value,
            )
            return None

        return self._row_to_notification(row)

    @with_db_retry(max_retries=2)
    async def find_blocking_keys(
        self, contest_ids: list[str], type: NotificationType
    ) -> set[tuple[str, str]]:
        """(user_id, contest_id) pairs that already have a live notification."""
        if not contest_ids:
            return set()

        query = """
            SELECT user_id, contest_id
            FROM notifications
            WHERE type = %s
              AND contest_id = ANY(%s::uuid[])
              AND status <> 'FAILED'
        """
        rows = await fetch_all(query, (type.value, contest_ids))
        return {(str(row["user_id"]), str(row["contest_id"])) for row in rows}

    @with_db_retry(max_retries=2)
    async def get(self, notification_id: str) -> Notification | None:
        query = f"SELECT {self.SELECT_COLUMNS} FROM notifications WHERE id = %s"
        return self._row_to_notification(await fetch_one(query, (notification_id,)))

    @with_db_retry(max_retries=2)
    async def find_live(
        self, user_id: str, contest_id: str, type: NotificationType
    ) -> Notification | None:
        """The non-FAILED notification for (user, contest, type), if any."""
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM notifications
            WHERE user_id = %s AND contest_id = %s AND type = %s AND status <> 'FAILED'
        """
        return self._row_to_notification(await fetch_one(query, (user_id, contest_id, type.value)))

    @with_db_retry(max_retries=2)
    async def save(self, notification: Notification) -> None:
        """Persist the mutable delivery state of an existing notification."""
        payload, channels, delivery_status, error_history = self._json_columns(notification)
        query = """
            UPDATE notifications
            SET payload = %s,
                channels = %s,
                delivery_status = %s,
                status = %s,
                retry_count = %s,
                next_retry_at = %s,
                last_retry_at = %s,
                sent_at = %s,
                failed_at = %s,
                error = %s,
                error_history = %s,
                is_active = %s,
                updated_at = %s
            WHERE id = %s
        """

        await execute_query(
            query,
            (
                payload,
                channels,
                delivery_status,
                notification.status.value,
                notification.retry_count,
                notification.next_retry_at,
                notification.last_retry_at,
                notification.sent_at,
                notification.failed_at,
                (notification.error or "")[:1000] or None,
                error_history,
                notification.is_active,
                notification.updated_at,
                notification.id,
            ),
        )

    @with_db_retry(max_retries=2)
    async def find_due_for_retry(self, now: datetime, limit: int = 100) -> list[Notification]:
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM notifications
            WHERE status = %s
              AND is_active
              AND next_retry_at IS NOT NULL
              AND next_retry_at <= %s
            ORDER BY next_retry_at ASC
            LIMIT %s
        """
        rows = await fetch_all(query, (NotificationStatus.RETRYING.value, now, limit))
        return [self._row_to_notification(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def find_stalled(self, before: datetime, limit: int = 100) -> list[Notification]:
        """Active reminders left PENDING and not updated since `before`."""
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM notifications
            WHERE status = %s
              AND is_active
              AND contest_id IS NOT NULL
              AND updated_at <= %s
            ORDER BY updated_at ASC
            LIMIT %s
        """
        rows = await fetch_all(query, (NotificationStatus.PENDING.value, before, limit))
        return [self._row_to_notification(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def has_notification_since(
        self, user_id: str, type: NotificationType, since: datetime
    ) -> bool:
        query = """
            SELECT EXISTS (
                SELECT 1 FROM notifications
                WHERE user_id = %s AND type = %s AND created_at >= %s
            )
        """
        return bool(await fetch_val(query, (user_id, type.value, since)))

    @with_db_retry(max_retries=2)
    async def expire(self, now: datetime) -> int:
        """Mark notifications past their expiry as inactive."""
        expired = await execute_query(
            """
            UPDATE notifications
            SET is_active = FALSE, updated_at = %s
            WHERE is_active AND expires_at IS NOT NULL AND expires_at <= %s
            """,
            (now, now),
        )
        if expired:
            logger.info("Notifications expired", count=expired)
        return expired


notification_repository = NotificationRepository()
