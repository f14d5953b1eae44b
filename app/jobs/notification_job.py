"""
Notification Background Job - reminder creation, delivery and retries.

Every NOTIFICATION_CHECK_INTERVAL_MINUTES:
1. Expire notifications past their retention window
2. Create PENDING reminders for newly eligible (user, contest) pairs and
   deliver them
3. Resend channels whose retry time has arrived and resume reminders left
   PENDING by an interrupted delivery

The check interval is validated at settings load to be no longer than the
smallest notify-before window, so no contest can start unnoticed between
two runs.
"""

import asyncio
from datetime import UTC, datetime

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.contest_domain import ensure_utc
from app.models.domain.notification_domain import NotificationStatus
from app.repositories.notification_repository import NotificationStore, notification_repository
from app.services.notification_dispatcher import NotificationDispatcher, notification_dispatcher
from app.services.notification_eligibility_service import NotificationEligibilityService

logger = get_logger(__name__)


class NotificationJob:
    def __init__(
        self,
        eligibility: NotificationEligibilityService | None = None,
        dispatcher: NotificationDispatcher | None = None,
        notification_store: NotificationStore | None = None,
    ):
        self.eligibility = eligibility or NotificationEligibilityService(
            senders=notification_dispatcher.senders
        )
        self.dispatcher = dispatcher or notification_dispatcher
        self.notification_store = notification_store or notification_repository
        self.is_running = False
        self.last_run_time: datetime | None = None

    async def run_once(self, now: datetime | None = None) -> dict:
        if self.is_running:
            logger.warning("Notification job already running, skipping")
            return {"success": False, "skipped": True, "error": "Already running"}

        self.is_running = True
        now = ensure_utc(now or datetime.now(UTC))

        result = {
            "success": True,
            "expired": 0,
            "created": 0,
            "sent": 0,
            "retrying": 0,
            "failed": 0,
            "retry_sweep": None,
            "errors": [],
        }

        try:
            # 1. Expiry
            try:
                result["expired"] = await self.notification_store.expire(now)
            except Exception as e:
                error_msg = f"Failed to expire notifications: {e}"
                logger.error(error_msg)
                result["errors"].append(error_msg)

            # 2. New reminders
            try:
                created = await self.eligibility.create_notifications(now)
                result["created"] = len(created)

                for notification, user in created:
                    try:
                        delivered = await self.dispatcher.deliver(notification, user, now)
                    except Exception as e:
                        error_msg = f"Failed to deliver notification {notification.id}: {e}"
                        logger.error(error_msg, user_id=user.user_id)
                        result["errors"].append(error_msg)
                        continue

                    if delivered.status == NotificationStatus.SENT:
                        result["sent"] += 1
                    elif delivered.status == NotificationStatus.RETRYING:
                        result["retrying"] += 1
                    elif delivered.status == NotificationStatus.FAILED:
                        result["failed"] += 1

            except Exception as e:
                error_msg = f"Failed to create notifications: {e}"
                logger.error(error_msg)
                result["errors"].append(error_msg)

            # 3. Retry sweep
            try:
                sweep = await self.dispatcher.run_retry_sweep(now)
                result["retry_sweep"] = sweep.model_dump()
            except Exception as e:
                error_msg = f"Retry sweep failed: {e}"
                logger.error(error_msg)
                result["errors"].append(error_msg)

        finally:
            self.is_running = False

        result["success"] = not result["errors"]
        self.last_run_time = now
        logger.info("Notification job completed", **{k: v for k, v in result.items() if k != "errors"})
        return result


notification_job = NotificationJob()


async def start_notification_scheduler():
    """Run the notification job every NOTIFICATION_CHECK_INTERVAL_MINUTES."""
    if not settings.NOTIFICATIONS_ENABLED:
        logger.info("Notification scheduler DISABLED", environment=settings.environment)
        return

    interval_minutes = settings.NOTIFICATION_CHECK_INTERVAL_MINUTES
    logger.info("Notification scheduler STARTED", interval_minutes=interval_minutes)

    while True:
        try:
            await notification_job.run_once()
            await asyncio.sleep(interval_minutes * 60)

        except asyncio.CancelledError:
            logger.info("Notification scheduler cancelled")
            break
        except Exception as e:
            logger.error(
                "Error in notification scheduler", error=str(e), error_type=type(e).__name__
            )
            await asyncio.sleep(60)
