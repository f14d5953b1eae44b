"""
Contest Cleanup Background Job - retention for finished contests.

Runs daily at CONTEST_CLEANUP_HOUR (UTC) and deletes contests whose end
time is older than CONTEST_CLEANUP_DAYS. Independent of sync.
"""

import asyncio
from datetime import UTC, datetime

from app.config import settings
from app.db.helpers import PersistenceError
from app.infrastructure.observability.logging import get_logger
from app.jobs.scheduling import next_daily_run
from app.services.contest_sync_service import ContestSyncService, contest_sync_service

logger = get_logger(__name__)


class ContestCleanupJob:
    def __init__(self, service: ContestSyncService | None = None):
        self.service = service or contest_sync_service
        self.is_running = False

    async def run_once(self, days: int | None = None, now: datetime | None = None) -> dict:
        if self.is_running:
            logger.warning("Contest cleanup already running, skipping")
            return {"success": False, "skipped": True, "error": "Already running"}

        self.is_running = True
        try:
            result = await self.service.cleanup_old_contests(days, now)
            return {"success": True, **result.model_dump(mode="json")}

        except PersistenceError as e:
            logger.error("Contest cleanup failed", operation=e.operation, error=str(e))
            return {"success": False, "error": str(e)}

        finally:
            self.is_running = False


contest_cleanup_job = ContestCleanupJob()


async def start_contest_cleanup_scheduler():
    """Run contest cleanup daily at CONTEST_CLEANUP_HOUR UTC."""
    if not settings.CONTEST_CLEANUP_ENABLED:
        logger.info("Contest cleanup scheduler DISABLED", environment=settings.environment)
        return

    logger.info(
        "Contest cleanup scheduler STARTED",
        schedule_hour=settings.CONTEST_CLEANUP_HOUR,
        retention_days=settings.CONTEST_CLEANUP_DAYS,
    )

    while True:
        try:
            now = datetime.now(UTC)
            next_run = next_daily_run(now, settings.CONTEST_CLEANUP_HOUR)
            sleep_seconds = (next_run - now).total_seconds()

            logger.info(
                "Contest cleanup scheduled",
                next_run=next_run.isoformat(),
                sleep_seconds=sleep_seconds,
            )
            await asyncio.sleep(sleep_seconds)

            result = await contest_cleanup_job.run_once()
            logger.info("Scheduled contest cleanup completed", result=result)

        except asyncio.CancelledError:
            logger.info("Contest cleanup scheduler cancelled")
            break
        except Exception as e:
            logger.error("Error in contest cleanup scheduler, will retry", error=str(e))
            await asyncio.sleep(3600)
