"""
Contest Sync Background Job - keeps the contest store current.

Every CONTEST_SYNC_INTERVAL_HOURS the job runs a full sync across all
enabled platforms. Overlapping runs are prevented by the sync service's
own reentrancy guard, so a run that is still in progress makes the next
tick return a skipped result.

Usage:
    asyncio.create_task(start_contest_sync_scheduler())
"""

import asyncio
from datetime import UTC, datetime

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.services.contest_sync_service import (
    ContestSyncConfigurationError,
    ContestSyncService,
    contest_sync_service,
)

logger = get_logger(__name__)


class ContestSyncJob:
    def __init__(self, service: ContestSyncService | None = None):
        self.service = service or contest_sync_service
        self.last_run_time: datetime | None = None
        self.last_result: dict | None = None

    async def run_once(self) -> dict:
        """
        Run a single sync across all platforms.

        Returns:
            dict: Serialized AllPlatformsSyncResult, or {"success": False, "error": ...}
                  when sync is misconfigured
        """
        try:
            result = await self.service.sync_all()
        except ContestSyncConfigurationError as e:
            logger.error("Contest sync misconfigured", error=str(e))
            return {"success": False, "error": str(e)}

        if result.skipped:
            return result.model_dump(mode="json")

        self.last_run_time = datetime.now(UTC)
        self.last_result = result.model_dump(mode="json")
        return self.last_result

    def get_job_status(self) -> dict:
        return {
            "job_name": "contest_sync",
            "is_running": self.service.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_hours": settings.CONTEST_SYNC_INTERVAL_HOURS,
            "last_result": self.last_result,
        }


contest_sync_job = ContestSyncJob()


async def start_contest_sync_scheduler():
    """Run contest sync immediately, then every CONTEST_SYNC_INTERVAL_HOURS."""
    if not settings.CONTEST_SYNC_ENABLED:
        logger.info("Contest sync scheduler DISABLED", environment=settings.environment)
        return

    interval_seconds = settings.CONTEST_SYNC_INTERVAL_HOURS * 3600
    logger.info("Contest sync scheduler STARTED", interval_hours=settings.CONTEST_SYNC_INTERVAL_HOURS)

    while True:
        try:
            result = await contest_sync_job.run_once()
            if not result.get("skipped", False):
                logger.info(
                    "Contest sync cycle completed",
                    success=result.get("success"),
                    added=result.get("total_added"),
                    updated=result.get("total_updated"),
                )

            await asyncio.sleep(interval_seconds)

        except asyncio.CancelledError:
            logger.info("Contest sync scheduler cancelled")
            break
        except Exception as e:
            logger.error(
                "Error in contest sync scheduler", error=str(e), error_type=type(e).__name__
            )
            await asyncio.sleep(60)
