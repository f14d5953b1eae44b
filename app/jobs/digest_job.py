"""
Digest Background Job - daily and weekly contest summaries.

Runs every day at DIGEST_HOUR (UTC). Daily digests go out every run;
weekly digests go out on Mondays.
"""

import asyncio
from datetime import UTC, datetime

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.jobs.scheduling import next_daily_run
from app.models.domain.contest_domain import ensure_utc
from app.models.domain.user_domain import AlertFrequency
from app.services.digest_service import DigestService, digest_service

logger = get_logger(__name__)

WEEKLY_DIGEST_WEEKDAY = 0  # Monday


class DigestJob:
    def __init__(self, service: DigestService | None = None):
        self.service = service or digest_service
        self.is_running = False

    async def run_once(self, now: datetime | None = None) -> dict:
        if self.is_running:
            logger.warning("Digest job already running, skipping")
            return {"success": False, "skipped": True, "error": "Already running"}

        self.is_running = True
        now = ensure_utc(now or datetime.now(UTC))
        frequencies = [AlertFrequency.DAILY]
        if now.weekday() == WEEKLY_DIGEST_WEEKDAY:
            frequencies.append(AlertFrequency.WEEKLY)

        result = {"success": True, "digests": {}, "errors": []}

        try:
            for frequency in frequencies:
                try:
                    digest = await self.service.send_digests(frequency, now)
                    result["digests"][frequency.value] = digest.model_dump(mode="json")
                except Exception as e:
                    error_msg = f"Failed to send {frequency.value} digests: {e}"
                    logger.error(error_msg)
                    result["errors"].append(error_msg)
        finally:
            self.is_running = False

        result["success"] = not result["errors"]
        return result


digest_job = DigestJob()


async def start_digest_scheduler():
    """Run digests daily at DIGEST_HOUR UTC."""
    if not settings.DIGEST_ENABLED:
        logger.info("Digest scheduler DISABLED", environment=settings.environment)
        return

    logger.info("Digest scheduler STARTED", schedule_hour=settings.DIGEST_HOUR)

    while True:
        try:
            now = datetime.now(UTC)
            next_run = next_daily_run(now, settings.DIGEST_HOUR)
            await asyncio.sleep((next_run - now).total_seconds())

            result = await digest_job.run_once()
            logger.info("Scheduled digest run completed", result=result)

        except asyncio.CancelledError:
            logger.info("Digest scheduler cancelled")
            break
        except Exception as e:
            logger.error("Error in digest scheduler, will retry", error=str(e))
            await asyncio.sleep(3600)
