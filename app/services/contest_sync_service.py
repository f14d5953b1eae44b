"""
Contest sync orchestration.

Fans out to every registered platform adapter concurrently and upserts the
results into the contest store. Each platform is its own failure domain:
an unreachable API or a contest that fails to persist is recorded in that
platform's result and never aborts the rest of the batch.

Scheduled runs and admin-triggered runs go through the same methods.
"""

import asyncio
import time
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field, computed_field

from app.config import settings
from app.db.helpers import PersistenceError
from app.infrastructure.observability.logging import get_logger, log_sync_result
from app.integrations.platforms.base import PlatformAdapter, PlatformUnavailableError
from app.integrations.platforms.registry import build_platform_adapters
from app.models.domain.contest_domain import Platform
from app.repositories.contest_repository import ContestStore, contest_repository

logger = get_logger(__name__)


class ContestSyncConfigurationError(Exception):
    """Sync cannot run at all (no adapters registered, unknown platform)."""


class PlatformSyncResult(BaseModel):
    platform: Platform
    success: bool
    skipped: bool = False
    contests_fetched: int = 0
    contests_added: int = 0
    contests_updated: int = 0
    contests_failed: int = 0
    error: str | None = None
    synced_at: datetime | None = None
    duration_ms: float = 0.0


class AllPlatformsSyncResult(BaseModel):
    skipped: bool = False
    results: dict[Platform, PlatformSyncResult] = Field(default_factory=dict)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @computed_field
    @property
    def success(self) -> bool:
        return not self.skipped and all(r.success for r in self.results.values())

    @computed_field
    @property
    def total_added(self) -> int:
        return sum(r.contests_added for r in self.results.values())

    @computed_field
    @property
    def total_updated(self) -> int:
        return sum(r.contests_updated for r in self.results.values())

    @computed_field
    @property
    def total_failed(self) -> int:
        return sum(r.contests_failed for r in self.results.values())


class CleanupResult(BaseModel):
    days: int
    cutoff: datetime
    deleted: int


class SyncStatus(BaseModel):
    is_running: bool
    enabled_platforms: list[Platform]
    last_sync_at: datetime | None = None
    platforms: dict[Platform, PlatformSyncResult] = Field(default_factory=dict)


class ContestSyncService:
    def __init__(
        self,
        adapters: dict[Platform, PlatformAdapter] | None = None,
        store: ContestStore | None = None,
    ):
        self.adapters = adapters if adapters is not None else build_platform_adapters()
        self.store = store or contest_repository
        self.is_running = False
        self._last_results: dict[Platform, PlatformSyncResult] = {}
        self._last_sync_at: datetime | None = None

    async def sync_all(self) -> AllPlatformsSyncResult:
        """
        Sync every registered platform.

        Raises:
            ContestSyncConfigurationError: If no adapters are registered
        """
        if not self.adapters:
            raise ContestSyncConfigurationError("No platform adapters registered")
        return await self._run(list(self.adapters))

    async def sync_platform(self, platform: Platform) -> PlatformSyncResult:
        """
        Sync one platform through the same guarded path as sync_all.

        Raises:
            ContestSyncConfigurationError: If the platform has no adapter
        """
        if platform not in self.adapters:
            raise ContestSyncConfigurationError(f"No adapter registered for {platform.value}")

        result = await self._run([platform])
        if result.skipped:
            return PlatformSyncResult(
                platform=platform, success=False, skipped=True, error="Sync already in progress"
            )
        return result.results[platform]

    async def _run(self, platforms: list[Platform]) -> AllPlatformsSyncResult:
        if self.is_running:
            logger.warning("Contest sync already running, skipping", platforms=[p.value for p in platforms])
            return AllPlatformsSyncResult(skipped=True)

        self.is_running = True
        started_at = datetime.now(UTC)
        logger.info("Starting contest sync", platforms=[p.value for p in platforms])

        try:
            results = await asyncio.gather(
                *(self._sync_one(platform, self.adapters[platform]) for platform in platforms)
            )
        finally:
            self.is_running = False

        finished_at = datetime.now(UTC)
        for result in results:
            self._last_results[result.platform] = result
        self._last_sync_at = finished_at

        summary = AllPlatformsSyncResult(
            results={r.platform: r for r in results},
            started_at=started_at,
            finished_at=finished_at,
        )
        logger.info(
            "Contest sync completed",
            success=summary.success,
            added=summary.total_added,
            updated=summary.total_updated,
            failed=summary.total_failed,
            duration_seconds=(finished_at - started_at).total_seconds(),
        )
        return summary

    async def _sync_one(self, platform: Platform, adapter: PlatformAdapter) -> PlatformSyncResult:
        start = time.time()
        result = PlatformSyncResult(platform=platform, success=False)

        try:
            contests = await adapter.fetch_contests()

        except PlatformUnavailableError as e:
            result.error = str(e)
        except Exception as e:
            logger.error(
                "Unexpected adapter error",
                platform=platform.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            result.error = f"{type(e).__name__}: {e}"

        else:
            result.success = True
            result.contests_fetched = len(contests)

            for contest in contests:
                try:
                    if await self.store.upsert(contest):
                        result.contests_added += 1
                    else:
                        result.contests_updated += 1
                except PersistenceError as e:
                    result.contests_failed += 1
                    logger.error(
                        "Failed to persist contest",
                        platform=platform.value,
                        external_id=contest.external_id,
                        operation=e.operation,
                        error=str(e),
                    )

        result.synced_at = datetime.now(UTC)
        result.duration_ms = round((time.time() - start) * 1000, 2)
        log_sync_result(platform.value, result.model_dump(mode="json"))
        return result

    async def cleanup_old_contests(
        self, days: int | None = None, now: datetime | None = None
    ) -> CleanupResult:
        """Delete contests that ended more than `days` ago."""
        days = days if days is not None else settings.CONTEST_CLEANUP_DAYS
        if days < 1:
            raise ValueError("Retention days must be at least 1")

        cutoff = (now or datetime.now(UTC)) - timedelta(days=days)
        deleted = await self.store.delete_older_than(cutoff)

        logger.info("Contest cleanup completed", days=days, cutoff=cutoff.isoformat(), deleted=deleted)
        return CleanupResult(days=days, cutoff=cutoff, deleted=deleted)

    def get_sync_status(self) -> SyncStatus:
        return SyncStatus(
            is_running=self.is_running,
            enabled_platforms=list(self.adapters),
            last_sync_at=self._last_sync_at,
            platforms=dict(self._last_results),
        )

    async def health_check(self) -> dict[str, bool]:
        """Probe every adapter concurrently."""
        platforms = list(self.adapters)
        checks = await asyncio.gather(*(self.adapters[p].health_check() for p in platforms))
        return {platform.value: healthy for platform, healthy in zip(platforms, checks)}


contest_sync_service = ContestSyncService()
