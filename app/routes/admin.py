"""
Admin trigger endpoints for contest sync and notification retries.

Every route requires the x-admin-key header to match ADMIN_API_KEY; the
whole router answers 503 when no key is configured.
"""

import hmac

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.config import settings
from app.db.helpers import PersistenceError
from app.infrastructure.observability.logging import get_logger
from app.models.api.admin_response import NotificationRetryResponse
from app.models.domain.contest_domain import Platform
from app.services.contest_sync_service import (
    AllPlatformsSyncResult,
    CleanupResult,
    ContestSyncConfigurationError,
    ContestSyncService,
    PlatformSyncResult,
    SyncStatus,
    contest_sync_service,
)
from app.services.notification_dispatcher import (
    NotificationDispatcher,
    NotificationConflictError,
    NotificationNotFoundError,
    RetrySweepResult,
    notification_dispatcher,
)

logger = get_logger(__name__)

ADMIN_HEADER = "x-admin-key"


def verify_admin_key(request: Request) -> None:
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=503, detail="Admin API disabled")

    provided = request.headers.get(ADMIN_HEADER)
    if not provided:
        raise HTTPException(status_code=401, detail="Missing admin key")
    if not hmac.compare_digest(provided, settings.ADMIN_API_KEY):
        raise HTTPException(status_code=401, detail="Invalid admin key")


def get_contest_sync_service() -> ContestSyncService:
    return contest_sync_service


def get_notification_dispatcher() -> NotificationDispatcher:
    return notification_dispatcher


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(verify_admin_key)])


@router.post("/contests/sync", response_model=AllPlatformsSyncResult)
async def sync_all_platforms(service: ContestSyncService = Depends(get_contest_sync_service)):
    try:
        result = await service.sync_all()
    except ContestSyncConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    if result.skipped:
        raise HTTPException(status_code=409, detail="Contest sync already in progress")

    logger.info("Admin triggered contest sync", success=result.success)
    return result


@router.post("/contests/sync/{platform}", response_model=PlatformSyncResult)
async def sync_single_platform(
    platform: Platform, service: ContestSyncService = Depends(get_contest_sync_service)
):
    try:
        result = await service.sync_platform(platform)
    except ContestSyncConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    if result.skipped:
        raise HTTPException(status_code=409, detail="Contest sync already in progress")

    logger.info("Admin triggered platform sync", platform=platform.value, success=result.success)
    return result


@router.get("/contests/sync/status", response_model=SyncStatus)
async def sync_status(service: ContestSyncService = Depends(get_contest_sync_service)):
    return service.get_sync_status()


@router.post("/contests/cleanup", response_model=CleanupResult)
async def cleanup_contests(
    days: int | None = Query(default=None, ge=1),
    service: ContestSyncService = Depends(get_contest_sync_service),
):
    try:
        return await service.cleanup_old_contests(days)
    except PersistenceError as e:
        logger.error("Admin contest cleanup failed", error=str(e))
        raise HTTPException(status_code=503, detail="Contest cleanup failed") from e


@router.post("/notifications/retry-sweep", response_model=RetrySweepResult)
async def retry_sweep(dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)):
    try:
        result = await dispatcher.run_retry_sweep()
    except PersistenceError as e:
        logger.error("Admin retry sweep failed", error=str(e))
        raise HTTPException(status_code=503, detail="Retry sweep failed") from e

    if result.skipped:
        raise HTTPException(status_code=409, detail="Retry sweep already in progress")
    return result


@router.post("/notifications/{notification_id}/retry", response_model=NotificationRetryResponse)
async def retry_notification(
    notification_id: str,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    try:
        notification = await dispatcher.dispatch_notification(notification_id)
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except NotificationConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except PersistenceError as e:
        logger.error("Admin notification retry failed", notification_id=notification_id, error=str(e))
        raise HTTPException(status_code=503, detail="Notification retry failed") from e

    return NotificationRetryResponse.from_notification(notification)
