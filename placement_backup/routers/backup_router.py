"""
Backup Router
Admin API endpoints for backup and restore operations
"""

from fastapi import APIRouter, HTTPException, Depends, Request, status
import logging

from placement_backup.exceptions import BackupError
from placement_backup.models.backup_models import (
    BackupRun,
    BackupListResponse,
    BackupStats,
    RestoreResult,
    SchedulerStatus,
    VerifyResult
)
from placement_backup.middleware.auth_middleware import verify_admin_key
from placement_backup.services.backup_service import BackupService
from placement_backup.services.scheduler_service import BackupScheduler

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_admin_key)])


def get_backup_service(request: Request) -> BackupService:
    return request.app.state.backup_service


def get_scheduler(request: Request) -> BackupScheduler:
    return request.app.state.backup_scheduler


def _http_error(action: str, error: BackupError) -> HTTPException:
    logger.error(f"Failed to {action}: {error.message}")
    return HTTPException(
        status_code=error.status_code,
        detail=f"Failed to {action}: {error.message}"
    )

# ============================================================================
# CREATE BACKUP
# ============================================================================

@router.post("/backups", response_model=BackupRun, status_code=status.HTTP_201_CREATED)
async def create_backup(scheduler: BackupScheduler = Depends(get_scheduler)):
    """
    Run a backup immediately

    Returns:
    - The finished backup run
    - 409 if another backup or restore is running
    """

    try:
        return await scheduler.run_now()
    except BackupError as e:
        raise _http_error("create backup", e)


# ============================================================================
# LIST BACKUPS
# ============================================================================

@router.get("/backups", response_model=BackupListResponse)
async def list_backups(backup_service: BackupService = Depends(get_backup_service)):
    """
    List all backups (newest first) with statistics
    """

    backups = await backup_service.list_backups()
    stats = await backup_service.get_stats()

    return BackupListResponse(backups=backups, stats=stats)


@router.get("/backups/stats", response_model=BackupStats)
async def get_backup_stats(backup_service: BackupService = Depends(get_backup_service)):
    """Backup count, total size, oldest/newest and failed runs"""
    return await backup_service.get_stats()


# ============================================================================
# GET / VERIFY BACKUP
# ============================================================================

@router.get("/backups/{backup_id}", response_model=BackupRun)
async def get_backup(
    backup_id: str,
    backup_service: BackupService = Depends(get_backup_service)
):
    try:
        return await backup_service.get_backup(backup_id)
    except BackupError as e:
        raise _http_error("get backup", e)


@router.get("/backups/{backup_id}/verify", response_model=VerifyResult)
async def verify_backup(
    backup_id: str,
    backup_service: BackupService = Depends(get_backup_service)
):
    """Check the stored archive against its recorded checksum"""

    try:
        return await backup_service.verify_backup(backup_id)
    except BackupError as e:
        raise _http_error("verify backup", e)


# ============================================================================
# RESTORE
# ============================================================================

@router.post("/backups/{backup_id}/restore", response_model=RestoreResult)
async def restore_backup(
    backup_id: str,
    backup_service: BackupService = Depends(get_backup_service)
):
    """
    Restore a backup into the live database

    Documents are upserted by id; nothing is deleted.
    """

    try:
        return await backup_service.restore_backup(backup_id)
    except BackupError as e:
        raise _http_error("restore backup", e)


# ============================================================================
# DELETE BACKUP
# ============================================================================

@router.delete("/backups/{backup_id}")
async def delete_backup(
    backup_id: str,
    backup_service: BackupService = Depends(get_backup_service)
):
    try:
        await backup_service.delete_backup(backup_id)
    except BackupError as e:
        raise _http_error("delete backup", e)

    return {
        "success": True,
        "message": "Backup deleted successfully"
    }


# ============================================================================
# SCHEDULER
# ============================================================================

@router.get("/scheduler/status", response_model=SchedulerStatus)
async def scheduler_status(scheduler: BackupScheduler = Depends(get_scheduler)):
    return scheduler.status()
