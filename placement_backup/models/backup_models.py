"""
Backup & Restore Models
Backup run records, restore results and statistics
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict
from datetime import datetime
from enum import Enum

from placement_backup.exceptions import InvalidStatusTransition

ARCHIVE_FORMAT_VERSION = "1.0"

# ============================================================================
# Enums
# ============================================================================

class BackupStatus(str, Enum):
    """Backup run status"""
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"

class RestoreStatus(str, Enum):
    """Restore status"""
    SUCCESS = "success"
    PARTIAL = "partial"

# ============================================================================
# Backup Run
# ============================================================================

class BackupRun(BaseModel):
    """Metadata record for one backup run"""
    id: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    collections: List[str] = []
    collection_errors: Dict[str, str] = {}
    document_count: int = 0
    size_bytes: int = 0
    checksum: str = ""
    compressed: bool = False
    encrypted: bool = False
    status: BackupStatus = BackupStatus.IN_PROGRESS
    error: Optional[str] = None

    @property
    def archive_name(self) -> str:
        """File name of the stored archive"""
        name = f"{self.id}.json"
        if self.compressed:
            name += ".gz"
        if self.encrypted:
            name += ".enc"
        return name

    def mark_success(self, completed_at: datetime) -> None:
        self._finalize(BackupStatus.SUCCESS, completed_at)

    def mark_failed(self, error: str, completed_at: datetime) -> None:
        self._finalize(BackupStatus.FAILED, completed_at)
        self.error = error

    def _finalize(self, status: BackupStatus, completed_at: datetime) -> None:
        # in_progress is the only non-terminal status
        if self.status != BackupStatus.IN_PROGRESS:
            raise InvalidStatusTransition(
                f"Backup {self.id} is already {self.status.value}, cannot mark {status.value}"
            )
        self.status = status
        self.completed_at = completed_at
        self.duration_seconds = (completed_at - self.created_at).total_seconds()

# ============================================================================
# Restore / Verify / Stats
# ============================================================================

class RestoreResult(BaseModel):
    """Outcome of restoring a backup into the live store"""
    backup_id: str
    status: RestoreStatus
    collections: List[str] = []
    documents_restored: int = 0
    documents_failed: int = 0
    started_at: datetime
    completed_at: datetime
    duration_seconds: float = 0

class VerifyResult(BaseModel):
    """Checksum verification result"""
    backup_id: str
    valid: bool
    expected_checksum: str
    actual_checksum: Optional[str] = None
    error: Optional[str] = None

class BackupStats(BaseModel):
    """Backup statistics"""
    total_backups: int = 0
    total_size_bytes: int = 0
    oldest_backup: Optional[datetime] = None
    newest_backup: Optional[datetime] = None
    failed_backups: int = 0

class BackupListResponse(BaseModel):
    """List of backups with statistics"""
    backups: List[BackupRun]
    stats: BackupStats

# ============================================================================
# Scheduler
# ============================================================================

class SchedulerStatus(BaseModel):
    """Scheduler state"""
    running: bool
    schedule: str
    next_run_time: Optional[datetime] = None
    last_run_at: Optional[datetime] = None
    last_run_status: Optional[BackupStatus] = None
    last_error: Optional[str] = Field(None, description="Error of the last failed cycle")
