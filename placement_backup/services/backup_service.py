"""
Backup Service
Handles backup creation, restoration, and management
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Any
import logging

from placement_backup.config import BackupConfig
from placement_backup.exceptions import (
    ArchiveIntegrityError, BackupError, BackupInProgress, BackupNotFound,
    BackupNotRestorable, CollectionReadFailure, DocumentRestoreFailure,
    EncryptionKeyMissing, MetadataCorrupt, SerializationFailure
)
from placement_backup.models.backup_models import (
    BackupRun, BackupStats, BackupStatus, RestoreResult, RestoreStatus, VerifyResult
)
from placement_backup.services import archive_codec
from placement_backup.services.document_store import DocumentStore
from placement_backup.services.encryption_service import EncryptionService
from placement_backup.services.metadata_store import BackupMetadataStore

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES = (".json", ".json.gz", ".json.enc", ".json.gz.enc")
EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunGuard:
    """
    Single-flight guard

    At most one holder at a time; acquire() never blocks or queues.
    """

    def __init__(self):
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def acquire(self) -> bool:
        if self._active:
            return False
        self._active = True
        return True

    def release(self) -> None:
        self._active = False


class BackupService:
    """
    Backup and Restore Service

    Features:
    - Full snapshots of the configured collections
    - Partial success when individual collections fail
    - Compression and encryption of stored archives
    - Checksum verification
    - Retention pruning
    """

    def __init__(
        self,
        store: DocumentStore,
        config: BackupConfig,
        metadata_store: Optional[BackupMetadataStore] = None,
        guard: Optional[RunGuard] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.config = config
        self.storage_path = Path(config.storage_path)
        self.metadata = metadata_store or BackupMetadataStore(config.storage_path)
        self.guard = guard or RunGuard()
        self.clock = clock

    @property
    def is_running(self) -> bool:
        return self.guard.active

    # ========================================================================
    # CREATE BACKUP
    # ========================================================================

    async def create_backup(self) -> BackupRun:
        """
        Create a full backup of the configured collections

        Returns:
            The finalized backup run

        Raises:
            BackupInProgress: another backup or restore is active
        """

        if not self.guard.acquire():
            logger.warning("Backup requested while another run is active")
            raise BackupInProgress()

        try:
            return await self._run_backup()
        finally:
            self.guard.release()

    async def _run_backup(self) -> BackupRun:
        created_at = self.clock()
        run = BackupRun(
            id=self._new_backup_id(created_at),
            created_at=created_at,
            compressed=self.config.compression,
            encrypted=self.config.encryption
        )

        # Persist before reading any data so interrupted runs stay visible
        self.metadata.save(run)
        logger.info(f"Starting backup {run.id}")

        try:
            encryption = self._encryption_service() if self.config.encryption else None

            data = await self._read_collections(run)
            archive = archive_codec.build_archive(created_at, self.config.collections, data)
            payload = archive_codec.serialize(archive)

            run.checksum = archive_codec.compute_checksum(payload)
            run.document_count = sum(len(documents) for documents in data.values())

            archive_path = self._write_archive(run.id, payload)

            if self.config.compression:
                archive_path = self._transform_in_place(archive_path, ".gz", archive_codec.compress)

            if encryption:
                archive_path = self._transform_in_place(archive_path, ".enc", encryption.encrypt)

            run.size_bytes = archive_path.stat().st_size
            run.mark_success(self.clock())

        except Exception as e:
            logger.error(f"Backup {run.id} failed: {e}")
            self._remove_archive_files(run.id)
            run.mark_failed(str(e), self.clock())
            self.metadata.save(run)
            raise

        self.metadata.save(run)

        logger.info(
            f"Backup {run.id} completed: {len(run.collections)} collections, "
            f"{run.document_count} documents, {run.size_bytes} bytes"
        )
        return run

    async def _read_collections(self, run: BackupRun) -> Dict[str, List[Dict[str, Any]]]:
        """Read every configured collection, skipping the ones that fail"""

        data = {}

        for collection in self.config.collections:
            try:
                documents = await self.store.read_all_documents(collection)
            except Exception as e:
                failure = CollectionReadFailure(collection, e)
                logger.warning(f"Skipping collection: {failure}")
                run.collection_errors[collection] = str(e)
                continue

            data[collection] = documents
            run.collections.append(collection)
            logger.info(f"Backed up {len(documents)} documents from {collection}")

        return data

    def _write_archive(self, backup_id: str, payload: bytes) -> Path:
        path = self.storage_path / f"{backup_id}.json"
        try:
            self.storage_path.mkdir(parents=True, exist_ok=True)
            path.write_bytes(payload)
        except OSError as e:
            raise SerializationFailure(f"Failed to write archive {path.name}: {e}") from e
        return path

    def _transform_in_place(
        self,
        path: Path,
        suffix: str,
        transform: Callable[[bytes], bytes]
    ) -> Path:
        """Replace the file at path with transform(contents) at path + suffix"""
        target = path.with_name(path.name + suffix)
        target.write_bytes(transform(path.read_bytes()))
        path.unlink()
        return target

    # ========================================================================
    # RESTORE
    # ========================================================================

    async def restore_backup(self, backup_id: str) -> RestoreResult:
        """
        Restore from backup

        Upserts every archived document by id. Documents missing from the
        archive are left untouched.

        Args:
            backup_id: Backup ID

        Returns:
            Restore result with per-document counts
        """

        run = self._get_run(backup_id)

        if run.status != BackupStatus.SUCCESS:
            raise BackupNotRestorable(f"Backup status is {run.status.value}, cannot restore")

        if not self.guard.acquire():
            logger.warning(f"Restore of {backup_id} requested while another run is active")
            raise BackupInProgress("Cannot restore while a backup or restore is in progress")

        try:
            return await self._run_restore(run)
        finally:
            self.guard.release()

    async def _run_restore(self, run: BackupRun) -> RestoreResult:
        started_at = self.clock()
        logger.info(f"Starting restore from backup {run.id}")

        payload = self._load_payload(run)

        checksum = archive_codec.compute_checksum(payload)
        if checksum != run.checksum:
            raise ArchiveIntegrityError(
                f"Checksum mismatch for backup {run.id}: expected {run.checksum}, got {checksum}"
            )

        archive = archive_codec.parse(payload)

        restored = 0
        failed = 0
        collections = []

        for collection, documents in archive["data"].items():
            collections.append(collection)
            logger.info(f"Restoring collection: {collection}")

            for doc in documents:
                try:
                    await self.store.upsert_document(collection, doc["id"], doc.get("fields", {}))
                    restored += 1
                except Exception as e:
                    failure = DocumentRestoreFailure(collection, str(doc.get("id")), e)
                    logger.error(str(failure))
                    failed += 1

            logger.info(f"Restored {len(documents)} documents to {collection}")

        completed_at = self.clock()
        logger.info(f"Restore of {run.id} finished: {restored} restored, {failed} failed")

        return RestoreResult(
            backup_id=run.id,
            status=RestoreStatus.PARTIAL if failed else RestoreStatus.SUCCESS,
            collections=collections,
            documents_restored=restored,
            documents_failed=failed,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds()
        )

    def _load_payload(self, run: BackupRun) -> bytes:
        """Read the archive and undo its transforms: decrypt, then decompress"""

        path = self.storage_path / run.archive_name
        try:
            payload = path.read_bytes()
        except FileNotFoundError as e:
            raise ArchiveIntegrityError(f"Archive file missing for backup {run.id}") from e

        if run.encrypted:
            payload = self._encryption_service().decrypt(payload)

        if run.compressed:
            payload = archive_codec.decompress(payload)

        return payload

    # ========================================================================
    # VERIFY
    # ========================================================================

    async def verify_backup(self, backup_id: str) -> VerifyResult:
        """Recompute the archive checksum and compare it to the recorded one"""

        run = self._get_run(backup_id)

        try:
            actual = archive_codec.compute_checksum(self._load_payload(run))
        except BackupError as e:
            logger.warning(f"Verification of {backup_id} failed: {e}")
            return VerifyResult(
                backup_id=backup_id,
                valid=False,
                expected_checksum=run.checksum,
                error=str(e)
            )

        return VerifyResult(
            backup_id=backup_id,
            valid=actual == run.checksum,
            expected_checksum=run.checksum,
            actual_checksum=actual
        )

    # ========================================================================
    # LIST / GET
    # ========================================================================

    async def list_backups(self) -> List[BackupRun]:
        """List all backups, newest first"""
        return sorted(self.metadata.list(), key=lambda run: (run.created_at, run.id), reverse=True)

    async def get_backup(self, backup_id: str) -> BackupRun:
        return self._get_run(backup_id)

    # ========================================================================
    # DELETE / PRUNE
    # ========================================================================

    async def delete_backup(self, backup_id: str) -> None:
        """Delete archive and metadata together"""

        if self.guard.active:
            try:
                run = self.metadata.get(backup_id)
            except MetadataCorrupt:
                run = None
            if run is not None and run.status == BackupStatus.IN_PROGRESS:
                raise BackupInProgress(f"Backup {backup_id} is still running")

        archive_found = self._remove_archive_files(backup_id)
        # Metadata goes last so a failed archive delete leaves a retryable record
        metadata_found = self.metadata.delete(backup_id)

        if not archive_found and not metadata_found:
            raise BackupNotFound(backup_id)

        logger.info(f"Deleted backup {backup_id}")

    async def prune_expired(self, retention_days: Optional[int] = None) -> List[str]:
        """
        Delete backups older than the retention period

        Args:
            retention_days: Age threshold (defaults to configured retention)

        Returns:
            IDs of deleted backups
        """

        if retention_days is None:
            retention_days = self.config.retention_days

        now = self.clock()
        if retention_days > (now - EPOCH_MIN).days:
            # Cutoff would fall before datetime.min: nothing is that old
            return []

        cutoff = now - timedelta(days=retention_days)
        deleted = []

        for run in await self.list_backups():
            if run.created_at > cutoff:
                continue

            try:
                await self.delete_backup(run.id)
                deleted.append(run.id)
                logger.info(f"Deleted old backup: {run.id}")
            except Exception as e:
                logger.error(f"Error deleting backup {run.id}: {e}")

        return deleted

    # ========================================================================
    # STATISTICS
    # ========================================================================

    async def get_stats(self) -> BackupStats:
        backups = await self.list_backups()

        return BackupStats(
            total_backups=len(backups),
            total_size_bytes=sum(run.size_bytes for run in backups),
            oldest_backup=backups[-1].created_at if backups else None,
            newest_backup=backups[0].created_at if backups else None,
            failed_backups=sum(1 for run in backups if run.status == BackupStatus.FAILED)
        )

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def _get_run(self, backup_id: str) -> BackupRun:
        run = self.metadata.get(backup_id)
        if run is None:
            raise BackupNotFound(backup_id)
        return run

    def _new_backup_id(self, created_at: datetime) -> str:
        base = f"backup_{int(created_at.timestamp() * 1000)}"
        backup_id = base
        n = 1
        while self.metadata.exists(backup_id) or self._archive_files(backup_id):
            backup_id = f"{base}_{n}"
            n += 1
        return backup_id

    def _encryption_service(self) -> EncryptionService:
        if not self.config.encryption_key:
            raise EncryptionKeyMissing()
        return EncryptionService(self.config.encryption_key)

    def _archive_files(self, backup_id: str) -> List[Path]:
        candidates = [self.storage_path / f"{backup_id}{suffix}" for suffix in ARCHIVE_SUFFIXES]
        return [path for path in candidates if path.exists()]

    def _remove_archive_files(self, backup_id: str) -> bool:
        files = self._archive_files(backup_id)
        for path in files:
            path.unlink()
        return bool(files)
