"""
Backup Metadata Store
One JSON sidecar per backup run, stored next to the archives
"""

from pathlib import Path
from typing import List, Optional
import os
import logging

from placement_backup.exceptions import MetadataCorrupt, MetadataPersistFailure
from placement_backup.models.backup_models import BackupRun

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ".metadata"


class BackupMetadataStore:
    """File-backed store of BackupRun records keyed by run id"""

    def __init__(self, storage_path: str):
        self.storage_path = Path(storage_path)

    def path_for(self, backup_id: str) -> Path:
        return self.storage_path / f"{backup_id}{METADATA_SUFFIX}"

    def save(self, run: BackupRun) -> None:
        """Write the record atomically (temp file + rename)"""
        path = self.path_for(run.id)
        tmp_path = path.with_name(path.name + ".tmp")

        try:
            self.storage_path.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(run.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to persist metadata for {run.id}: {e}")
            raise MetadataPersistFailure(f"Failed to persist metadata for {run.id}: {e}") from e

    def get(self, backup_id: str) -> Optional[BackupRun]:
        path = self.path_for(backup_id)
        if not path.is_file():
            return None

        try:
            return BackupRun.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Unreadable metadata for {backup_id}: {e}")
            raise MetadataCorrupt(backup_id, e) from e

    def exists(self, backup_id: str) -> bool:
        return self.path_for(backup_id).is_file()

    def list(self) -> List[BackupRun]:
        """All readable records, in no particular order"""
        if not self.storage_path.is_dir():
            return []

        runs = []
        for path in self.storage_path.glob(f"*{METADATA_SUFFIX}"):
            try:
                runs.append(BackupRun.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable metadata file {path.name}: {e}")

        return runs

    def delete(self, backup_id: str) -> bool:
        path = self.path_for(backup_id)
        if not path.exists():
            return False

        path.unlink()
        return True
