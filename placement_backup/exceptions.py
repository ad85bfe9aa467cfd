"""
Custom exceptions for the backup subsystem
"""

class BackupError(Exception):
    """Base exception for all backup errors"""
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

class BackupInProgress(BackupError):
    """Raised when a backup or restore is already running"""
    status_code = 409

    def __init__(self, message: str = "Backup already in progress"):
        super().__init__(message)

class CollectionReadFailure(BackupError):
    """Raised when a collection cannot be enumerated"""

    def __init__(self, collection: str, cause: Exception):
        self.collection = collection
        super().__init__(f"Failed to read collection {collection}: {cause}")

class SerializationFailure(BackupError):
    """Raised when the archive cannot be serialized, written or parsed"""
    pass

class CompressionFailure(BackupError):
    """Raised when the archive cannot be compressed or decompressed"""
    pass

class EncryptionFailure(BackupError):
    """Raised when the archive cannot be encrypted or decrypted"""
    pass

class EncryptionKeyMissing(BackupError):
    """Raised when encryption is enabled without a key"""

    def __init__(self, message: str = "Encryption enabled but no encryption key configured"):
        super().__init__(message)

class BackupNotFound(BackupError):
    """Raised when a backup id is unknown"""
    status_code = 404

    def __init__(self, backup_id: str):
        self.backup_id = backup_id
        super().__init__(f"Backup not found: {backup_id}")

class BackupNotRestorable(BackupError):
    """Raised when restoring a backup that did not succeed"""
    status_code = 422

class ArchiveIntegrityError(BackupError):
    """Raised when an archive does not match its recorded checksum"""
    status_code = 422

class DocumentRestoreFailure(BackupError):
    """Raised when a single document cannot be upserted"""

    def __init__(self, collection: str, document_id: str, cause: Exception):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"Failed to restore document {document_id} in {collection}: {cause}")

class MetadataPersistFailure(BackupError):
    """Raised when a metadata sidecar cannot be written"""
    pass

class InvalidStatusTransition(BackupError):
    """Raised when a backup run is moved out of a terminal status"""
    pass

class InvalidSchedule(BackupError):
    """Raised when a schedule expression cannot be parsed"""
    status_code = 400

class MetadataCorrupt(BackupError):
    """Raised when a metadata sidecar exists but cannot be read"""
    status_code = 422

    def __init__(self, backup_id: str, cause: Exception):
        self.backup_id = backup_id
        super().__init__(f"Metadata for backup {backup_id} is unreadable: {cause}")
