"""
Configuration Settings
Environment variables and backup settings
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

DEFAULT_COLLECTIONS = (
    "users,learnerProfiles,programs,placements,documents,notifications,"
    "audit-logs,sessions,settings,attendance,work-hours,issues,ai-prompts"
)


class BackupConfig(BaseModel):
    """Backup subsystem configuration"""
    enabled: bool = False
    schedule: str = "0 2 * * *"  # Daily at 2 AM UTC
    retention_days: int = Field(30, ge=0, le=36500)
    storage_path: str = "./backups"
    collections: List[str] = Field(default_factory=list)
    compression: bool = False
    encryption: bool = False
    encryption_key: Optional[str] = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "placement_portal"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Admin API
    ADMIN_API_KEY: Optional[str] = None

    # Backups
    BACKUP_ENABLED: bool = False
    BACKUP_SCHEDULE: str = "0 2 * * *"
    BACKUP_RETENTION_DAYS: int = 30
    BACKUP_STORAGE_PATH: str = "./backups"
    BACKUP_COLLECTIONS: str = DEFAULT_COLLECTIONS
    BACKUP_COMPRESSION: bool = False
    BACKUP_ENCRYPTION: bool = False
    BACKUP_ENCRYPTION_KEY: Optional[str] = None

    @property
    def backup_collections(self) -> List[str]:
        """Configured collection names, in capture order"""
        return [name.strip() for name in self.BACKUP_COLLECTIONS.split(",") if name.strip()]

    def backup_config(self) -> BackupConfig:
        return BackupConfig(
            enabled=self.BACKUP_ENABLED,
            schedule=self.BACKUP_SCHEDULE,
            retention_days=self.BACKUP_RETENTION_DAYS,
            storage_path=self.BACKUP_STORAGE_PATH,
            collections=self.backup_collections,
            compression=self.BACKUP_COMPRESSION,
            encryption=self.BACKUP_ENCRYPTION,
            encryption_key=self.BACKUP_ENCRYPTION_KEY,
        )


settings = Settings()
