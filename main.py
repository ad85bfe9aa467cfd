"""
Placement Portal Backup Service
FastAPI + MongoDB snapshot backups
"""
import logging
from contextlib import asynccontextmanager

from placement_backup.config import settings

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)

logger = logging.getLogger(__name__)

from fastapi import FastAPI
from placement_backup.database import connect_db, close_db, get_database
from placement_backup.routers import backup_router
from placement_backup.services.backup_service import BackupService
from placement_backup.services.document_store import MongoDocumentStore
from placement_backup.services.scheduler_service import BackupScheduler


# ============================================================================
# Lifespan Context Manager
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    Handles startup and shutdown events
    """
    # ========== STARTUP ==========
    logger.info("Starting backup service...")

    # 1. Connect to database
    await connect_db()
    db = await get_database()

    # 2. Wire the backup service and scheduler (one instance per process)
    backup_config = settings.backup_config()
    backup_service = BackupService(MongoDocumentStore(db), backup_config)
    scheduler = BackupScheduler(
        backup_service,
        schedule=backup_config.schedule,
        retention_days=backup_config.retention_days
    )
    app.state.backup_service = backup_service
    app.state.backup_scheduler = scheduler

    # 3. Start the scheduler if enabled
    if backup_config.enabled:
        await scheduler.start()
    else:
        logger.info("Backup scheduler disabled (BACKUP_ENABLED=false)")

    logger.info(f"Backups stored in {backup_config.storage_path}")

    yield

    # ========== SHUTDOWN ==========
    logger.info("Shutting down backup service...")

    await scheduler.stop()
    await close_db()

    logger.info("Backup service stopped")


# ============================================================================
# Create FastAPI App
# ============================================================================

def create_app() -> FastAPI:
    app = FastAPI(
        title="Placement Portal Backup API",
        description="Snapshot backup, restore and retention for the placement portal database",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan
    )

    @app.get("/")
    async def root():
        """API health check"""
        return {
            "service": "Placement Portal Backup API",
            "version": "1.0.0",
            "status": "healthy",
            "docs": "/api/docs"
        }

    @app.get("/health")
    async def health_check():
        """Detailed health check"""
        scheduler = getattr(app.state, "backup_scheduler", None)
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "scheduler_running": bool(scheduler and scheduler.running)
        }

    app.include_router(backup_router.router, prefix="/api", tags=["Backup & Restore"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)
