"""
Backup Scheduler Service
Automatic backup scheduling and execution
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional
from croniter import croniter
import asyncio
import logging

from placement_backup.exceptions import BackupInProgress, InvalidSchedule
from placement_backup.models.backup_models import BackupRun, BackupStatus, SchedulerStatus
from placement_backup.services.backup_service import BackupService, utcnow

logger = logging.getLogger(__name__)


class CronTrigger:
    """Computes trigger times for a cron expression (UTC)"""

    def __init__(self, expression: str, clock: Callable[[], datetime] = utcnow):
        if not croniter.is_valid(expression):
            raise InvalidSchedule(f"Invalid cron expression: {expression}")

        self.expression = expression
        self.clock = clock

    def next_after(self, moment: datetime) -> datetime:
        """Next trigger time strictly after moment"""
        return croniter(self.expression, moment).get_next(datetime)

    def next_run(self) -> datetime:
        return self.next_after(self.clock())


class BackupScheduler:
    """
    Backup Scheduler

    Runs create_backup() on the cron schedule and prunes expired backups
    after each successful run. Failed cycles are logged and never stop
    the scheduler.
    """

    def __init__(
        self,
        backup_service: BackupService,
        schedule: str,
        retention_days: int,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.backup_service = backup_service
        self.trigger = CronTrigger(schedule, clock)
        self.retention_days = retention_days
        self.clock = clock
        self.sleep = sleep

        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.cycle: Optional[asyncio.Task] = None
        self.next_run_time: Optional[datetime] = None
        self.last_run_at: Optional[datetime] = None
        self.last_run_status: Optional[BackupStatus] = None
        self.last_error: Optional[str] = None

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def start(self):
        """Start the scheduler loop"""
        if self.running:
            logger.warning("Backup scheduler is already running")
            return

        self.running = True
        self.next_run_time = self.trigger.next_run()
        self.task = asyncio.create_task(self._run_scheduler_loop())
        logger.info(f"Backup scheduler started with schedule: {self.trigger.expression}")

    async def stop(self):
        """Stop the scheduler loop"""
        if not self.running:
            return

        self.running = False
        self.next_run_time = None
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None

        # A cycle in flight is shielded from the cancel above
        if self.cycle and not self.cycle.done():
            logger.info("Waiting for the running backup cycle to finish...")
            await self.cycle
        self.cycle = None

        logger.info("Backup scheduler stopped")

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            running=self.running,
            schedule=self.trigger.expression,
            next_run_time=self.next_run_time if self.running else None,
            last_run_at=self.last_run_at,
            last_run_status=self.last_run_status,
            last_error=self.last_error
        )

    # ========================================================================
    # EXECUTION
    # ========================================================================

    async def run_now(self) -> BackupRun:
        """Run one backup cycle immediately, raising any error"""
        logger.info("Running immediate backup...")

        try:
            backup = await self._execute_cycle()
        except Exception as e:
            logger.error(f"Immediate backup failed: {e}")
            raise

        logger.info("Immediate backup completed successfully")
        return backup

    async def _run_scheduler_loop(self):
        """Sleep until the next trigger time, run a cycle, repeat"""
        logger.info("Scheduler loop started")

        next_run = self.next_run_time or self.trigger.next_run()

        while self.running:
            self.next_run_time = next_run
            delay = max((next_run - self.clock()).total_seconds(), 0)

            await self.sleep(delay)

            self.cycle = asyncio.create_task(self._run_cycle())
            await asyncio.shield(self.cycle)
            self.cycle = None

            # Each trigger fires at most once; triggers missed during a long cycle are skipped
            next_run = self.trigger.next_after(max(next_run, self.clock()))

    async def _run_cycle(self):
        """Scheduled cycle: errors are logged, never raised"""
        logger.info("Starting scheduled backup...")

        try:
            await self._execute_cycle()
            logger.info("Scheduled backup completed successfully")
        except BackupInProgress:
            logger.warning("Scheduled backup skipped: another run is in progress")
        except Exception as e:
            logger.exception(f"Scheduled backup failed: {e}")

    async def _execute_cycle(self) -> BackupRun:
        try:
            backup = await self.backup_service.create_backup()
        except BackupInProgress:
            raise
        except Exception as e:
            self.last_run_at = self.clock()
            self.last_run_status = BackupStatus.FAILED
            self.last_error = str(e)
            raise

        self.last_run_at = backup.created_at
        self.last_run_status = backup.status
        self.last_error = None

        deleted = await self.backup_service.prune_expired(self.retention_days)
        if deleted:
            logger.info(f"Old backups cleaned up: {len(deleted)} deleted")

        return backup
