"""
Backup scheduler for dbvault.

The BackupScheduler owns two cancellable periodic tasks:
1. Backup loop: upload a backup every interval (and once on start)
2. Cleanup loop: apply retention once per cleanup interval

Invariants:
    - At most one backup upload runs at a time per scheduler
    - A failing run is logged and never stops its loop
    - The scheduler does not own any backup state; every run re-derives
      it from the store listing

How to change safely:
    - Keep loop bodies free of unhandled exceptions
    - Test shutdown while a run is in flight
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from ..config import SchedulerConfig
from ..service import BackupService

logger = logging.getLogger(__name__)


@dataclass
class BackupStatus:
    """Snapshot of backup health for status reporting.

    Attributes:
        enabled: Whether scheduled backups are enabled
        running: Whether the periodic tasks are active
        verified: Whether the latest artifact decoded successfully
        last_backup_key: Key of the latest artifact in the store
        last_backup_at: Store-reported upload time of that artifact
        backup_count: Number of artifacts in the store
    """

    enabled: bool
    running: bool
    verified: bool
    last_backup_key: Optional[str] = None
    last_backup_at: Optional[str] = None
    backup_count: int = 0


class BackupScheduler:
    """Triggers uploads and cleanups on intervals.

    Attributes:
        service: Backup operations to run
        config: Scheduler configuration

    Example:
        >>> scheduler = BackupScheduler(service, config.scheduler)
        >>> await scheduler.start()
        >>> ...
        >>> await scheduler.stop()
    """

    def __init__(self, service: BackupService, config: SchedulerConfig) -> None:
        self.service = service
        self.config = config

        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._backup_lock = asyncio.Lock()
        self._backup_count = 0
        self._backup_failures = 0
        self._cleanup_count = 0
        self._cleanup_failures = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the periodic tasks and return."""
        if self._running:
            logger.debug("Backup scheduler already started")
            return

        if not self.config.enabled:
            logger.info("Backup not configured, scheduler not started")
            return

        self._running = True
        logger.info(
            "Starting backup scheduler",
            extra={
                "interval_minutes": self.config.interval_minutes,
                "cleanup_interval_hours": self.config.cleanup_interval_hours,
            },
        )

        self._tasks = [
            asyncio.create_task(self._backup_loop()),
            asyncio.create_task(self._cleanup_loop()),
        ]

    async def stop(self) -> None:
        """Cancel the periodic tasks and wait for them to finish."""
        if not self._running:
            return

        logger.info("Stopping backup scheduler")
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._running = False

    async def _backup_loop(self) -> None:
        if self.config.run_on_start:
            await self.run_backup_once()

        while self._running:
            await asyncio.sleep(self.config.interval_minutes * 60)
            await self.run_backup_once()

    async def _cleanup_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.config.cleanup_interval_hours * 3600)
            await self.run_cleanup_once()

    async def run_backup_once(self) -> bool:
        """Upload one backup; log and swallow failures.

        Returns:
            True if the upload succeeded
        """
        async with self._backup_lock:
            try:
                await self.service.upload_backup()
            except Exception as e:
                self._backup_failures += 1
                logger.error(f"Scheduled SQLite backup failed: {e}", exc_info=True)
                return False

        self._backup_count += 1
        return True

    async def run_cleanup_once(self) -> bool:
        """Apply retention once; log and swallow failures.

        Returns:
            True if the cleanup run completed
        """
        try:
            await self.service.cleanup_old_backups()
        except Exception as e:
            self._cleanup_failures += 1
            logger.error(f"Cleanup old backups failed: {e}", exc_info=True)
            return False

        self._cleanup_count += 1
        return True

    async def run_full_backup(self) -> bool:
        """Upload a backup, then clean up old ones.

        Cleanup is skipped if the upload failed.
        """
        logger.info("Starting full backup")
        ok = await self.run_backup_once() and await self.run_cleanup_once()
        logger.info("Full backup completed" if ok else "Full backup finished with errors")
        return ok

    async def get_status(self) -> BackupStatus:
        """Report whether backups are enabled, present and restorable."""
        status = BackupStatus(
            enabled=self.config.enabled,
            running=self._running,
            verified=False,
        )
        if not self.config.enabled:
            return status

        try:
            entries = await self.service.list_backups()
        except Exception as e:
            logger.warning(f"Failed to list backups for status: {e}")
            return status

        status.backup_count = len(entries)
        if entries:
            status.last_backup_key = entries[0].key
            status.last_backup_at = entries[0].uploaded_at.isoformat()
            status.verified = await self.service.verify_latest_backup()
        return status

    @property
    def stats(self) -> dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "running": self._running,
            "backup_count": self._backup_count,
            "backup_failures": self._backup_failures,
            "cleanup_count": self._cleanup_count,
            "cleanup_failures": self._cleanup_failures,
        }
