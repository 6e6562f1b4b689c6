"""
Scheduler module for dbvault.

Runs backup uploads and retention cleanups on independent intervals.

Invariants:
    - Scheduled failures are logged, never raised into the host process
    - The next scheduled run retries independently
"""

from .scheduler import BackupScheduler, BackupStatus

__all__ = ["BackupScheduler", "BackupStatus"]
