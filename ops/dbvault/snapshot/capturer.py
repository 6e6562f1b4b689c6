"""
SQLite snapshot capture for dbvault.

The capturer produces a point-in-time consistent copy of the live
database without blocking concurrent writers, using the SQLite online
backup API rather than a raw file copy (which could capture a torn write).

Invariants:
    - Captures are consistent (SQLite backup API)
    - The temporary snapshot file is always removed, on success or failure
    - A missing source database is an error, never an empty snapshot

How to change safely:
    - Keep the temp file private to this process (mkstemp)
    - The scheduler must not run two captures of the same database at once
"""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
import tempfile
from pathlib import Path

from ..errors import CaptureError

logger = logging.getLogger(__name__)


class SnapshotCapturer:
    """Captures consistent snapshots of a SQLite database.

    Attributes:
        db_path: Path of the live database
        temp_dir: Directory for the temporary snapshot (system default if None)

    Example:
        >>> capturer = SnapshotCapturer("store/messages.db")
        >>> db_bytes = await capturer.capture()
    """

    def __init__(self, db_path: str | Path, temp_dir: str | None = None) -> None:
        self.db_path = Path(db_path)
        self.temp_dir = temp_dir

    @property
    def engine_version(self) -> str:
        """Version of the SQLite library performing the export."""
        return sqlite3.sqlite_version

    async def capture(self) -> bytes:
        """Capture the database and return its bytes.

        Raises:
            CaptureError: If the export fails (missing source, disk full, ...)
        """
        tmp_path = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix="dbvault-", suffix=".db", dir=self.temp_dir)
            os.close(fd)
            tmp_path = Path(tmp_name)

            await asyncio.get_running_loop().run_in_executor(
                None,
                self._backup_database,
                self.db_path,
                tmp_path,
            )
            data = tmp_path.read_bytes()
        except (sqlite3.Error, OSError) as e:
            raise CaptureError(
                f"Snapshot export failed: {e}", source_path=str(self.db_path)
            ) from e
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()

        logger.debug(
            "Captured snapshot",
            extra={"db_path": str(self.db_path), "size_bytes": len(data)},
        )
        return data

    def _backup_database(self, source_path: Path, dest_path: Path) -> None:
        """Create consistent database backup using SQLite backup API."""
        # mode=ro: a missing source raises instead of creating an empty db
        source_uri = source_path.resolve().as_uri() + "?mode=ro"
        source_conn = sqlite3.connect(source_uri, uri=True)
        try:
            dest_conn = sqlite3.connect(str(dest_path))
            try:
                source_conn.backup(dest_conn)
            finally:
                dest_conn.close()
        finally:
            source_conn.close()
