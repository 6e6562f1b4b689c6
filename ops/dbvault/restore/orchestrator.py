"""
Restore orchestrator for dbvault.

Replaces the live database with a decoded backup artifact.

The restore process:
1. Resolve the target artifact (explicit key or latest upload)
2. Download the artifact and, if present, its metadata
3. Decode and validate (authentication, checksum, header)
4. Copy the live database to a local safety copy
5. Atomically replace the live database

State machine:
    IDLE -> RESOLVING -> DOWNLOADING -> DECODING -> SAFETY_COPYING
         -> WRITING -> DONE
    Any state except DONE may move to FAILED.

Invariants:
    - Nothing touches the live path before decoding succeeded
    - The safety copy is complete before the live file is replaced
    - WRITING is the single point of no return; the replace is atomic
    - Safety copies are never deleted automatically
    - Failures propagate to the caller

How to change safely:
    - Test restore with corrupted, truncated and foreign artifacts
    - Never relax validation to "recover" a failing artifact
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..codec import ArtifactCodec, BackupMetadata
from ..errors import NotFoundError
from ..store import RemoteStore, StoredObject, daily_prefix, is_metadata_key, metadata_key
from ..store.base import latest_artifact

logger = logging.getLogger(__name__)


class RestoreState(Enum):
    """Restore progress states."""

    IDLE = "idle"
    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    DECODING = "decoding"
    SAFETY_COPYING = "safety_copying"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RestoreResult:
    """Result of a restore.

    Attributes:
        key: Artifact key that was restored
        size_bytes: Size of the restored database
        safety_copy_path: Local copy of the previous database, if one existed
        checksum_verified: Whether a metadata checksum was checked
        duration_ms: Total restore duration
        dry_run: True if the live database was left untouched on purpose
    """

    key: str
    size_bytes: int
    safety_copy_path: Optional[str]
    checksum_verified: bool
    duration_ms: int
    dry_run: bool = False


class RestoreOrchestrator:
    """Drives one restore from remote artifact to live database.

    Attributes:
        store: Remote store holding the artifacts
        codec: Artifact codec holding the decryption key
        db_path: Live database path
        backup_prefix: Key prefix of the artifacts
        state: Current RestoreState

    Example:
        >>> orchestrator = RestoreOrchestrator(store, codec, db_path, "dbvault-backup")
        >>> result = await orchestrator.restore()
        >>> print(result.safety_copy_path)
    """

    def __init__(
        self,
        store: RemoteStore,
        codec: ArtifactCodec,
        db_path: str | Path,
        backup_prefix: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.codec = codec
        self.db_path = Path(db_path)
        self.backup_prefix = backup_prefix
        self.state = RestoreState.IDLE
        self._clock = clock

    def _transition(self, state: RestoreState) -> None:
        logger.debug(f"Restore state {self.state.value} -> {state.value}")
        self.state = state

    async def restore(self, key: Optional[str] = None, dry_run: bool = False) -> RestoreResult:
        """Restore the live database from a backup artifact.

        Args:
            key: Artifact key to restore (latest upload if None)
            dry_run: Stop after a successful decode, leaving the disk untouched

        Returns:
            RestoreResult describing the restore

        Raises:
            NotFoundError: No artifact exists, or key is not in the store
            IntegrityError: Authentication or checksum failure
            FormatError: Malformed stream, metadata or database header
            RemoteStoreError: Listing or download failed
            OSError: Safety copy or write failed
        """
        start_time = time.time()
        try:
            self._transition(RestoreState.RESOLVING)
            artifact, meta_obj = await self._resolve(key)
            logger.info("Starting restore", extra={"key": artifact.key})

            self._transition(RestoreState.DOWNLOADING)
            data = await self.store.fetch(artifact.url)
            metadata = None
            if meta_obj is not None:
                metadata = BackupMetadata.from_json(await self.store.fetch(meta_obj.url))
            else:
                logger.warning(
                    "No metadata for artifact, skipping checksum verification",
                    extra={"key": artifact.key},
                )

            self._transition(RestoreState.DECODING)
            plaintext = await self._run_blocking(self.codec.decode, data, metadata)

            safety_copy = None
            if not dry_run:
                self._transition(RestoreState.SAFETY_COPYING)
                safety_copy = await self._run_blocking(self._make_safety_copy)

                self._transition(RestoreState.WRITING)
                await self._run_blocking(self._replace_live_database, plaintext)

            self._transition(RestoreState.DONE)

        except Exception as e:
            self._transition(RestoreState.FAILED)
            logger.error(f"Restore failed: {e}", exc_info=True)
            raise

        result = RestoreResult(
            key=artifact.key,
            size_bytes=len(plaintext),
            safety_copy_path=str(safety_copy) if safety_copy else None,
            checksum_verified=metadata is not None,
            duration_ms=int((time.time() - start_time) * 1000),
            dry_run=dry_run,
        )
        logger.info(
            "Database restored successfully" if not dry_run else "Dry-run restore verified",
            extra={
                "key": result.key,
                "size_bytes": result.size_bytes,
                "safety_copy_path": result.safety_copy_path,
            },
        )
        return result

    async def _resolve(self, key: Optional[str]) -> tuple[StoredObject, Optional[StoredObject]]:
        """Find the artifact and its metadata object in the store listing."""
        if key is None:
            objects = await self.store.list(daily_prefix(self.backup_prefix))
            artifact = latest_artifact(objects)
            if artifact is None:
                raise NotFoundError("No backup found")
        elif is_metadata_key(key):
            raise NotFoundError(f"Not a backup artifact: {key}", key=key)
        else:
            objects = await self.store.list(key)
            artifact = next((obj for obj in objects if obj.key == key), None)
            if artifact is None:
                raise NotFoundError(f"Backup not found: {key}", key=key)

        wanted = metadata_key(artifact.key)
        meta_obj = next((obj for obj in objects if obj.key == wanted), None)
        return artifact, meta_obj

    async def _run_blocking(self, func, *args):
        return await asyncio.get_running_loop().run_in_executor(None, func, *args)

    def _make_safety_copy(self) -> Optional[Path]:
        """Copy the live database aside; return None if there is none.

        The copy path is reserved with O_EXCL, so an existing safety copy
        is never overwritten.
        """
        if not self.db_path.exists():
            return None

        base_name = f"{self.db_path.name}.bak.{int(self._clock() * 1000)}"
        backup_path = self.db_path.with_name(base_name)
        attempt = 0
        while True:
            try:
                fd = os.open(backup_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                break
            except FileExistsError:
                attempt += 1
                backup_path = self.db_path.with_name(f"{base_name}.{attempt}")
        os.close(fd)

        try:
            shutil.copy2(self.db_path, backup_path)
        except OSError:
            backup_path.unlink(missing_ok=True)
            raise
        logger.info(f"Backed up existing database to {backup_path}")
        return backup_path

    def _replace_live_database(self, plaintext: bytes) -> None:
        """Write plaintext beside the live path and rename it into place."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.db_path.with_name(
            f"{self.db_path.name}.restore-{int(self._clock() * 1000)}.tmp"
        )
        try:
            with open(tmp_path, "wb") as f:
                f.write(plaintext)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.db_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
