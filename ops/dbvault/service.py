"""
Backup service for dbvault.

The BackupService wires the pipeline together and exposes the public
operations called by the scheduler and the CLI:

    create_backup_artifact()   capture + encode
    upload_backup()            capture + encode + upload artifact and metadata
    restore_from_backup(key)   download + decode + safety copy + replace
    cleanup_old_backups()      tiered retention over the store listing
    verify_latest_backup()     download + decode, never raises

Invariants:
    - Every operation re-derives its view from the store listing
    - Artifact and metadata are created and deleted as a pair
    - Cleanup is best-effort per artifact and never halts the batch
    - The encryption key is required only by operations that encode or
      decode, and its absence is a ConfigurationError
    - Encoding and decoding run in the executor, never on the event loop

How to change safely:
    - Keep operations idempotent enough to be re-run by the scheduler
    - Add new operations as methods; keep existing signatures stable
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .codec import ArtifactCodec, BackupMetadata, CryptoCodec, EncodedArtifact, derive_key
from .config import VaultConfig
from .errors import RemoteStoreError
from .restore import RestoreOrchestrator, RestoreResult
from .retention import RetentionDecision, RetentionPolicy
from .snapshot import SnapshotCapturer
from .store import (
    RemoteStore,
    StoredObject,
    artifact_key,
    artifact_key_for_metadata,
    create_remote_store,
    daily_prefix,
    is_metadata_key,
    metadata_key,
)
from .store.base import artifacts_only, latest_artifact

logger = logging.getLogger(__name__)

ARTIFACT_CONTENT_TYPE = "application/octet-stream"
METADATA_CONTENT_TYPE = "application/json"


@dataclass
class UploadResult:
    """Result of one backup upload."""

    key: str
    metadata_key: str
    metadata: BackupMetadata
    artifact_size_bytes: int


@dataclass
class CleanupReport:
    """Outcome of one retention cleanup run.

    Attributes:
        examined: Number of artifacts classified
        kept: Number of artifacts kept
        deleted: Keys of artifacts deleted (metadata included in the pair)
        failed: Keys whose deletion failed and will be retried next run
    """

    examined: int = 0
    kept: int = 0
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


@dataclass
class BackupEntry:
    """One artifact as seen in the store listing."""

    key: str
    uploaded_at: datetime
    size_bytes: int
    has_metadata: bool


@dataclass
class OrphanReport:
    """Unpaired objects left behind by partial deletes or uploads."""

    metadata_without_artifact: List[str] = field(default_factory=list)
    artifacts_without_metadata: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.metadata_without_artifact and not self.artifacts_without_metadata


class BackupService:
    """Public backup operations over one live database.

    Attributes:
        config: dbvault configuration
        store: Remote store for artifacts
        capturer: Snapshot capturer for the live database
        policy: Retention policy

    Example:
        >>> service = BackupService(VaultConfig.from_env())
        >>> await service.upload_backup()
        >>> await service.cleanup_old_backups()
        >>> await service.close()
    """

    def __init__(
        self,
        config: VaultConfig,
        store: Optional[RemoteStore] = None,
        capturer: Optional[SnapshotCapturer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config
        self.store = store if store is not None else create_remote_store(config.s3)
        self.capturer = capturer or SnapshotCapturer(
            config.storage.db_path, temp_dir=config.storage.temp_dir
        )
        self.policy = RetentionPolicy(config.retention)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._codec: Optional[ArtifactCodec] = None

    @property
    def prefix(self) -> str:
        return self.config.s3.backup_prefix

    def codec(self) -> ArtifactCodec:
        """Artifact codec, built on first use.

        Raises:
            ConfigurationError: If BACKUP_KEY is not configured
        """
        if self._codec is None:
            key = derive_key(self.config.encryption.require_key())
            self._codec = ArtifactCodec(
                CryptoCodec(key),
                engine_version=self.capturer.engine_version,
                clock=self._clock,
            )
        return self._codec

    async def close(self) -> None:
        await self.store.close()

    async def _run_blocking(self, func, *args):
        return await asyncio.get_running_loop().run_in_executor(None, func, *args)

    async def create_backup_artifact(self) -> EncodedArtifact:
        """Capture the live database and encode it.

        Raises:
            ConfigurationError: If BACKUP_KEY is not configured
            CaptureError: If the snapshot export fails
        """
        codec = self.codec()
        plaintext = await self.capturer.capture()
        encoded = await self._run_blocking(codec.encode, plaintext)

        logger.info(
            "Backup created successfully",
            extra={
                "original_size": len(plaintext),
                "encrypted_size": len(encoded.data),
                "ratio": f"{len(encoded.data) / max(len(plaintext), 1) * 100:.1f}%",
            },
        )
        return encoded

    async def upload_backup(self) -> UploadResult:
        """Create a backup and upload the artifact followed by its metadata.

        If the metadata upload fails, the just-uploaded artifact is removed
        again so the pair is never left half-written.

        Raises:
            ConfigurationError: Missing key or store credentials
            CaptureError: Snapshot export failed
            RemoteStoreError: Upload failed
        """
        encoded = await self.create_backup_artifact()
        key = artifact_key(self.prefix, self._clock())
        meta_key = metadata_key(key)

        await self.store.put(key, encoded.data, ARTIFACT_CONTENT_TYPE)
        try:
            await self.store.put(meta_key, encoded.metadata.to_json(), METADATA_CONTENT_TYPE)
        except Exception:
            logger.error("Metadata upload failed, removing artifact", extra={"key": key})
            try:
                await self.store.delete(key)
            except RemoteStoreError as e:
                logger.warning(f"Failed to remove unpaired artifact {key}: {e}")
            raise

        logger.info(
            "Backup uploaded",
            extra={
                "key": key,
                "size_bytes": len(encoded.data),
                "checksum": encoded.metadata.checksum,
            },
        )
        return UploadResult(
            key=key,
            metadata_key=meta_key,
            metadata=encoded.metadata,
            artifact_size_bytes=len(encoded.data),
        )

    async def restore_from_backup(
        self, key: Optional[str] = None, dry_run: bool = False
    ) -> RestoreResult:
        """Restore the live database from key, or from the latest upload.

        Errors propagate to the caller; see RestoreOrchestrator.restore().
        """
        orchestrator = RestoreOrchestrator(
            store=self.store,
            codec=self.codec(),
            db_path=self.config.storage.db_path,
            backup_prefix=self.prefix,
            clock=lambda: self._clock().timestamp(),
        )
        return await orchestrator.restore(key, dry_run=dry_run)

    async def cleanup_old_backups(self) -> CleanupReport:
        """Delete artifacts (with their metadata) outside the retention tiers.

        Raises:
            ConfigurationError: Missing store credentials
            RemoteStoreError: The listing itself failed
        """
        objects = await self.store.list(f"{self.prefix}/")
        now = self._clock()
        report = CleanupReport()

        for obj in artifacts_only(objects):
            report.examined += 1
            if self.policy.classify(obj.uploaded_at, now) is RetentionDecision.KEEP:
                report.kept += 1
                continue

            ok = True
            for target in (obj.key, metadata_key(obj.key)):
                try:
                    await self.store.delete(target)
                    logger.info("Deleted old backup", extra={"key": target})
                except RemoteStoreError as e:
                    ok = False
                    logger.warning(f"Failed to delete backup {target}: {e}")

            if ok:
                report.deleted.append(obj.key)
            else:
                report.failed.append(obj.key)

        logger.info(
            "Backup cleanup complete",
            extra={
                "examined": report.examined,
                "deleted": len(report.deleted),
                "failed": len(report.failed),
            },
        )
        return report

    async def verify_latest_backup(self) -> bool:
        """Check that the latest artifact decodes and validates.

        Writes nothing to disk. Returns False instead of raising.
        """
        try:
            codec = self.codec()
            objects = await self.store.list(daily_prefix(self.prefix))
            latest = latest_artifact(objects)
            if latest is None:
                logger.warning("No backups found to verify")
                return False

            data = await self.store.fetch(latest.url)
            metadata = None
            wanted = metadata_key(latest.key)
            meta_obj = next((obj for obj in objects if obj.key == wanted), None)
            if meta_obj is not None:
                metadata = BackupMetadata.from_json(await self.store.fetch(meta_obj.url))

            await self._run_blocking(codec.decode, data, metadata)

        except Exception as e:
            logger.error(f"Backup verification failed: {e}", exc_info=True)
            return False

        logger.info("Backup verification passed", extra={"key": latest.key})
        return True

    async def list_backups(self) -> List[BackupEntry]:
        """List daily artifacts, newest first."""
        objects = await self.store.list(daily_prefix(self.prefix))
        keys = {obj.key for obj in objects}
        entries = [
            BackupEntry(
                key=obj.key,
                uploaded_at=obj.uploaded_at,
                size_bytes=obj.size,
                has_metadata=metadata_key(obj.key) in keys,
            )
            for obj in artifacts_only(objects)
        ]
        return sorted(entries, key=lambda e: (e.uploaded_at, e.key), reverse=True)

    async def find_orphans(self) -> OrphanReport:
        """Report artifacts and metadata objects missing their pair.

        Only reports; nothing is deleted.
        """
        objects: List[StoredObject] = await self.store.list(f"{self.prefix}/")
        keys = {obj.key for obj in objects}
        report = OrphanReport()

        for key in sorted(keys):
            if is_metadata_key(key):
                if artifact_key_for_metadata(key) not in keys:
                    report.metadata_without_artifact.append(key)
            elif metadata_key(key) not in keys:
                report.artifacts_without_metadata.append(key)

        if not report.is_clean:
            logger.warning(
                "Unpaired backup objects found",
                extra={
                    "metadata_without_artifact": len(report.metadata_without_artifact),
                    "artifacts_without_metadata": len(report.artifacts_without_metadata),
                },
            )
        return report
