"""
Integration tests for restoring the live database.

Tests cover:
- Restore of the latest or an explicit backup
- Safety copy of the previous database
- Live database untouched on every validation failure
- Dry-run restores
- Restore state machine
"""

import dataclasses
import threading
from datetime import timedelta
from pathlib import Path

import pytest

import ops.dbvault.restore.orchestrator as orchestrator_module
from ops.dbvault.codec import BackupMetadata
from ops.dbvault.config import EncryptionConfig
from ops.dbvault.errors import ConfigurationError, FormatError, IntegrityError, NotFoundError
from ops.dbvault.restore import RestoreOrchestrator, RestoreState
from ops.dbvault.service import ARTIFACT_CONTENT_TYPE, METADATA_CONTENT_TYPE, BackupService
from ops.dbvault.store import metadata_key


def leftover_files(data_dir):
    """Files in data_dir other than the live database."""
    return sorted(p.name for p in data_dir.iterdir() if p.name != "messages.db")


@pytest.fixture
def orchestrator(service, store, db_path, clock):
    return RestoreOrchestrator(
        store=store,
        codec=service.codec(),
        db_path=db_path,
        backup_prefix=service.prefix,
        clock=lambda: clock().timestamp(),
    )


class TestRestoreLatest:
    """Tests for restoring the latest backup."""

    @pytest.mark.asyncio
    async def test_restores_backup_and_keeps_safety_copy(
        self, service, db_path, data_dir, add_rows, row_count, clock
    ):
        uploaded = await service.upload_backup()
        add_rows(db_path, 10)
        assert row_count(db_path) == 60
        before = db_path.read_bytes()

        result = await service.restore_from_backup()

        assert result.key == uploaded.key
        assert result.checksum_verified is True
        assert result.dry_run is False
        assert row_count(db_path) == 50

        backups = leftover_files(data_dir)
        assert backups == [f"messages.db.bak.{int(clock().timestamp() * 1000)}"]
        assert result.safety_copy_path == str(data_dir / backups[0])
        assert (data_dir / backups[0]).read_bytes() == before

    @pytest.mark.asyncio
    async def test_latest_is_chosen_by_upload_time(
        self, service, store, db_path, add_rows, row_count, clock
    ):
        first = await service.upload_backup()
        add_rows(db_path, 10)
        clock.advance(minutes=1)
        await service.upload_backup()

        # The store reports the first artifact as the most recent upload
        store.set_uploaded_at(first.key, clock() + timedelta(minutes=1))

        result = await service.restore_from_backup()

        assert result.key == first.key
        assert row_count(db_path) == 50

    @pytest.mark.asyncio
    async def test_no_backups(self, service, db_path, data_dir):
        before = db_path.read_bytes()

        with pytest.raises(NotFoundError, match="No backup found"):
            await service.restore_from_backup()

        assert db_path.read_bytes() == before
        assert leftover_files(data_dir) == []

    @pytest.mark.asyncio
    async def test_missing_live_database(self, service, db_path, row_count):
        await service.upload_backup()
        db_path.unlink()

        result = await service.restore_from_backup()

        assert result.safety_copy_path is None
        assert row_count(db_path) == 50

    @pytest.mark.asyncio
    async def test_missing_backup_key(self, service, vault_config, store, clock):
        await service.upload_backup()
        vault_config.encryption = EncryptionConfig()

        with pytest.raises(ConfigurationError):
            await BackupService(vault_config, store=store, clock=clock).restore_from_backup()


class TestRestoreExplicitKey:
    """Tests for restoring a named backup."""

    @pytest.mark.asyncio
    async def test_restores_named_backup(self, service, db_path, add_rows, row_count, clock):
        first = await service.upload_backup()
        add_rows(db_path, 10)
        clock.advance(minutes=1)
        await service.upload_backup()
        add_rows(db_path, 5)

        result = await service.restore_from_backup(first.key)

        assert result.key == first.key
        assert row_count(db_path) == 50

    @pytest.mark.asyncio
    async def test_unknown_key(self, service, db_path):
        await service.upload_backup()
        before = db_path.read_bytes()
        missing = "dbvault-backup/daily/2020-01-01_1577836800000.db"

        with pytest.raises(NotFoundError) as exc_info:
            await service.restore_from_backup(missing)

        assert exc_info.value.key == missing
        assert db_path.read_bytes() == before

    @pytest.mark.asyncio
    async def test_key_prefix_is_not_a_match(self, service):
        uploaded = await service.upload_backup()

        with pytest.raises(NotFoundError):
            await service.restore_from_backup(uploaded.key[:-3])

    @pytest.mark.asyncio
    async def test_metadata_key_is_not_an_artifact(self, service, db_path, data_dir):
        uploaded = await service.upload_backup()
        before = db_path.read_bytes()

        with pytest.raises(NotFoundError) as exc_info:
            await service.restore_from_backup(uploaded.metadata_key)

        assert exc_info.value.key == uploaded.metadata_key
        assert db_path.read_bytes() == before
        assert leftover_files(data_dir) == []


class TestRestoreValidation:
    """A failed validation never touches the live database."""

    @pytest.mark.asyncio
    async def test_corrupted_artifact(self, orchestrator, service, store, db_path, data_dir):
        uploaded = await service.upload_backup()
        store.flip_bit(uploaded.key, 40)
        before = db_path.read_bytes()

        with pytest.raises(IntegrityError):
            await orchestrator.restore()

        assert orchestrator.state is RestoreState.FAILED
        assert db_path.read_bytes() == before
        assert leftover_files(data_dir) == []

    @pytest.mark.asyncio
    async def test_truncated_artifact(self, service, store, db_path, data_dir):
        uploaded = await service.upload_backup()
        store.replace(uploaded.key, store.get(uploaded.key)[:20])
        before = db_path.read_bytes()

        with pytest.raises(IntegrityError):
            await service.restore_from_backup()

        assert db_path.read_bytes() == before
        assert leftover_files(data_dir) == []

    @pytest.mark.asyncio
    async def test_altered_checksum(self, service, store, db_path, data_dir):
        uploaded = await service.upload_backup()
        wrong = dataclasses.replace(uploaded.metadata, checksum="f" * 64)
        store.replace(uploaded.metadata_key, wrong.to_json())
        before = db_path.read_bytes()

        with pytest.raises(IntegrityError, match="checksum mismatch"):
            await service.restore_from_backup()

        assert db_path.read_bytes() == before
        assert leftover_files(data_dir) == []

    @pytest.mark.asyncio
    async def test_malformed_metadata(self, service, store, db_path):
        uploaded = await service.upload_backup()
        store.replace(uploaded.metadata_key, b"not json")
        before = db_path.read_bytes()

        with pytest.raises(FormatError):
            await service.restore_from_backup()

        assert db_path.read_bytes() == before

    @pytest.mark.asyncio
    async def test_not_a_database(self, service, store, db_path, data_dir):
        encoded = service.codec().encode(b"plain text, not a database" * 10)
        key = "dbvault-backup/daily/2026-03-15_1773576000000.db"
        await store.put(key, encoded.data, ARTIFACT_CONTENT_TYPE)
        await store.put(metadata_key(key), encoded.metadata.to_json(), METADATA_CONTENT_TYPE)
        before = db_path.read_bytes()

        with pytest.raises(FormatError, match="not a valid database file"):
            await service.restore_from_backup()

        assert db_path.read_bytes() == before
        assert leftover_files(data_dir) == []

    @pytest.mark.asyncio
    async def test_missing_metadata_still_restores(self, service, store, db_path, row_count):
        uploaded = await service.upload_backup()
        await store.delete(uploaded.metadata_key)

        result = await service.restore_from_backup()

        assert result.checksum_verified is False
        assert row_count(db_path) == 50

    @pytest.mark.asyncio
    async def test_safety_copy_failure(
        self, orchestrator, service, db_path, data_dir, monkeypatch
    ):
        await service.upload_backup()
        before = db_path.read_bytes()

        def fail_copy(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(orchestrator_module.shutil, "copy2", fail_copy)

        with pytest.raises(OSError, match="disk full"):
            await orchestrator.restore()

        assert orchestrator.state is RestoreState.FAILED
        assert db_path.read_bytes() == before
        assert leftover_files(data_dir) == []

    @pytest.mark.asyncio
    async def test_repeated_restore_keeps_earlier_safety_copy(
        self, service, db_path, data_dir, add_rows, clock
    ):
        await service.upload_backup()
        add_rows(db_path, 10)
        before = db_path.read_bytes()

        # The clock does not move, so both copies get the same timestamp
        first = await service.restore_from_backup()
        second = await service.restore_from_backup()

        stamp = int(clock().timestamp() * 1000)
        assert leftover_files(data_dir) == [
            f"messages.db.bak.{stamp}",
            f"messages.db.bak.{stamp}.1",
        ]
        assert first.safety_copy_path != second.safety_copy_path
        assert Path(first.safety_copy_path).read_bytes() == before


class TestDryRun:
    """Tests for dry-run restores."""

    @pytest.mark.asyncio
    async def test_dry_run_leaves_disk_untouched(self, service, db_path, data_dir, add_rows):
        await service.upload_backup()
        add_rows(db_path, 10)
        before = db_path.read_bytes()

        result = await service.restore_from_backup(dry_run=True)

        assert result.dry_run is True
        assert result.safety_copy_path is None
        assert result.checksum_verified is True
        assert db_path.read_bytes() == before
        assert leftover_files(data_dir) == []

    @pytest.mark.asyncio
    async def test_dry_run_still_validates(self, service, store):
        uploaded = await service.upload_backup()
        store.flip_bit(uploaded.key, 0)

        with pytest.raises(IntegrityError):
            await service.restore_from_backup(dry_run=True)


class TestRestoreState:
    """Tests for the restore state machine."""

    def test_initial_state(self, orchestrator):
        assert orchestrator.state is RestoreState.IDLE

    @pytest.mark.asyncio
    async def test_success_ends_done(self, orchestrator, service):
        await service.upload_backup()

        await orchestrator.restore()

        assert orchestrator.state is RestoreState.DONE

    @pytest.mark.asyncio
    async def test_not_found_ends_failed(self, orchestrator):
        with pytest.raises(NotFoundError):
            await orchestrator.restore()

        assert orchestrator.state is RestoreState.FAILED

    @pytest.mark.asyncio
    async def test_metadata_round_trips_through_store(self, service, store):
        uploaded = await service.upload_backup()

        assert BackupMetadata.from_json(store.get(uploaded.metadata_key)) == uploaded.metadata

    @pytest.mark.asyncio
    async def test_decode_runs_off_event_loop(self, service, monkeypatch):
        await service.upload_backup()
        codec = service.codec()
        decode = codec.decode
        threads = []

        def recording_decode(*args):
            threads.append(threading.get_ident())
            return decode(*args)

        monkeypatch.setattr(codec, "decode", recording_decode)

        await service.restore_from_backup()

        assert len(threads) == 1
        assert threads[0] != threading.get_ident()
