"""
Shared fixtures for dbvault tests.

Provides a real on-disk SQLite database, a controllable clock and an
in-memory remote store so no test touches the network.
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from ops.dbvault.config import EncryptionConfig, StorageConfig, VaultConfig
from ops.dbvault.service import BackupService
from ops.dbvault.store.memory import InMemoryRemoteStore

TEST_BACKUP_KEY = "unit-test-backup-key"

# Sunday
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock returning a settable aware datetime."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def populate_database(path, rows=50):
    """Create (or extend) a messages table with rows."""
    conn = sqlite3.connect(str(path))
    try:
        conn.execute("CREATE TABLE IF NOT EXISTS messages (id INTEGER PRIMARY KEY, body TEXT)")
        conn.executemany(
            "INSERT INTO messages (body) VALUES (?)",
            [(f"message {i} " + "x" * 40,) for i in range(rows)],
        )
        conn.commit()
    finally:
        conn.close()


def count_rows(path):
    conn = sqlite3.connect(str(path))
    try:
        return conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
    finally:
        conn.close()


@pytest.fixture
def clock():
    """Clock fixed at NOW."""
    return FakeClock(NOW)


@pytest.fixture
def data_dir(tmp_path):
    """Directory holding the live database."""
    path = tmp_path / "store"
    path.mkdir()
    return path


@pytest.fixture
def db_path(data_dir):
    """Live database with 50 rows."""
    path = data_dir / "messages.db"
    populate_database(path)
    return path


@pytest.fixture
def vault_config(data_dir):
    """Configuration pointing at data_dir with a backup key."""
    return VaultConfig(
        storage=StorageConfig(data_dir=str(data_dir), db_filename="messages.db"),
        encryption=EncryptionConfig(backup_key=TEST_BACKUP_KEY),
    )


@pytest.fixture
def store(clock):
    """In-memory store reporting upload times from clock."""
    return InMemoryRemoteStore(clock=clock)


@pytest.fixture
def service(vault_config, store, clock, db_path):
    """BackupService over the in-memory store and the 50-row live database."""
    return BackupService(vault_config, store=store, clock=clock)


@pytest.fixture
def add_rows():
    """Function appending rows to a database file."""
    return populate_database


@pytest.fixture
def row_count():
    """Function counting rows in a database file."""
    return count_rows
