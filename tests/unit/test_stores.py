"""
Unit tests for the remote store backends and key layout.

Tests cover:
- Key layout helpers
- InMemoryRemoteStore behaviour
- Credential checks before any network use
- Latest-artifact selection by store-reported upload time
"""

import re
from datetime import datetime, timedelta, timezone

import pytest

from ops.dbvault.config import S3Config, StoreCredentials
from ops.dbvault.errors import ConfigurationError, RemoteStoreError
from ops.dbvault.store import (
    InMemoryRemoteStore,
    S3RemoteStore,
    StoredObject,
    artifact_key,
    artifact_key_for_metadata,
    create_remote_store,
    daily_prefix,
    is_metadata_key,
    metadata_key,
)
from ops.dbvault.store.base import artifacts_only, latest_artifact

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestKeyLayout:
    """Tests for the key helpers."""

    def test_artifact_key_shape(self):
        key = artifact_key("dbvault-backup", NOW)

        assert key == f"dbvault-backup/daily/2026-03-15_{int(NOW.timestamp() * 1000)}.db"
        assert re.fullmatch(r"dbvault-backup/daily/\d{4}-\d{2}-\d{2}_\d+\.db", key)

    def test_artifact_key_uses_utc_date(self):
        # 01:30 at UTC+3 is still the previous day in UTC
        moment = datetime(2026, 3, 16, 1, 30, tzinfo=timezone(timedelta(hours=3)))

        assert artifact_key("p", moment).startswith("p/daily/2026-03-15_")

    def test_metadata_pairing(self):
        key = artifact_key("p", NOW)
        meta = metadata_key(key)

        assert meta == key + ".meta.json"
        assert is_metadata_key(meta)
        assert not is_metadata_key(key)
        assert artifact_key_for_metadata(meta) == key

    def test_daily_prefix(self):
        assert daily_prefix("a/b") == "a/b/daily/"


class TestListingHelpers:
    """Tests for artifacts_only and latest_artifact."""

    def _obj(self, key, minutes):
        return StoredObject(key=key, uploaded_at=NOW + timedelta(minutes=minutes), url=key)

    def test_artifacts_only_skips_metadata(self):
        objects = [self._obj("p/daily/a.db", 0), self._obj("p/daily/a.db.meta.json", 0)]

        assert [obj.key for obj in artifacts_only(objects)] == ["p/daily/a.db"]

    def test_latest_by_upload_time_not_key(self):
        objects = [
            self._obj("p/daily/z.db", 0),
            self._obj("p/daily/a.db", 5),
            self._obj("p/daily/a.db.meta.json", 10),
        ]

        assert latest_artifact(objects).key == "p/daily/a.db"

    def test_latest_of_nothing(self):
        assert latest_artifact([]) is None
        assert latest_artifact([self._obj("p/daily/a.db.meta.json", 0)]) is None


class TestInMemoryRemoteStore:
    """Tests for InMemoryRemoteStore."""

    @pytest.mark.asyncio
    async def test_put_list_fetch(self):
        store = InMemoryRemoteStore(clock=lambda: NOW)
        await store.put("p/daily/a.db", b"payload", "application/octet-stream")

        objects = await store.list("p/")

        assert len(objects) == 1
        assert objects[0].key == "p/daily/a.db"
        assert objects[0].uploaded_at == NOW
        assert objects[0].size == 7
        assert await store.fetch(objects[0].url) == b"payload"
        assert store.content_type("p/daily/a.db") == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_list_filters_by_prefix(self):
        store = InMemoryRemoteStore()
        await store.put("p/daily/a.db", b"1", "application/octet-stream")
        await store.put("q/daily/b.db", b"2", "application/octet-stream")

        assert [obj.key for obj in await store.list("p/")] == ["p/daily/a.db"]

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self):
        store = InMemoryRemoteStore()
        await store.delete("p/daily/missing.db")
        assert store.keys() == []

    @pytest.mark.asyncio
    async def test_fetch_missing_raises(self):
        store = InMemoryRemoteStore()

        with pytest.raises(RemoteStoreError):
            await store.fetch("memory://p/daily/missing.db")

    @pytest.mark.asyncio
    async def test_injected_failures(self):
        store = InMemoryRemoteStore()
        await store.put("k", b"v", "application/octet-stream")
        store.fail_delete("k")
        store.fail_fetch("k")

        with pytest.raises(RemoteStoreError):
            await store.delete("k")
        with pytest.raises(RemoteStoreError):
            await store.fetch("memory://k")
        assert store.keys() == ["k"]

    @pytest.mark.asyncio
    async def test_missing_credentials_checked_before_use(self):
        store = InMemoryRemoteStore(credentials=StoreCredentials())

        with pytest.raises(ConfigurationError):
            await store.put("k", b"v", "application/octet-stream")
        with pytest.raises(ConfigurationError):
            await store.list("")

        assert store.operations == 0
        assert store.keys() == []

    @pytest.mark.asyncio
    async def test_configured_credentials_allow_use(self):
        store = InMemoryRemoteStore(
            credentials=StoreCredentials(access_key_id="AKIA", secret_access_key="shh")
        )
        await store.put("k", b"v", "application/octet-stream")

        assert store.operations == 1


class TestS3RemoteStore:
    """Tests for S3RemoteStore that need no network."""

    def test_factory_returns_s3_store(self):
        store = create_remote_store(S3Config())
        assert isinstance(store, S3RemoteStore)

    def test_url_for(self):
        store = S3RemoteStore(S3Config(bucket="my-bucket"))
        assert store.url_for("p/daily/a.db") == "s3://my-bucket/p/daily/a.db"

    @pytest.mark.asyncio
    async def test_missing_credentials_raise_before_client(self):
        store = S3RemoteStore(S3Config(credentials=StoreCredentials()))

        with pytest.raises(ConfigurationError):
            await store.put("p/daily/a.db", b"data", "application/octet-stream")
        with pytest.raises(ConfigurationError):
            await store.list("p/")
        with pytest.raises(ConfigurationError):
            await store.delete("p/daily/a.db")
        with pytest.raises(ConfigurationError):
            await store.fetch("s3://bucket/p/daily/a.db")

        assert store._s3_client is None
        await store.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url", ["https://example.com/a.db", "s3://", "s3://bucket-only", "s3:///key"]
    )
    async def test_bad_url_is_rejected(self, url):
        store = S3RemoteStore(S3Config())

        with pytest.raises(RemoteStoreError):
            await store.fetch(url)

        assert store._s3_client is None
