"""
Base protocol and types for the remote object store.

This module defines the RemoteStore protocol that all store backends must
implement, along with the StoredObject listing entry.

Invariants:
    - uploaded_at is reported by the store and is authoritative for
      ordering and retention, never a locally recorded time
    - put() returns only after the object is durable; a put object
      appears in later listings as a whole or not at all
    - Backend failures surface as RemoteStoreError
    - Missing credentials surface as ConfigurationError before any
      network call

How to change safely:
    - Protocol changes require updating all implementations
    - Keep the in-memory backend behaviourally identical to production
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from .keys import is_metadata_key


@dataclass(frozen=True)
class StoredObject:
    """A listed remote object.

    Attributes:
        key: Object key
        uploaded_at: Store-reported upload time (timezone aware)
        url: Locator accepted by RemoteStore.fetch()
        size: Object size in bytes
    """

    key: str
    uploaded_at: datetime
    url: str
    size: int = 0

    def __str__(self) -> str:
        return f"StoredObject(key={self.key}, uploaded_at={self.uploaded_at.isoformat()})"


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for remote object store backends.

    Example:
        >>> store = S3RemoteStore(s3_config)
        >>> await store.put("prefix/daily/a.db", data, "application/octet-stream")
        >>> objects = await store.list("prefix/daily/")
        >>> data = await store.fetch(objects[0].url)
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """Store an object under key.

        Raises:
            ConfigurationError: If credentials are missing
            RemoteStoreError: If the upload fails
        """
        ...

    @abstractmethod
    async def list(self, prefix: str) -> List[StoredObject]:
        """List all objects whose key starts with prefix.

        Raises:
            ConfigurationError: If credentials are missing
            RemoteStoreError: If the listing fails
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete the object stored under key.

        Raises:
            ConfigurationError: If credentials are missing
            RemoteStoreError: If the delete fails
        """
        ...

    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """Download an object by the url reported in a listing.

        Raises:
            ConfigurationError: If credentials are missing
            RemoteStoreError: If the download fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release client resources."""
        ...


def artifacts_only(objects: Iterable[StoredObject]) -> List[StoredObject]:
    """Drop metadata objects from a listing."""
    return [obj for obj in objects if not is_metadata_key(obj.key)]


def latest_artifact(objects: Iterable[StoredObject]) -> Optional[StoredObject]:
    """Artifact with the latest store-reported upload time, if any."""
    artifacts = artifacts_only(objects)
    if not artifacts:
        return None
    return max(artifacts, key=lambda obj: (obj.uploaded_at, obj.key))
