"""
In-memory remote store implementation for testing.

This module provides a simple in-memory object store for:
- Unit tests
- Integration tests
- Local development without a bucket

Invariants:
    - All data is lost on process exit
    - Reports uploaded_at from its own clock, like a real store
    - Honours the same credential check as production backends

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with RemoteStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

from ..config import StoreCredentials
from ..errors import RemoteStoreError
from .base import StoredObject

logger = logging.getLogger(__name__)

URL_SCHEME = "memory://"


@dataclass
class InMemoryObject:
    """Stored object body plus listing attributes."""

    data: bytes
    content_type: str
    uploaded_at: datetime


class InMemoryRemoteStore:
    """In-memory implementation of RemoteStore for testing.

    Attributes:
        credentials: If given, checked before every operation
        operations: Number of store operations that reached the "network"

    Example:
        >>> store = InMemoryRemoteStore()
        >>> await store.put("p/daily/a.db", b"data", "application/octet-stream")
        >>> [obj.key for obj in await store.list("p/")]
        ['p/daily/a.db']
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        credentials: Optional[StoreCredentials] = None,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.credentials = credentials
        self.operations = 0
        self._objects: Dict[str, InMemoryObject] = {}
        self._failing_deletes: Set[str] = set()
        self._failing_fetches: Set[str] = set()

    def _check(self) -> None:
        if self.credentials is not None:
            self.credentials.require()
        self.operations += 1

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        self._check()
        self._objects[key] = InMemoryObject(
            data=bytes(data),
            content_type=content_type,
            uploaded_at=self._clock(),
        )
        logger.debug(f"InMemoryRemoteStore put {key} ({len(data)} bytes)")

    async def list(self, prefix: str) -> List[StoredObject]:
        self._check()
        return [
            StoredObject(
                key=key,
                uploaded_at=obj.uploaded_at,
                url=f"{URL_SCHEME}{key}",
                size=len(obj.data),
            )
            for key, obj in sorted(self._objects.items())
            if key.startswith(prefix)
        ]

    async def delete(self, key: str) -> None:
        self._check()
        if key in self._failing_deletes:
            raise RemoteStoreError("Injected delete failure", operation="delete", key=key)
        # Deleting a missing key is not an error, as with S3
        self._objects.pop(key, None)

    async def fetch(self, url: str) -> bytes:
        self._check()
        key = url[len(URL_SCHEME):] if url.startswith(URL_SCHEME) else url
        if key in self._failing_fetches:
            raise RemoteStoreError("Injected fetch failure", operation="fetch", key=key)
        obj = self._objects.get(key)
        if obj is None:
            raise RemoteStoreError(f"Object not found: {key}", operation="fetch", key=key)
        return obj.data

    async def close(self) -> None:
        """Close (no-op for in-memory)."""

    # Testing helpers

    def keys(self) -> List[str]:
        """All stored keys, sorted."""
        return sorted(self._objects)

    def get(self, key: str) -> bytes:
        return self._objects[key].data

    def content_type(self, key: str) -> str:
        return self._objects[key].content_type

    def set_uploaded_at(self, key: str, uploaded_at: datetime) -> None:
        """Rewrite the store-reported upload time of an object."""
        self._objects[key].uploaded_at = uploaded_at

    def replace(self, key: str, data: bytes) -> None:
        """Overwrite an object body without touching its upload time."""
        self._objects[key].data = bytes(data)

    def flip_bit(self, key: str, offset: int, bit: int = 0) -> None:
        """Flip one bit of a stored object."""
        data = bytearray(self._objects[key].data)
        data[offset] ^= 1 << bit
        self._objects[key].data = bytes(data)

    def fail_delete(self, key: str) -> None:
        """Make every delete of key raise RemoteStoreError."""
        self._failing_deletes.add(key)

    def fail_fetch(self, key: str) -> None:
        """Make every fetch of key raise RemoteStoreError."""
        self._failing_fetches.add(key)
