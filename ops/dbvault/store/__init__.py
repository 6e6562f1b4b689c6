"""
Remote object store abstraction for dbvault.

This module provides a pluggable store interface supporting:
- S3 and S3-compatible services (production)
- In-memory (for testing)

Invariants:
    - Store-reported upload times are the source of truth for ordering
    - Credentials are checked before any network call
    - Backend failures surface as RemoteStoreError
"""

from __future__ import annotations

from ..config import S3Config
from .base import RemoteStore, StoredObject
from .keys import (
    artifact_key,
    artifact_key_for_metadata,
    daily_prefix,
    is_metadata_key,
    metadata_key,
)
from .memory import InMemoryRemoteStore
from .s3 import S3RemoteStore


def create_remote_store(s3_config: S3Config) -> RemoteStore:
    """Factory function to create the production store from configuration."""
    return S3RemoteStore(s3_config)


__all__ = [
    # Protocol and types
    "RemoteStore",
    "StoredObject",
    # Key layout
    "artifact_key",
    "artifact_key_for_metadata",
    "daily_prefix",
    "is_metadata_key",
    "metadata_key",
    # Factory
    "create_remote_store",
    # Implementations
    "S3RemoteStore",
    "InMemoryRemoteStore",
]
