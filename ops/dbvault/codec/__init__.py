"""
Codec module for dbvault.

This module turns raw database bytes into storable artifacts and back:
- crypto: AES-256-GCM with a per-artifact random nonce
- compression: gzip at maximum ratio
- artifact: composition of both plus the metadata record

Invariants:
    - Artifacts are authenticated; tampering is always detected
    - Metadata checksums cover the uncompressed, unencrypted bytes
"""

from .artifact import (
    METADATA_VERSION,
    SQLITE_MAGIC,
    ArtifactCodec,
    BackupMetadata,
    EncodedArtifact,
    sha256_hex,
)
from .crypto import CryptoCodec, derive_key

__all__ = [
    "ArtifactCodec",
    "BackupMetadata",
    "EncodedArtifact",
    "CryptoCodec",
    "derive_key",
    "sha256_hex",
    "METADATA_VERSION",
    "SQLITE_MAGIC",
]
