"""
Backup artifact encoding and decoding.

An artifact is produced from raw database bytes as:

    plaintext --gzip--> compressed --AES-256-GCM--> artifact

and is stored next to a metadata record:

    {"version": "1.0", "timestamp": "<ISO8601>", "size": <int>,
     "checksum": "<sha256 hex of plaintext>", "sqliteVersion": "<str>"}

Invariants:
    - The checksum covers the raw plaintext, independent of compression
      and encryption
    - decode() either returns the exact plaintext or raises
    - Authentication failure and checksum mismatch are both IntegrityError
    - A plaintext without the database magic header is a FormatError

How to change safely:
    - Add new metadata fields, don't remove existing ones
    - Bump METADATA_VERSION when the artifact layout changes
    - Test decoding of old artifacts before format changes
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..errors import FormatError, IntegrityError
from . import compression
from .crypto import CryptoCodec

METADATA_VERSION = "1.0"
SQLITE_MAGIC = b"SQLite format 3\x00"


def sha256_hex(data: bytes) -> str:
    """SHA-256 checksum as 64 lowercase hex characters."""
    return hashlib.sha256(data).hexdigest()


def isoformat_utc(moment: datetime) -> str:
    """Render an aware datetime as ISO-8601 UTC with millisecond precision."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


@dataclass(frozen=True)
class BackupMetadata:
    """Metadata record stored beside each artifact.

    Attributes:
        version: Metadata/artifact format version
        timestamp: ISO-8601 capture timestamp
        size: Plaintext size in bytes
        checksum: SHA-256 hex of the plaintext
        engine_version: Source database engine version
    """

    version: str
    timestamp: str
    size: int
    checksum: str
    engine_version: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored JSON shape."""
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "size": self.size,
            "checksum": self.checksum,
            "sqliteVersion": self.engine_version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> BackupMetadata:
        """Create from the stored JSON shape.

        Raises:
            FormatError: If required fields are missing or mistyped
        """
        try:
            metadata = cls(
                version=str(data["version"]),
                timestamp=str(data["timestamp"]),
                size=int(data["size"]),
                checksum=str(data["checksum"]).lower(),
                engine_version=str(data.get("sqliteVersion", "")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FormatError(f"invalid backup metadata: {e}") from e

        if len(metadata.checksum) != 64:
            raise FormatError("invalid backup metadata: checksum is not SHA-256 hex")
        return metadata

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), indent=2).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> BackupMetadata:
        """Parse a stored metadata object.

        Raises:
            FormatError: If the payload is not a JSON object
        """
        try:
            data = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FormatError(f"invalid backup metadata: {e}") from e
        if not isinstance(data, dict):
            raise FormatError("invalid backup metadata: not a JSON object")
        return cls.from_dict(data)


@dataclass(frozen=True)
class EncodedArtifact:
    """An encoded artifact and its metadata record."""

    data: bytes
    metadata: BackupMetadata


class ArtifactCodec:
    """Composes compression and encryption into storable artifacts.

    Attributes:
        crypto: AEAD codec holding the artifact key
        engine_version: Engine version string written to metadata
        magic: Header every decoded plaintext must start with (None disables)

    Example:
        >>> codec = ArtifactCodec(CryptoCodec(derive_key(secret)), "3.45.1")
        >>> encoded = codec.encode(db_bytes)
        >>> codec.decode(encoded.data, encoded.metadata) == db_bytes
        True
    """

    def __init__(
        self,
        crypto: CryptoCodec,
        engine_version: str = "",
        magic: Optional[bytes] = SQLITE_MAGIC,
        compression_level: int = compression.DEFAULT_LEVEL,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.crypto = crypto
        self.engine_version = engine_version
        self.magic = magic
        self.compression_level = compression_level
        self._clock = clock

    def encode(self, plaintext: bytes) -> EncodedArtifact:
        """Compress, encrypt and describe a plaintext snapshot."""
        checksum = sha256_hex(plaintext)
        compressed = compression.compress(plaintext, level=self.compression_level)
        data = self.crypto.encrypt(compressed)

        metadata = BackupMetadata(
            version=METADATA_VERSION,
            timestamp=isoformat_utc(self._clock()),
            size=len(plaintext),
            checksum=checksum,
            engine_version=self.engine_version,
        )
        return EncodedArtifact(data=data, metadata=metadata)

    def decode(self, data: bytes, metadata: Optional[BackupMetadata] = None) -> bytes:
        """Decrypt, decompress and validate an artifact.

        Args:
            data: Stored artifact bytes
            metadata: Paired metadata record, if available

        Returns:
            The original plaintext

        Raises:
            IntegrityError: Authentication failure or checksum mismatch
            FormatError: Malformed compressed stream or missing magic header
        """
        compressed = self.crypto.decrypt(data)
        plaintext = compression.decompress(compressed)

        if metadata is not None and sha256_hex(plaintext) != metadata.checksum:
            raise IntegrityError("checksum mismatch - backup may be corrupted")

        if self.magic is not None and not plaintext.startswith(self.magic):
            raise FormatError("not a valid database file")

        return plaintext
