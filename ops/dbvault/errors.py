"""
Error types for dbvault.

This module defines all exception types raised by the backup pipeline:
- BackupError: Base exception
- ConfigurationError: Missing credentials or encryption key
- CaptureError: Snapshot export failed
- IntegrityError: Authentication or checksum failure
- FormatError: Bad database header or malformed compressed stream
- NotFoundError: No artifact to restore
- RemoteStoreError: Network or object store failure

Invariants:
    - All errors inherit from BackupError
    - Errors include context for debugging
    - Error messages never contain key material or credentials
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BackupError(Exception):
    """Base exception for all dbvault errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "BACKUP_ERROR"
        self.details = details or {}


class ConfigurationError(BackupError):
    """Required configuration is missing or empty.

    Raised before any network call or crypto operation is attempted.
    Fatal to the calling operation, not to the process.
    """

    def __init__(self, message: str, setting: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details={"setting": setting},
        )
        self.setting = setting


class CaptureError(BackupError):
    """The database export facility failed.

    Raised when:
    - Source database file is missing or unreadable
    - Disk is full while writing the snapshot
    """

    def __init__(self, message: str, source_path: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CAPTURE_ERROR",
            details={"source_path": source_path},
        )
        self.source_path = source_path


class IntegrityError(BackupError):
    """Artifact failed authentication or checksum verification.

    Never retried with relaxed checks.
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, code="INTEGRITY_ERROR", details={"key": key})
        self.key = key


class FormatError(BackupError):
    """Decoded data is not in the expected format.

    Raised when:
    - The compressed stream is malformed
    - The plaintext lacks the database magic header
    - A metadata record is not valid JSON of the expected shape
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, code="FORMAT_ERROR", details={"key": key})
        self.key = key


class NotFoundError(BackupError):
    """No artifact matches the restore target."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, code="NOT_FOUND", details={"key": key})
        self.key = key


class RemoteStoreError(BackupError):
    """Remote object store operation failed.

    Wraps the store client's own error (timeout, 4xx/5xx) unchanged in
    meaning.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="REMOTE_STORE_ERROR",
            details={"operation": operation, "key": key},
        )
        self.operation = operation
        self.key = key
