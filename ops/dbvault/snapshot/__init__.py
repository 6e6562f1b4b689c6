"""
Snapshot module for dbvault.

This module captures the live SQLite database for backup:
- Consistent copies via the SQLite online backup API
- Safe against concurrent writers

Invariants:
    - Only complete, consistent snapshots leave this module
    - Temporary files never outlive a capture
"""

from .capturer import SnapshotCapturer

__all__ = ["SnapshotCapturer"]
