"""
dbvault - Encrypted, consistent backups of a SQLite state store.

This package persists and recovers the authoritative SQLite database of a
long-running assistant process:
- Consistent snapshots via the SQLite online backup API
- gzip compression and AES-256-GCM authenticated encryption
- Upload to S3 with a paired metadata record (checksum, size, version)
- Tiered daily / weekly / monthly retention cleanup
- Safe restore with a local safety copy and atomic replace

Architecture:
    ┌──────────┐    ┌──────────┐    ┌──────────────┐    ┌─────────┐
    │  SQLite  │───▶│ Capturer │───▶│ ArtifactCodec│───▶│   S3    │
    │  (live)  │    └──────────┘    │ gzip + GCM   │    │ artifact│
    └──────────┘                    └──────────────┘    │ + meta  │
         ▲                                              └────┬────┘
         │          ┌──────────┐    ┌──────────────┐         │
         └──────────│ Restore  │◀───│ decode +     │◀────────┘
        safety copy │          │    │ verify       │
        + replace   └──────────┘    └──────────────┘

Invariants:
    - Snapshots are consistent even under concurrent writes
    - Artifacts are authenticated and checksummed, or rejected
    - Restore never touches the live database until validation passed
    - Artifact and metadata objects are created and deleted as a pair

How to change safely:
    - Artifact layout changes require a new metadata version
    - Never relax validation on restore
"""

from ._version import __version__

__all__ = ["__version__"]
