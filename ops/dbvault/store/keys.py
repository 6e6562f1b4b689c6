"""
Storage key layout.

    <prefix>/daily/<ISO-date>_<unix-ms>.db              artifact
    <prefix>/daily/<ISO-date>_<unix-ms>.db.meta.json    paired metadata

Keys are case-sensitive and sort chronologically.
"""

from __future__ import annotations

from datetime import datetime, timezone

DAILY_TIER = "daily"
ARTIFACT_SUFFIX = ".db"
METADATA_SUFFIX = ".meta.json"


def daily_prefix(prefix: str) -> str:
    return f"{prefix}/{DAILY_TIER}/"


def artifact_key(prefix: str, moment: datetime) -> str:
    """Build the artifact key for a capture taken at moment (aware datetime)."""
    moment = moment.astimezone(timezone.utc)
    unix_ms = int(moment.timestamp() * 1000)
    return f"{daily_prefix(prefix)}{moment.date().isoformat()}_{unix_ms}{ARTIFACT_SUFFIX}"


def metadata_key(key: str) -> str:
    return f"{key}{METADATA_SUFFIX}"


def is_metadata_key(key: str) -> bool:
    return key.endswith(METADATA_SUFFIX)


def artifact_key_for_metadata(key: str) -> str:
    return key[: -len(METADATA_SUFFIX)]
