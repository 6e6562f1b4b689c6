"""
Tiered retention policy for backup artifacts.

An artifact is kept if ANY of these holds:
    - it is younger than the daily window (7 days)
    - it falls on the weekly anchor (Sunday) and is younger than the
      weekly window (28 days)
    - it falls on the monthly anchor (the 1st) and is younger than the
      monthly window (365 days)

Everything else is deleted.

Invariants:
    - Each artifact is classified on its own timestamp; no cross-artifact
      state and no ordering assumption
    - Calendar checks use the artifact timestamp's own timezone, which is
      UTC for store-reported times
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from ..config import RetentionConfig

SECONDS_PER_DAY = timedelta(days=1).total_seconds()


class RetentionDecision(Enum):
    """Outcome of classifying one artifact."""

    KEEP = "keep"
    DELETE = "delete"


class RetentionPolicy:
    """Classifies artifacts as keep or delete.

    Example:
        >>> policy = RetentionPolicy()
        >>> policy.classify(uploaded_at, now)
        <RetentionDecision.KEEP: 'keep'>
    """

    def __init__(self, config: RetentionConfig | None = None) -> None:
        self.config = config or RetentionConfig()

    def age_days(self, artifact_ts: datetime, now: datetime) -> float:
        return (now - artifact_ts).total_seconds() / SECONDS_PER_DAY

    def is_weekly(self, artifact_ts: datetime) -> bool:
        return artifact_ts.weekday() == self.config.weekly_anchor_weekday

    def is_monthly(self, artifact_ts: datetime) -> bool:
        return artifact_ts.day == self.config.monthly_anchor_day

    def classify(self, artifact_ts: datetime, now: datetime) -> RetentionDecision:
        """Classify one artifact by its store-reported timestamp."""
        age = self.age_days(artifact_ts, now)

        keep = (
            age < self.config.daily_days
            or (self.is_weekly(artifact_ts) and age < self.config.weekly_days)
            or (self.is_monthly(artifact_ts) and age < self.config.monthly_days)
        )
        return RetentionDecision.KEEP if keep else RetentionDecision.DELETE
