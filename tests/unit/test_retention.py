"""
Unit tests for the tiered retention policy.

All cases are computed against Sunday 2026-03-15 12:00 UTC.

Tests cover:
- Daily window
- Weekly (Sunday) window
- Monthly (1st of month) window
- Window boundaries
"""

from datetime import datetime, timezone

import pytest

from ops.dbvault.config import RetentionConfig
from ops.dbvault.retention import RetentionDecision, RetentionPolicy

KEEP = RetentionDecision.KEEP
DELETE = RetentionDecision.DELETE

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestRetentionPolicy:
    """Tests for RetentionPolicy.classify."""

    @pytest.fixture
    def policy(self):
        return RetentionPolicy()

    def test_now_is_sunday(self):
        assert NOW.weekday() == 6

    def test_recent_artifact_is_kept(self, policy):
        # Thursday, 3 days old
        assert policy.classify(utc(2026, 3, 12, 12, 0), NOW) is KEEP

    def test_ten_day_old_weekday_is_deleted(self, policy):
        # Thursday 2026-03-05, not the 1st
        ts = utc(2026, 3, 5, 12, 0)
        assert ts.weekday() == 3
        assert policy.classify(ts, NOW) is DELETE

    def test_sunday_within_four_weeks_is_kept(self, policy):
        # Sunday 2026-02-22 23:00, ~20.5 days old
        ts = utc(2026, 2, 22, 23, 0)
        assert ts.weekday() == 6
        assert 20 < policy.age_days(ts, NOW) < 21
        assert policy.classify(ts, NOW) is KEEP

    def test_sunday_older_than_four_weeks_is_deleted(self, policy):
        # Sunday 2026-02-15, exactly 28 days old
        assert policy.classify(utc(2026, 2, 15, 12, 0), NOW) is DELETE

    def test_first_of_month_after_weekly_window_is_kept(self, policy):
        # 2026-02-01 is a Sunday, 42 days old: only the monthly rule keeps it
        assert policy.classify(utc(2026, 2, 1, 12, 0), NOW) is KEEP

    def test_first_of_month_within_year_is_kept(self, policy):
        # Thursday 2026-01-01, 73 days old
        assert policy.classify(utc(2026, 1, 1, 12, 0), NOW) is KEEP

    def test_first_of_month_older_than_year_is_deleted(self, policy):
        # Saturday 2025-02-01, 407 days old
        ts = utc(2025, 2, 1, 12, 0)
        assert policy.age_days(ts, NOW) > 400
        assert policy.classify(ts, NOW) is DELETE

    def test_daily_window_boundary(self, policy):
        now = utc(2026, 3, 17, 12, 0)  # Tuesday

        assert policy.classify(utc(2026, 3, 10, 12, 1), now) is KEEP
        assert policy.classify(utc(2026, 3, 10, 12, 0), now) is DELETE

    def test_artifacts_are_classified_independently(self, policy):
        timestamps = [
            utc(2026, 3, 5, 12, 0),
            utc(2026, 3, 12, 12, 0),
            utc(2025, 2, 1, 12, 0),
            utc(2026, 2, 22, 23, 0),
        ]
        forward = [policy.classify(ts, NOW) for ts in timestamps]
        backward = [policy.classify(ts, NOW) for ts in reversed(timestamps)]

        assert forward == list(reversed(backward))
        assert forward == [DELETE, KEEP, DELETE, KEEP]

    def test_custom_windows(self):
        policy = RetentionPolicy(RetentionConfig(daily_days=2, weekly_days=14, monthly_days=60))

        assert policy.classify(utc(2026, 3, 12, 12, 0), NOW) is DELETE
        assert policy.classify(utc(2026, 3, 8, 12, 0), NOW) is KEEP
        assert policy.classify(utc(2026, 1, 1, 12, 0), NOW) is DELETE
