"""Tests for billing period and timestamp helpers."""

from datetime import UTC, datetime, timedelta

import pytest

from subscription_engine.schemas.lifecycle import InvalidTimestampError
from subscription_engine.services.subscription_dates import (
    _add_months,
    coerce_timestamp,
    days_since,
    days_until,
    next_period_end,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


class TestDaysUntil:
    def test_rounds_partial_days_up(self):
        assert days_until(NOW + timedelta(days=2, hours=1), NOW) == 3

    def test_exact_days(self):
        assert days_until(NOW + timedelta(days=3), NOW) == 3

    def test_same_instant_is_zero(self):
        assert days_until(NOW, NOW) == 0

    def test_past_target_is_not_positive(self):
        assert days_until(NOW - timedelta(hours=1), NOW) == 0
        assert days_until(NOW - timedelta(days=2), NOW) == -2


class TestDaysSince:
    def test_rounds_partial_days_down(self):
        assert days_since(NOW - timedelta(days=2, hours=23), NOW) == 2

    def test_exact_days(self):
        assert days_since(NOW - timedelta(days=5), NOW) == 5

    def test_future_start_is_negative(self):
        assert days_since(NOW + timedelta(hours=1), NOW) == -1


class TestCoerceTimestamp:
    def test_aware_datetime_passes_through(self):
        assert coerce_timestamp(NOW, "trial_end") == NOW

    def test_naive_datetime_gets_utc(self):
        naive = datetime(2026, 3, 15, 12, 0)
        assert coerce_timestamp(naive, "trial_end") == NOW

    def test_iso_string(self):
        assert coerce_timestamp("2026-03-15T12:00:00+00:00", "trial_end") == NOW

    def test_garbage_string_raises(self):
        with pytest.raises(InvalidTimestampError, match="trial_end"):
            coerce_timestamp("not-a-date", "trial_end")

    def test_none_raises(self):
        with pytest.raises(InvalidTimestampError, match="current_period_end"):
            coerce_timestamp(None, "current_period_end")


class TestNextPeriodEnd:
    def test_default_cycle_days_without_interval(self):
        assert next_period_end(NOW, None, 30) == NOW + timedelta(days=30)

    def test_weekly(self):
        assert next_period_end(NOW, "weekly", 30) == NOW + timedelta(weeks=1)

    def test_monthly(self):
        assert next_period_end(NOW, "monthly", 30) == datetime(2026, 4, 15, 12, 0, tzinfo=UTC)

    def test_quarterly(self):
        assert next_period_end(NOW, "quarterly", 30) == datetime(2026, 6, 15, 12, 0, tzinfo=UTC)

    def test_yearly(self):
        assert next_period_end(NOW, "yearly", 30) == datetime(2027, 3, 15, 12, 0, tzinfo=UTC)

    def test_unknown_interval(self):
        with pytest.raises(ValueError, match="Unknown interval"):
            next_period_end(NOW, "fortnightly", 30)


class TestAddMonths:
    def test_clamps_to_month_end(self):
        assert _add_months(datetime(2026, 1, 31, tzinfo=UTC), 1) == datetime(
            2026, 2, 28, tzinfo=UTC
        )

    def test_leap_year(self):
        assert _add_months(datetime(2028, 1, 31, tzinfo=UTC), 1) == datetime(
            2028, 2, 29, tzinfo=UTC
        )

    def test_crosses_year(self):
        assert _add_months(datetime(2026, 11, 30, tzinfo=UTC), 3) == datetime(
            2027, 2, 28, tzinfo=UTC
        )
