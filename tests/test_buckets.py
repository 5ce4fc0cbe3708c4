"""Tests for the time-bucketer."""

from datetime import datetime
from decimal import Decimal

import pytest

from finance_tracker.config import ReportingSettings
from finance_tracker.models.reports import BucketMode
from finance_tracker.reporting.buckets import (
    MONTH_LABELS,
    bucket,
    bucket_labels,
    month_bounds,
    start_of_week,
)
from factories import NOW, expense


def totals(series):
    return [item.total for item in series]


class TestEmptyInput:
    """Every mode returns full-length, all-zero series for no records."""

    @pytest.mark.parametrize("mode,length", [
        (BucketMode.WEEKLY, 7),
        (BucketMode.ROLLING_WEEK, 7),
        (BucketMode.MONTHLY, 12),
        (BucketMode.YEARLY, 5),
    ])
    def test_full_length_zeros(self, mode, length):
        """Test bucket([]) keeps every label."""
        series = bucket([], mode, NOW)
        assert len(series) == length
        assert all(total == 0 for total in totals(series))
        assert [item.label for item in series] == bucket_labels(mode, NOW)


class TestWeekly:
    """Tests for the current ISO week mode."""

    def test_labels_monday_first(self):
        """Test Mon..Sun label order."""
        labels = bucket_labels(BucketMode.WEEKLY, NOW)
        assert labels == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

    def test_start_of_week(self):
        """Test the week starts Monday 00:00."""
        assert start_of_week(NOW) == datetime(2026, 5, 18)

    def test_window_is_monday_to_now(self):
        """Test only records from Monday 00:00 up to now count."""
        records = [
            expense(10, when=datetime(2026, 5, 18, 0, 0)),   # Monday
            expense(5, when=datetime(2026, 5, 20, 11, 0)),   # Wednesday, before now
            expense(7, when=datetime(2026, 5, 20, 13, 0)),   # after now
            expense(99, when=datetime(2026, 5, 17, 23, 59)), # previous Sunday
        ]
        series = bucket(records, BucketMode.WEEKLY, NOW)
        assert totals(series) == [10, 0, 5, 0, 0, 0, 0]

    def test_sunday_is_last(self):
        """Test a Sunday record lands in slot 6."""
        sunday_night = datetime(2026, 5, 24, 23, 0)
        series = bucket([expense(3, when=datetime(2026, 5, 24, 10, 0))], BucketMode.WEEKLY, sunday_night)
        assert series[6].label == "Sun"
        assert series[6].total == 3


class TestRollingWeek:
    """Tests for the last-7-days mode."""

    def test_slots(self):
        """Test slot 6 is today and slot 0 is six days ago."""
        records = [
            expense(1, when=datetime(2026, 5, 20, 8, 0)),    # diff 0 -> Today
            expense(2, when=datetime(2026, 5, 14, 13, 0)),   # 5 days 23 hours -> slot 1
            expense(4, when=datetime(2026, 5, 14, 12, 0)),   # exactly 6 days -> slot 0
            expense(8, when=datetime(2026, 5, 13, 12, 0)),   # exactly 7 days -> dropped
            expense(16, when=datetime(2026, 5, 21, 9, 0)),   # future -> dropped
        ]
        series = bucket(records, BucketMode.ROLLING_WEEK, NOW)
        assert series[6].label == "Today"
        assert totals(series) == [4, 2, 0, 0, 0, 0, 1]


class TestMonthly:
    """Tests for the calendar-year mode."""

    def test_twelve_months_current_year_only(self):
        """Test Jan..Dec order and that other years are excluded."""
        records = [
            expense(100, when=datetime(2026, 3, 5)),
            expense(50, when=datetime(2026, 12, 1)),
            expense(999, when=datetime(2025, 3, 5)),
        ]
        series = bucket(records, BucketMode.MONTHLY, NOW)
        assert [item.label for item in series] == MONTH_LABELS
        assert series[2].total == 100
        assert series[11].total == 50
        assert sum(totals(series)) == 150

    def test_month_bounds(self):
        """Test the month runs from the 1st to its last instant."""
        first, last = month_bounds(datetime(2024, 2, 10))
        assert first == datetime(2024, 2, 1)
        assert last.date().day == 29
        assert last.hour == 23 and last.minute == 59


class TestYearly:
    """Tests for the yearly window."""

    def test_five_year_window(self):
        """Test ascending labels ending at the current year."""
        records = [
            expense(1, when=datetime(2021, 6, 1)),
            expense(2, when=datetime(2022, 6, 1)),
            expense(3, when=datetime(2026, 1, 1)),
        ]
        series = bucket(records, BucketMode.YEARLY, NOW)
        assert [item.label for item in series] == ["2022", "2023", "2024", "2025", "2026"]
        assert totals(series) == [2, 0, 0, 0, 3]

    def test_custom_window(self):
        """Test a shorter window."""
        assert bucket_labels(BucketMode.YEARLY, NOW, yearly_window=2) == ["2025", "2026"]

    def test_window_from_settings(self):
        """Test the configured window is used when none is passed."""
        series = bucket([], BucketMode.YEARLY, NOW, settings=ReportingSettings(yearly_window=3))
        assert [item.label for item in series] == ["2024", "2025", "2026"]

    def test_window_from_environment(self, monkeypatch):
        """Test REPORTING_YEARLY_WINDOW reaches the default bucketing."""
        monkeypatch.setenv("REPORTING_YEARLY_WINDOW", "3")
        series = bucket([expense(4, when=datetime(2023, 3, 1))], BucketMode.YEARLY, NOW)
        assert [item.label for item in series] == ["2024", "2025", "2026"]
        assert totals(series) == [0, 0, 0]


class TestRecordShapes:
    """Tests for undated and untyped records."""

    def test_undated_records_are_dropped(self):
        """Test records without a date fall outside every window."""
        series = bucket([expense(10, when=None)], BucketMode.MONTHLY, NOW)
        assert sum(totals(series)) == 0

    def test_mappings_and_bad_amounts(self):
        """Test mapping records with non-numeric amounts count as 0."""
        records = [
            {"amount": "abc", "date": datetime(2026, 5, 1)},
            {"amount": "12.5", "date": datetime(2026, 5, 2)},
        ]
        series = bucket(records, BucketMode.MONTHLY, NOW)
        assert series[4].total == Decimal("12.5")
