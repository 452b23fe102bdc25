"""Unit tests for ranking period identifiers and boundaries."""

from datetime import date, datetime, timedelta, timezone

import pytest

from stockpick.exceptions import InvalidPeriodError
from stockpick.rankings.periods import (
    DEFAULT_TIMEZONE,
    current_period,
    period_range,
    previous_period,
    validate_period,
    week_number,
)


class TestCurrentPeriod:
    """Test period identifiers for an instant."""

    def test_monthly(self):
        assert current_period("monthly", datetime(2024, 3, 15, 12, tzinfo=timezone.utc)) == "2024-03"

    def test_weekly(self):
        # day 75 of 2024, Jan 1 was a Monday: ceil((75 + 1) / 7) = 11
        assert current_period("weekly", datetime(2024, 3, 15, 12, tzinfo=timezone.utc)) == "2024-W11"

    def test_total(self):
        assert current_period("total", datetime(2024, 3, 15, tzinfo=timezone.utc)) == "total"

    def test_uses_local_timezone(self):
        """21:00 UTC on Mar 31 is already April in Shanghai."""
        assert current_period("monthly", datetime(2024, 3, 31, 21, tzinfo=timezone.utc)) == "2024-04"

    def test_naive_datetime_is_local(self):
        assert current_period("monthly", datetime(2024, 3, 31, 23, 0)) == "2024-03"

    def test_other_timezone(self):
        now = datetime(2024, 3, 31, 21, tzinfo=timezone.utc)
        assert current_period("monthly", now, timezone.utc) == "2024-03"

    def test_unknown_type(self):
        with pytest.raises(InvalidPeriodError):
            current_period("daily", datetime(2024, 3, 15, tzinfo=timezone.utc))


class TestWeekNumber:
    """The week rule counts from Sunday-aligned blocks, not ISO weeks."""

    def test_jan_1_is_week_1(self):
        assert week_number(date(2024, 1, 1)) == 1

    def test_week_turns_on_sunday_when_year_starts_sunday(self):
        # Jan 1 2023 was a Sunday
        assert week_number(date(2023, 1, 7)) == 1
        assert week_number(date(2023, 1, 8)) == 2

    def test_second_day_can_be_week_2(self):
        # Jan 1 2022 was a Saturday
        assert week_number(date(2022, 1, 1)) == 1
        assert week_number(date(2022, 1, 2)) == 2

    def test_leap_year_starting_saturday_reaches_week_54(self):
        assert week_number(date(2000, 12, 31)) == 54


class TestPeriodRange:
    """Test inclusive period boundaries."""

    def test_weekly_range_starts_from_jan_1(self):
        start, end = period_range("weekly", "2024-W11")
        assert start == datetime(2024, 3, 11, tzinfo=DEFAULT_TIMEZONE)
        assert end == datetime(2024, 3, 17, 23, 59, 59, tzinfo=DEFAULT_TIMEZONE)

    def test_weekly_range_spans_7_days(self):
        start, end = period_range("weekly", "2023-W30")
        assert end - start == timedelta(days=6, hours=23, minutes=59, seconds=59)

    def test_monthly_range_leap_february(self):
        start, end = period_range("monthly", "2024-02")
        assert start == datetime(2024, 2, 1, tzinfo=DEFAULT_TIMEZONE)
        assert end == datetime(2024, 2, 29, 23, 59, 59, 999999, tzinfo=DEFAULT_TIMEZONE)

    def test_monthly_range_contains_current_instant(self):
        now = datetime(2024, 3, 31, 15, 59, tzinfo=timezone.utc)
        start, end = period_range("monthly", current_period("monthly", now))
        assert start <= now <= end

    def test_total_is_unbounded(self):
        assert period_range("total", "total") == (None, None)

    def test_range_in_utc(self):
        start, _ = period_range("monthly", "2024-03", timezone.utc)
        assert start == datetime(2024, 3, 1, tzinfo=timezone.utc)


class TestPreviousPeriod:
    """Test stepping back one period."""

    def test_month_wraps_year(self):
        assert previous_period("monthly", "2024-01") == "2023-12"

    def test_month(self):
        assert previous_period("monthly", "2024-03") == "2024-02"

    def test_week(self):
        assert previous_period("weekly", "2024-W11") == "2024-W10"

    def test_week_1_wraps_to_week_52(self):
        assert previous_period("weekly", "2024-W01") == "2023-W52"

    def test_total_maps_to_itself(self):
        assert previous_period("total", "total") == "total"


class TestValidatePeriod:
    """Malformed identifiers are rejected."""

    @pytest.mark.parametrize(
        ("ranking_type", "period"),
        [
            ("monthly", "2024-13"),
            ("monthly", "2024-00"),
            ("monthly", "2024-3"),
            ("monthly", "2024-W11"),
            ("weekly", "2024-W00"),
            ("weekly", "2024-W55"),
            ("weekly", "2024W11"),
            ("weekly", "2024-03"),
            ("total", "2024"),
            ("yearly", "2024"),
        ],
    )
    def test_rejects(self, ranking_type, period):
        with pytest.raises(InvalidPeriodError):
            validate_period(ranking_type, period)

    def test_accepts(self):
        assert validate_period("weekly", "2024-W54") == "2024-W54"
        assert validate_period("monthly", "2024-12") == "2024-12"
        assert validate_period("total", "total") == "total"
