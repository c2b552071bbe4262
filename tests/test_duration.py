"""Unit tests for the compact duration formatter.

Tests cover:
- breakdown: fixed divisors, clamping of negative spans
- format_breakdown: every row of the selection table, the two-unit cap,
  the same-calendar-day rule for minutes (in London time) and the under-an-hour rule for
  seconds
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.enquiry_timeline.timeline.duration import breakdown, format_breakdown

START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _after(**delta: float) -> str:
    return format_breakdown(START, START + timedelta(**delta))


class TestBreakdown:
    def test_fixed_divisors(self) -> None:
        # 1 year (48 weeks), 2 months, 3 weeks, 4 days, 5h 6m 7s
        seconds = ((((12 + 2) * 4 + 3) * 7 + 4) * 24 + 5) * 3600 + 6 * 60 + 7
        parts = breakdown(START, START + timedelta(seconds=seconds))

        assert parts.years == 1
        assert parts.months == 2
        assert parts.total_months == 14
        assert parts.weeks == 3
        assert parts.days == 4
        assert parts.hours == 5
        assert parts.minutes == 6
        assert parts.seconds == 7

    def test_negative_span_clamped_to_zero(self) -> None:
        parts = breakdown(START, START - timedelta(hours=3))
        assert parts.total_seconds == 0

    def test_naive_datetimes_treated_as_utc(self) -> None:
        naive = START.replace(tzinfo=None)
        parts = breakdown(naive, START + timedelta(minutes=5))
        assert parts.minutes == 5


class TestFormatBreakdown:
    """Boundary cases for format_breakdown."""

    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(seconds=3600), "1H"),
            (timedelta(seconds=3661), "1H 1M"),
            (timedelta(seconds=59), "59S"),
            (timedelta(seconds=61), "1M 1S"),
            (timedelta(seconds=90000), "1D 1H"),
            (timedelta(minutes=5), "5M"),
            (timedelta(days=2), "2D"),
            (timedelta(days=8), "1W 1D"),
            (timedelta(weeks=2), "2W"),
            (timedelta(days=28), "1M"),
            (timedelta(days=35), "1M 1W"),
        ],
    )
    def test_selection_table(self, delta: timedelta, expected: str) -> None:
        assert format_breakdown(START, START + delta) == expected

    def test_zero_elapsed(self) -> None:
        assert format_breakdown(START, START) == "0M"

    def test_future_start_renders_zero(self) -> None:
        assert format_breakdown(START + timedelta(days=1), START) == "0M"

    def test_days_never_show_seconds(self) -> None:
        assert _after(days=1, hours=1, seconds=30) == "1D 1H"

    def test_hours_drop_minutes_across_midnight(self) -> None:
        start = datetime(2024, 3, 1, 23, 30, tzinfo=timezone.utc)
        end = datetime(2024, 3, 2, 1, 45, tzinfo=timezone.utc)
        assert format_breakdown(start, end) == "2H"

    def test_calendar_day_taken_in_london_time(self) -> None:
        # 22:30-23:45 UTC in July crosses midnight BST.
        start = datetime(2024, 7, 1, 22, 30, tzinfo=timezone.utc)
        end = datetime(2024, 7, 1, 23, 45, tzinfo=timezone.utc)

        assert format_breakdown(start, end) == "1H"
        assert format_breakdown(start, end, tz=timezone.utc) == "1H 15M"

    def test_hours_keep_minutes_on_same_day(self) -> None:
        assert _after(hours=2, minutes=15) == "2H 15M"

    def test_at_most_two_units(self) -> None:
        result = _after(weeks=1, days=2, hours=3, minutes=4)
        assert result == "1W 2D"
        assert len(result.split()) == 2

    def test_defaults_to_now(self) -> None:
        recent = datetime.now(timezone.utc) - timedelta(days=3, hours=2)
        assert format_breakdown(recent).startswith("3D")
