"""Compact elapsed-time formatting ("3D 4H", "1M 1S").

Used both for the live "time since enquiry" badge and for the gap between
consecutive pipeline events. Elapsed seconds are decomposed with fixed
divisors (60 s, 60 m, 24 h, 7 d, 4 w, 12 mo), so a "month" is four weeks.
At most two units are shown, most significant first. Calendar days are
compared in the firm's timezone (Europe/London unless told otherwise).
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import NamedTuple
from zoneinfo import ZoneInfo

_ONE_HOUR = 3600

DEFAULT_TIMEZONE = ZoneInfo("Europe/London")


class DurationParts(NamedTuple):
    """Elapsed time broken down with fixed divisors."""

    total_seconds: int
    seconds: int
    minutes: int
    hours: int
    days: int
    weeks: int
    months: int
    years: int

    @property
    def total_months(self) -> int:
        return self.years * 12 + self.months


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def breakdown(start: datetime, end: datetime) -> DurationParts:
    """Decompose ``end - start`` into fixed-divisor units, clamped at zero."""
    start, end = _as_aware(start), _as_aware(end)
    remaining = max(0, int((end - start).total_seconds()))
    total = remaining

    seconds, remaining = remaining % 60, remaining // 60
    minutes, remaining = remaining % 60, remaining // 60
    hours, remaining = remaining % 24, remaining // 24
    days, remaining = remaining % 7, remaining // 7
    weeks, remaining = remaining % 4, remaining // 4
    months, years = remaining % 12, remaining // 12

    return DurationParts(total, seconds, minutes, hours, days, weeks, months, years)


def _same_calendar_day(start: datetime, end: datetime, tz: tzinfo) -> bool:
    start, end = _as_aware(start), _as_aware(end)
    return start.astimezone(tz).date() == end.astimezone(tz).date()


def format_breakdown(
    start: datetime,
    end: datetime | None = None,
    tz: tzinfo | None = None,
) -> str:
    """Format the time elapsed from ``start`` to ``end`` (default: now).

    Selection, first match wins:
        months  -> "<mo>M" [+ "<w>W"]
        weeks   -> "<w>W"  [+ "<d>D"]
        days    -> "<d>D"  [+ "<h>H"]
        hours   -> "<h>H"  [+ "<m>M" when both instants share a calendar day]
        minutes -> "<m>M"  [+ "<s>S" when under one hour]
        seconds -> "<s>S"  (under one hour)
        nothing -> "0M"

    Args:
        start: Earlier instant. Naive datetimes are treated as UTC.
        end: Later instant; defaults to the current time.
        tz: Timezone for the calendar-day rule; defaults to DEFAULT_TIMEZONE.

    Returns:
        At most two space-separated units, e.g. ``"1H 1M"``.
    """
    if end is None:
        end = datetime.now(timezone.utc)
    if tz is None:
        tz = DEFAULT_TIMEZONE

    parts = breakdown(start, end)
    under_one_hour = parts.total_seconds < _ONE_HOUR
    display: list[str] = []

    if parts.total_months > 0:
        display.append(f"{parts.total_months}M")
        if parts.weeks > 0:
            display.append(f"{parts.weeks}W")
    elif parts.weeks > 0:
        display.append(f"{parts.weeks}W")
        if parts.days > 0:
            display.append(f"{parts.days}D")
    elif parts.days > 0:
        display.append(f"{parts.days}D")
        if parts.hours > 0:
            display.append(f"{parts.hours}H")
    elif parts.hours > 0:
        display.append(f"{parts.hours}H")
        if parts.minutes > 0 and _same_calendar_day(start, end, tz):
            display.append(f"{parts.minutes}M")
    elif parts.minutes > 0:
        display.append(f"{parts.minutes}M")
        if under_one_hour and parts.seconds > 0:
            display.append(f"{parts.seconds}S")
    elif under_one_hour and parts.seconds > 0:
        display.append(f"{parts.seconds}S")

    if not display:
        display.append("0M")

    return " ".join(display[:2])
