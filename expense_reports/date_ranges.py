"""Resolve report date-range options into inclusive start/end instants.

Weeks start on Sunday.  Every range is a closed interval running from local
midnight of the first day to the last representable instant of the final
day, so a record dated on either boundary day is always included.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from .formatting import format_short_date

RANGE_OPTIONS = ("today", "week", "month", "custom")

RANGE_LABELS = {
    "today": "Today",
    "week": "This Week",
    "month": "This Month",
    "custom": "Custom Range",
}


class DateRangeError(ValueError):
    """Raised when a date-range selection cannot be resolved."""


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end

    def caption(self) -> str:
        return f"{format_short_date(self.start)} - {format_short_date(self.end)}"


def start_of_day(value: Union[date, datetime]) -> datetime:
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.min)


def end_of_day(value: Union[date, datetime]) -> datetime:
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.max)


def start_of_week(value: datetime) -> datetime:
    # date.weekday() counts from Monday; shift so Sunday is day zero.
    days_since_sunday = (value.weekday() + 1) % 7
    return start_of_day(value - timedelta(days=days_since_sunday))


def end_of_week(value: datetime) -> datetime:
    return end_of_day(start_of_week(value) + timedelta(days=6))


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value.replace(day=1))


def end_of_month(value: datetime) -> datetime:
    last_day = calendar.monthrange(value.year, value.month)[1]
    return end_of_day(value.replace(day=last_day))


def resolve_date_range(
    option: str,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> DateRange:
    """Map a range option to a concrete inclusive ``DateRange``.

    Args:
        option: One of ``today``, ``week``, ``month`` or ``custom``
        custom_start: First day of a custom range
        custom_end: Last day of a custom range
        now: Reference instant, defaults to the local wall clock

    Raises:
        DateRangeError: For unknown options, missing custom dates, or a
            custom end date earlier than the start date
    """
    now = now or datetime.now()

    if option == "today":
        return DateRange(start_of_day(now), end_of_day(now))
    if option == "week":
        return DateRange(start_of_week(now), end_of_week(now))
    if option == "month":
        return DateRange(start_of_month(now), end_of_month(now))
    if option == "custom":
        if custom_start is None or custom_end is None:
            raise DateRangeError("Select both a start date and an end date.")
        start = start_of_day(custom_start)
        end = end_of_day(custom_end)
        if end < start:
            raise DateRangeError("End date cannot be earlier than the start date.")
        return DateRange(start, end)

    raise DateRangeError(f"Unknown date range option '{option}'.")
