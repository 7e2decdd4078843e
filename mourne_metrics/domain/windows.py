"""
Reporting date windows (previous day, WTD, MTD, YTD, custom ranges).

All windows are half-open ``[date_from, date_to)`` over calendar days and are
built relative to an explicit ``today``; the business week starts on Monday.
"""
from dataclasses import dataclass
from datetime import date as Date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

UK_TZ = ZoneInfo("Europe/London")

RANGE_MODES = (
    "previous_day", "yesterday", "wtd", "this_week", "previous_week",
    "mtd", "this_month", "ytd", "custom",
)


@dataclass(frozen=True)
class DateWindow:
    """Half-open calendar window [date_from, date_to)."""
    date_from: Date
    date_to: Date
    label: str = ""

    def __post_init__(self):
        if self.date_to < self.date_from:
            raise ValueError(
                f"Window end {self.date_to} is before start {self.date_from}"
            )

    def contains(self, day: Optional[Date]) -> bool:
        if day is None:
            return False
        return self.date_from <= day < self.date_to

    @property
    def last_day(self) -> Date:
        """Inclusive last day (for display and inclusive queries)."""
        return self.date_to - timedelta(days=1)

    @property
    def n_days(self) -> int:
        return (self.date_to - self.date_from).days


def uk_today(now: Optional[datetime] = None) -> Date:
    """Current calendar date in Europe/London."""
    if now is None:
        now = datetime.now(UK_TZ)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UK_TZ)
    return now.astimezone(UK_TZ).date()


def week_start(day: Date) -> Date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def previous_day(today: Date) -> DateWindow:
    # today is never complete, so the default view is yesterday
    start = today - timedelta(days=1)
    return DateWindow(start, today, "Previous day")


def week_to_date(today: Date) -> DateWindow:
    return DateWindow(week_start(today), today + timedelta(days=1), "Week to date")


def this_week(today: Date) -> DateWindow:
    start = week_start(today)
    return DateWindow(start, start + timedelta(days=7), "This week")


def previous_week(today: Date) -> DateWindow:
    end = week_start(today)
    return DateWindow(end - timedelta(days=7), end, "Previous week")


def month_to_date(today: Date) -> DateWindow:
    return DateWindow(today.replace(day=1), today + timedelta(days=1), "Month to date")


def this_month(today: Date) -> DateWindow:
    start = today.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return DateWindow(start, end, f"This month ({start.strftime('%B')})")


def year_to_date(today: Date) -> DateWindow:
    return DateWindow(Date(today.year, 1, 1), today + timedelta(days=1), "Year to date")


def last_n_days(today: Date, n: int) -> DateWindow:
    """The ``n`` days up to and including today."""
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    return DateWindow(today - timedelta(days=n - 1), today + timedelta(days=1), f"Last {n} days")


def custom(date_from: Date, date_to_inclusive: Date) -> DateWindow:
    if date_to_inclusive < date_from:
        raise ValueError(
            f"Custom range end {date_to_inclusive} is before start {date_from}"
        )
    return DateWindow(
        date_from,
        date_to_inclusive + timedelta(days=1),
        f"Custom ({date_from.isoformat()} → {date_to_inclusive.isoformat()})",
    )


def window_for_mode(
    mode: str,
    today: Date,
    custom_from: Optional[Date] = None,
    custom_to: Optional[Date] = None,
) -> DateWindow:
    """
    Resolve a dashboard range-mode string to a window.

    Raises:
        ValueError: unknown mode, or "custom" without both bounds.
    """
    if mode in ("previous_day", "yesterday"):
        return previous_day(today)
    if mode == "wtd":
        return week_to_date(today)
    if mode == "this_week":
        return this_week(today)
    if mode == "previous_week":
        return previous_week(today)
    if mode == "mtd":
        return month_to_date(today)
    if mode == "this_month":
        return this_month(today)
    if mode == "ytd":
        return year_to_date(today)
    if mode == "custom":
        if custom_from is None or custom_to is None:
            raise ValueError("Custom range requires both a start and an end date")
        return custom(custom_from, custom_to)
    raise ValueError(f"Invalid range mode: {mode}. Must be one of {', '.join(RANGE_MODES)}.")
