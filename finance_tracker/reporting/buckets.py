"""
Time-Bucketer

Turns dated monetary records into a fixed-length, ordered series of
(label, total) pairs for one of the bucketing modes:

- WEEKLY: Mon..Sun of the current ISO week; only records dated from
  Monday 00:00 up to `now` count.
- ROLLING_WEEK: the last 7 days; slot 6 is today, slot 0 is 6 days ago.
- MONTHLY: Jan..Dec of the current calendar year.
- YEARLY: the last `yearly_window` years, ascending, ending with now.year.

Every bucket is always present, even with a zero total. Records outside
the window (or without a date) are dropped silently.
"""

import calendar
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Optional

from finance_tracker.config import ReportingSettings, get_settings
from finance_tracker.models.reports import BucketMode, BucketTotal
from finance_tracker.reporting.numbers import ZERO, coerce_amount

WEEKDAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
ROLLING_WEEK_LABELS = ["6d", "5d", "4d", "3d", "2d", "1d", "Today"]
MONTH_LABELS = [calendar.month_abbr[month] for month in range(1, 13)]

_ONE_DAY = timedelta(days=1)


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def as_local_naive(value: datetime) -> datetime:
    """Drop tzinfo after converting to local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def record_datetime(record: Any) -> Optional[datetime]:
    """The record's date as a naive local datetime, or None."""
    value = _field(record, "date")
    if isinstance(value, datetime):
        return as_local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return None


def start_of_week(now: datetime) -> datetime:
    """Monday 00:00 of the ISO week containing `now`."""
    return datetime.combine(now.date() - timedelta(days=now.weekday()), time.min)


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """First instant and last instant of `now`'s calendar month."""
    first = datetime(now.year, now.month, 1)
    last_day = calendar.monthrange(now.year, now.month)[1]
    last = datetime.combine(date(now.year, now.month, last_day), time.max)
    return first, last


def _window(yearly_window: Optional[int], settings: Optional[ReportingSettings]) -> int:
    if yearly_window is not None:
        return yearly_window
    return (settings or get_settings().reporting).yearly_window


def bucket_labels(
    mode: BucketMode,
    now: datetime,
    yearly_window: Optional[int] = None,
    settings: Optional[ReportingSettings] = None,
) -> list[str]:
    """Labels of `mode`; the yearly window defaults to the configured one."""
    if mode == BucketMode.WEEKLY:
        return list(WEEKDAY_LABELS)
    if mode == BucketMode.ROLLING_WEEK:
        return list(ROLLING_WEEK_LABELS)
    if mode == BucketMode.MONTHLY:
        return list(MONTH_LABELS)
    if mode == BucketMode.YEARLY:
        window = _window(yearly_window, settings)
        return [str(year) for year in range(now.year - window + 1, now.year + 1)]
    raise ValueError(f"Unknown bucket mode: {mode}")


def _slot(
    mode: BucketMode,
    when: datetime,
    now: datetime,
    week_start: datetime,
    yearly_window: int,
) -> Optional[int]:
    """Index of the bucket `when` falls into, or None if outside the window."""
    if mode == BucketMode.WEEKLY:
        if week_start <= when <= now:
            # Monday=0 .. Sunday=6
            return when.weekday()
        return None

    if mode == BucketMode.ROLLING_WEEK:
        diff_days = (now - when) // _ONE_DAY
        if 0 <= diff_days < 7:
            return 6 - diff_days
        return None

    if mode == BucketMode.MONTHLY:
        if when.year == now.year:
            return when.month - 1
        return None

    if mode == BucketMode.YEARLY:
        offset = when.year - (now.year - yearly_window + 1)
        if 0 <= offset < yearly_window:
            return offset
        return None

    raise ValueError(f"Unknown bucket mode: {mode}")


def bucket(
    records: Iterable[Any],
    mode: BucketMode,
    now: Optional[datetime] = None,
    yearly_window: Optional[int] = None,
    settings: Optional[ReportingSettings] = None,
) -> list[BucketTotal]:
    """
    Sum record amounts into the buckets of `mode`.

    Args:
        records: Objects or mappings exposing `amount` and `date`
        mode: Bucketing mode
        now: Reference instant (defaults to the current local time)
        yearly_window: Number of years for YEARLY mode; overrides the setting
        settings: Reporting settings (defaults to the app settings)

    Returns:
        One BucketTotal per label, in label order
    """
    now = as_local_naive(now or datetime.now())
    yearly_window = _window(yearly_window, settings)
    labels = bucket_labels(mode, now, yearly_window)
    totals = [ZERO] * len(labels)
    week_start = start_of_week(now)

    for record in records:
        when = record_datetime(record)
        if when is None:
            continue
        index = _slot(mode, when, now, week_start, yearly_window)
        if index is None:
            continue
        totals[index] += coerce_amount(_field(record, "amount"))

    return [BucketTotal(label=label, total=amount) for label, amount in zip(labels, totals)]
