"""Calendar-day window classification (today / this week / this month).

All timestamps are normalized to a single IANA timezone before being floored
to a calendar day: naive values are wall-clock times in that zone, aware
values are converted into it, and date-only values are used as-is. Weeks
start on Monday (ISO).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional

import pandas as pd


DEFAULT_TZ = "UTC"


class Window(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


@dataclass(frozen=True)
class WindowFlags:
    is_today: bool = False
    is_this_week: bool = False
    is_this_month: bool = False


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def to_timestamp(value: Any, tz: str = DEFAULT_TZ) -> Optional[pd.Timestamp]:
    """Parse ``value`` into an aware timestamp in ``tz`` (``None`` if unparseable)."""
    if _is_missing(value):
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is None:
        return ts.tz_localize(tz)
    return ts.tz_convert(tz)


def to_calendar_date(value: Any, tz: str = DEFAULT_TZ) -> Optional[date]:
    if _is_missing(value):
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    ts = to_timestamp(value, tz)
    return ts.date() if ts is not None else None


def reference_date(reference: Any = None, tz: str = DEFAULT_TZ) -> date:
    if reference is None:
        return pd.Timestamp.now(tz=tz).date()
    day = to_calendar_date(reference, tz)
    if day is None:
        raise ValueError(f"invalid reference instant: {reference!r}")
    return day


def start_of_week(day: date) -> date:
    return day - timedelta(days=day.weekday())


def end_of_week(day: date) -> date:
    return start_of_week(day) + timedelta(days=6)


def _flags_for(day: Optional[date], ref: date) -> WindowFlags:
    if day is None:
        return WindowFlags()
    return WindowFlags(
        is_today=day == ref,
        is_this_week=start_of_week(ref) <= day <= end_of_week(ref),
        is_this_month=(day.year, day.month) == (ref.year, ref.month),
    )


def classify(timestamp: Any, reference: Any = None, tz: str = DEFAULT_TZ) -> WindowFlags:
    return _flags_for(to_calendar_date(timestamp, tz), reference_date(reference, tz))


def normalize_window(value: Any) -> Window:
    if isinstance(value, Window):
        return value
    try:
        return Window(str(value).strip().lower())
    except ValueError:
        return Window.ALL


def _matches(flags: WindowFlags, window: Window) -> bool:
    if window == Window.TODAY:
        return flags.is_today
    if window == Window.WEEK:
        return flags.is_this_week
    if window == Window.MONTH:
        return flags.is_this_month
    return True


def in_window(timestamp: Any, window: Any, reference: Any = None, tz: str = DEFAULT_TZ) -> bool:
    win = normalize_window(window)
    if win == Window.ALL:
        return True
    return _matches(classify(timestamp, reference, tz), win)


def calendar_dates(series: pd.Series, tz: str = DEFAULT_TZ) -> pd.Series:
    return series.map(lambda v: to_calendar_date(v, tz))


def window_mask(series: pd.Series, window: Any, reference: Any = None, tz: str = DEFAULT_TZ) -> pd.Series:
    win = normalize_window(window)
    if win == Window.ALL:
        return pd.Series(True, index=series.index, dtype=bool)
    ref = reference_date(reference, tz)
    days = calendar_dates(series, tz)
    return days.map(lambda d: _matches(_flags_for(d, ref), win)).astype(bool)


def days_until(value: Any, reference: Any = None, tz: str = DEFAULT_TZ) -> Optional[int]:
    """Whole days (rounded up) from the reference instant until ``value``."""
    target = to_timestamp(value, tz)
    if target is None:
        return None
    ref = to_timestamp(reference, tz) if reference is not None else pd.Timestamp.now(tz=tz)
    if ref is None:
        return None
    return int(math.ceil((target - ref).total_seconds() / 86400))


def is_within_days(value: Any, days: int, reference: Any = None, tz: str = DEFAULT_TZ) -> bool:
    ts = to_timestamp(value, tz)
    if ts is None:
        return False
    ref = to_timestamp(reference, tz) if reference is not None else pd.Timestamp.now(tz=tz)
    if ref is None:
        return False
    return ts > ref - pd.Timedelta(days=days)
