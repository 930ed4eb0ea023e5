from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional, Tuple

from changetrack.core.errors import ValidationError

PERIODS = ("thisWeek", "thisMonth", "lastMonth", "lastQuarter")
DEFAULT_PERIOD = "thisMonth"


def _shift_months(dt: datetime, months: int) -> datetime:
    month_index = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(month_index, 12)
    # clamp the day into the target month (e.g. May 31 - 3 months -> Feb 28)
    for day in (dt.day, 30, 29, 28):
        try:
            return dt.replace(year=year, month=month + 1, day=day)
        except ValueError:
            continue
    raise ValueError(f"cannot shift {dt} by {months} months")


def _start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def period_range(period: Optional[str], now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Resolve a named reporting window to (start, end).
    Unknown or empty names fall back to thisMonth.
    """
    end = now or datetime.utcnow()
    if period == "thisWeek":
        start = end - timedelta(days=7)
    elif period == "lastMonth":
        start = _start_of_day(_shift_months(end, -1).replace(day=1))
    elif period == "lastQuarter":
        start = _shift_months(end, -3)
    else:
        start = _start_of_day(end.replace(day=1))
    return start, end


def parse_iso(ts: Optional[str]) -> Optional[datetime]:
    if not ts:
        return None
    # Accept "YYYY-MM-DD" or full ISO
    try:
        return datetime.fromisoformat(ts)
    except ValueError:
        raise ValidationError(f"invalid ISO8601 timestamp: '{ts}'")
