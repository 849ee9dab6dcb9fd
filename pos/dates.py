from datetime import datetime, timedelta, tzinfo
from typing import Any, List, NamedTuple, Optional

import pandas as pd
from dateutil import tz as dateutil_tz

PRESETS = ("daily", "weekly", "monthly", "last_30_days")
CUSTOM = "custom"

# system zone with DST rules, so a rebuilt midnight gets that day's own offset
LOCAL_ZONE: tzinfo = dateutil_tz.tzlocal()


class DateWindow(NamedTuple):
    start: datetime
    end: datetime
    preset: str = CUSTOM


def reporting_zone(tz: Optional[tzinfo] = None) -> tzinfo:
    return tz if tz is not None else LOCAL_ZONE


def now_local(tz: Optional[tzinfo] = None) -> datetime:
    return datetime.now(reporting_zone(tz))


def to_local(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Attach or convert to the reporting timezone (system local when tz is None)."""
    zone = reporting_zone(tz)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=zone)
    return dt.astimezone(zone)


def parse_timestamp(value: Any, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Parse a stored timestamp into an aware datetime.

    Accepts datetimes, ISO-8601 strings (naive ones are read in ``tz``) and
    epoch milliseconds. Anything else yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return to_local(value, tz)
    if isinstance(value, (int, float)):
        ts = pd.to_datetime(value, unit="ms", utc=True, errors="coerce")
    elif isinstance(value, str):
        if not value.strip():
            return None
        ts = pd.to_datetime(value.strip(), errors="coerce")
    else:
        return None
    if pd.isna(ts):
        return None
    return to_local(ts.to_pydatetime(), tz)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=999999)


def start_of_week(dt: datetime) -> datetime:
    # weeks start on Monday
    return start_of_day(dt - timedelta(days=dt.weekday()))


def end_of_week(dt: datetime) -> datetime:
    return end_of_day(start_of_week(dt) + timedelta(days=6))


def start_of_month(dt: datetime) -> datetime:
    return start_of_day(dt.replace(day=1))


def preset_window(preset: str, now: datetime) -> DateWindow:
    if preset == "daily":
        return DateWindow(start_of_day(now), end_of_day(now), preset)
    if preset == "weekly":
        return DateWindow(start_of_week(now), end_of_day(now), preset)
    if preset == "monthly":
        return DateWindow(start_of_month(now), end_of_day(now), preset)
    if preset == "last_30_days":
        return DateWindow(start_of_day(now - timedelta(days=30)), end_of_day(now), preset)
    raise ValueError(f"Unknown date range preset: {preset!r}")


def within(dt: Optional[datetime], start: datetime, end: datetime) -> bool:
    # both ends inclusive
    return dt is not None and start <= dt <= end


def last_months(now: datetime, count: int = 12) -> List[str]:
    """YYYY-MM labels of the ``count`` months ending with ``now``'s month."""
    periods = pd.period_range(end=f"{now:%Y-%m}", periods=count, freq="M")
    return [str(p) for p in periods]
