"""Module: slots.

Turns local wall-clock dose times ("08:00") into absolute instants for a
calendar day in an IANA zone.

DST policy:
  * a local time inside a spring-forward gap resolves to the first valid
    instant after the gap (the transition itself, e.g. 02:30 -> 03:00);
  * a local time inside a fall-back overlap resolves to the earlier
    occurrence (pre-transition offset).
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Iterable, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from vetmed.core.errors import ValidationError

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::00)?$")


def parse_hhmm(value: str) -> time:
    if not isinstance(value, str):
        raise ValidationError(f"Invalid local time {value!r} (expected HH:MM)")
    m = HHMM_RE.match(value.strip())
    if not m:
        raise ValidationError(f"Invalid local time {value!r} (expected HH:MM)")
    return time(int(m.group(1)), int(m.group(2)))


@lru_cache(maxsize=256)
def _load_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def get_zone(name: str) -> ZoneInfo:
    if not name or not isinstance(name, str):
        raise ValidationError("Timezone is required")
    try:
        return _load_zone(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Invalid timezone {name!r}")


def is_valid_timezone(name: str) -> bool:
    try:
        get_zone(name)
    except ValidationError:
        return False
    return True


def parse_local_date(value) -> date:
    if isinstance(value, datetime):
        raise ValidationError("Expected a calendar date, got a datetime")
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid date {value!r} (expected YYYY-MM-DD)")


def _gap_end(naive: datetime, tz: ZoneInfo) -> datetime:
    # fold=1 applies the post-transition offset -> an instant before the jump;
    # fold=0 applies the pre-transition offset -> an instant after it.
    lo = naive.replace(tzinfo=tz, fold=1).astimezone(timezone.utc)
    hi = naive.replace(tzinfo=tz, fold=0).astimezone(timezone.utc)
    after = hi.astimezone(tz).utcoffset()
    lo_m, hi_m = 0, int((hi - lo).total_seconds() // 60)
    # first minute whose offset is already the post-transition one
    while lo_m < hi_m:
        mid = (lo_m + hi_m) // 2
        if (lo + timedelta(minutes=mid)).astimezone(tz).utcoffset() == after:
            hi_m = mid
        else:
            lo_m = mid + 1
    return lo + timedelta(minutes=lo_m)


def resolve_local(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Absolute UTC instant for wall time ``at`` on ``day`` in ``tz``."""
    naive = datetime.combine(day, at)
    candidate = naive.replace(tzinfo=tz, fold=0)
    as_utc = candidate.astimezone(timezone.utc)
    if as_utc.astimezone(tz).replace(tzinfo=None) != naive:
        return _gap_end(naive, tz)
    return as_utc


def expand(times_local: Iterable[str], date_iso, timezone_name: str) -> List[datetime]:
    """One UTC instant per entry of ``times_local`` on ``date_iso`` in ``timezone_name``.

    Order follows the input; the result depends only on the arguments.
    """
    tz = get_zone(timezone_name)
    day = parse_local_date(date_iso)
    return [resolve_local(day, parse_hhmm(t), tz) for t in times_local]


def local_day(instant: datetime, timezone_name: str) -> date:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(get_zone(timezone_name)).date()


def local_day_iso(instant: datetime, timezone_name: str) -> str:
    return local_day(instant, timezone_name).isoformat()


def local_wall_time(instant: datetime, timezone_name: str) -> str:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(get_zone(timezone_name)).strftime("%H:%M")


def iter_days(start: date, end: date):
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)
