"""Time parsing and formatting utilities.

Instants are carried around as Unix epoch nanoseconds (UTC) so that the
nanosecond fractions allowed by RFC 3339 survive; datetimes are only built
for display and for user input.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, timezone
from typing import Iterable

from zoneinfo import ZoneInfo

NS_PER_SECOND = 1_000_000_000
NS_PER_MICROSECOND = 1_000

_RFC3339_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)


def tzinfo_from_name(tz_name: str) -> timezone:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "UTC" or "America/Los_Angeles".

    Returns:
        tzinfo instance.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：UTC、Asia/Shanghai") from exc


def parse_rfc3339_ns(text: str) -> int:
    """Parse an RFC 3339 timestamp into epoch nanoseconds.

    Accepts "2016-12-03T07:23:50Z", fractional seconds of any length
    (digits past nanoseconds are truncated) and numeric offsets such as
    "+02:00". Anything else is rejected.

    Raises:
        ValueError: If the text is not a valid RFC 3339 timestamp.
    """

    m = _RFC3339_RE.match(text)
    if m is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {text!r}")

    year, month, day, hour, minute, second = (int(g) for g in m.groups()[:6])
    fraction, zone = m.group(7), m.group(8)

    if zone == "Z":
        tz = UTC
    else:
        sign = -1 if zone[0] == "-" else 1
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        if offset >= timedelta(hours=24):
            raise ValueError(f"invalid RFC 3339 offset: {text!r}")
        tz = timezone(sign * offset)

    try:
        dt = datetime(year, month, day, hour, minute, second, tzinfo=tz)
    except ValueError as exc:
        raise ValueError(f"invalid RFC 3339 timestamp: {text!r}") from exc

    frac_ns = int(fraction[:9].ljust(9, "0")) if fraction else 0
    return calendar.timegm(dt.utctimetuple()) * NS_PER_SECOND + frac_ns


def format_rfc3339_ns(epoch_ns: int) -> str:
    """Format epoch nanoseconds as UTC RFC 3339, trailing fraction zeros dropped."""

    seconds, frac_ns = divmod(epoch_ns, NS_PER_SECOND)
    base = datetime.fromtimestamp(seconds, tz=UTC).strftime("%Y-%m-%dT%H:%M:%S")
    if frac_ns:
        base += "." + f"{frac_ns:09d}".rstrip("0")
    return base + "Z"


def dt_from_epoch_ns(epoch_ns: int, tz_name: str = "UTC") -> datetime:
    """Convert epoch nanoseconds to a timezone-aware datetime.

    Sub-microsecond digits are truncated.
    """

    seconds, frac_ns = divmod(epoch_ns, NS_PER_SECOND)
    dt = datetime.fromtimestamp(seconds, tz=UTC) + timedelta(microseconds=frac_ns // NS_PER_MICROSECOND)
    if tz_name == "UTC":
        return dt
    return dt.astimezone(tzinfo_from_name(tz_name))


def epoch_ns_from_dt(dt: datetime) -> int:
    """Convert a datetime to epoch nanoseconds.

    Args:
        dt: Datetime. If naive, will be treated as UTC (discouraged).

    Returns:
        Epoch nanoseconds.
    """

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return calendar.timegm(dt.utctimetuple()) * NS_PER_SECOND + dt.microsecond * NS_PER_MICROSECOND


def ns_from_timedelta(delta: timedelta) -> int:
    """Exact nanosecond count of a timedelta."""

    return (delta // timedelta(microseconds=1)) * NS_PER_MICROSECOND


def parse_dt(text: str, tz_name: str) -> datetime:
    """Parse user-provided datetime text to a timezone-aware datetime.

    Supported formats:
      - "YYYY-MM-DD HH:MM:SS"
      - "YYYY-MM-DDTHH:MM:SS"
      - with optional timezone offset, e.g. "+08:00" or "Z"

    If timezone is missing, it will be assumed to be tz_name.

    Args:
        text: Datetime string.
        tz_name: IANA timezone name for naive strings.

    Returns:
        Timezone-aware datetime.

    Raises:
        ValueError: If cannot parse.
    """

    s = text.strip().replace("T", " ")
    tz = tzinfo_from_name(tz_name)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"无法解析时间：{text!r}。建议格式：2016-12-03 07:23:50") from exc

    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


@dataclass(frozen=True, slots=True)
class DeltaStats:
    """Sampling interval stats (seconds)."""

    count: int
    min_s: float
    median_s: float
    p95_s: float
    max_s: float


def delta_stats(epoch_ns_sorted: Iterable[int]) -> DeltaStats | None:
    """Compute basic sampling-interval statistics.

    Args:
        epoch_ns_sorted: Epoch nanoseconds sorted ascending.

    Returns:
        DeltaStats or None if less than 2 points.
    """

    ns = list(epoch_ns_sorted)
    if len(ns) < 2:
        return None
    deltas = [(ns[i] - ns[i - 1]) / NS_PER_SECOND for i in range(1, len(ns)) if ns[i] >= ns[i - 1]]
    if not deltas:
        return None
    deltas.sort()
    n = len(deltas)
    median = deltas[n // 2] if n % 2 == 1 else 0.5 * (deltas[n // 2 - 1] + deltas[n // 2])
    p95 = deltas[int(0.95 * (n - 1))]
    return DeltaStats(
        count=n,
        min_s=deltas[0],
        median_s=median,
        p95_s=p95,
        max_s=deltas[-1],
    )
