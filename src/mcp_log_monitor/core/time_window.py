"""Time-window parsing helpers.

Converts user-friendly window selectors into inclusive UTC query windows.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

DEFAULT_MINUTES_LOOKBACK = 5


def parse_iso_dt(s: str) -> datetime:
    """Parse ISO8601 datetime. If tz is missing, assume UTC."""
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def range_for_date(s: str) -> tuple[datetime, datetime]:
    """Return the UTC day window for an ISO date string."""
    d = date.fromisoformat(s)
    start = datetime(d.year, d.month, d.day, tzinfo=UTC)
    return start, start + timedelta(days=1)


def range_for_hour(s: str) -> tuple[datetime, datetime]:
    """Return the UTC hour window for a YYYY-MM-DDTHH selector."""
    base = datetime.fromisoformat(s)
    if base.tzinfo is None:
        base = base.replace(tzinfo=UTC)
    start = base.astimezone(UTC).replace(minute=0, second=0, microsecond=0)
    return start, start + timedelta(hours=1)


def resolve_time_window(
    *,
    since: str | None = None,
    until: str | None = None,
    date_: str | None = None,
    hour: str | None = None,
    minutes_lookback: int | None = None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Resolve a closed UTC query window.

    Precedence: date, hour, minutes_lookback, then since/until. Missing
    bounds default to the last DEFAULT_MINUTES_LOOKBACK minutes ending now.
    """
    now = now or datetime.now(UTC)
    if date_:
        return range_for_date(date_)
    if hour:
        return range_for_hour(hour)
    if minutes_lookback is not None:
        if minutes_lookback < 0:
            raise ValueError("minutes_lookback must be >= 0")
        return now - timedelta(minutes=minutes_lookback), now

    end = parse_iso_dt(until) if until else now
    begin = parse_iso_dt(since) if since else end - timedelta(minutes=DEFAULT_MINUTES_LOOKBACK)
    if begin > end:
        raise ValueError("since must be <= until")
    return begin, end
