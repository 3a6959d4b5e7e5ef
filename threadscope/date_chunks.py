"""Partitioning of a requested time window into fetch-sized chunks."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from threadscope.data_helpers import parse_timestamp
from threadscope.errors import ValidationError
from threadscope.models import Chunk, TimeRange

POLICY_DAY = "day"
POLICY_DAYPART = "daypart"

# Hour boundaries of the day-part policy: sparse nights, busy evenings.
DAYPART_BOUNDARIES = (0, 12, 17, 19, 21, 24)


def _coerce_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return parse_timestamp(value)


def parse_time_range(start: Any, end: Any) -> TimeRange:
    """Build a validated TimeRange from datetimes or ISO strings.

    Raises ValidationError when either side is missing or unparsable, or when
    ``start`` is not strictly before ``end``.
    """
    if start is None or end is None or (isinstance(start, str) and not start.strip()) or (
        isinstance(end, str) and not end.strip()
    ):
        raise ValidationError("Please select both start and end dates")
    start_dt = _coerce_datetime(start)
    end_dt = _coerce_datetime(end)
    if start_dt is None:
        raise ValidationError(f"Unparsable start date: {start!r}")
    if end_dt is None:
        raise ValidationError(f"Unparsable end date: {end!r}")
    return validate_time_range(TimeRange(start=start_dt, end=end_dt))


def validate_time_range(time_range: TimeRange) -> TimeRange:
    start, end = time_range.start, time_range.end
    if start.tzinfo is None or end.tzinfo is None:
        start = start if start.tzinfo else start.replace(tzinfo=timezone.utc)
        end = end if end.tzinfo else end.replace(tzinfo=timezone.utc)
        time_range = TimeRange(start=start, end=end)
    if start >= end:
        raise ValidationError("Start date must be before end date")
    return time_range


def _day_bounds(day: date, tz: Any) -> list[tuple[datetime, datetime]]:
    next_midnight = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return [(datetime.combine(day, time.min, tzinfo=tz), next_midnight)]


def _daypart_bounds(day: date, tz: Any) -> list[tuple[datetime, datetime]]:
    out: list[tuple[datetime, datetime]] = []
    for lo, hi in zip(DAYPART_BOUNDARIES, DAYPART_BOUNDARIES[1:]):
        s = datetime.combine(day, time(hour=lo), tzinfo=tz)
        if hi == 24:
            e = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
        else:
            e = datetime.combine(day, time(hour=hi), tzinfo=tz)
        out.append((s, e))
    return out


_POLICIES = {
    POLICY_DAY: _day_bounds,
    POLICY_DAYPART: _daypart_bounds,
}


def chunk_label(start: datetime, end: datetime) -> str:
    """Human label such as ``2024-01-01 00:00-24:00``."""
    if end.date() > start.date() and end.time() == time.min:
        end_txt = "24:00"
    else:
        end_txt = end.strftime("%H:%M")
    return f"{start:%Y-%m-%d} {start:%H:%M}-{end_txt}"


def partition_range(time_range: TimeRange, policy: str = POLICY_DAY) -> list[Chunk]:
    """Split ``time_range`` into contiguous, non-overlapping chunks.

    Chunk boundaries follow calendar days (or day parts) in the timezone of
    ``time_range.start``; the first and last chunk are clipped to the range, so
    the union of all chunks is exactly ``[start, end)``.
    """
    time_range = validate_time_range(time_range)
    bounds_for_day = _POLICIES.get(policy)
    if bounds_for_day is None:
        raise ValidationError(f"Unknown chunk policy: {policy!r}")

    tz = time_range.start.tzinfo
    start = time_range.start
    end = time_range.end.astimezone(tz)

    chunks: list[Chunk] = []
    day = start.date()
    while datetime.combine(day, time.min, tzinfo=tz) < end:
        for lo, hi in bounds_for_day(day, tz):
            s = max(lo, start)
            e = min(hi, end)
            if s < e:
                chunks.append(Chunk(index=len(chunks) + 1, start=s, end=e, label=chunk_label(s, e)))
        day = day + timedelta(days=1)
    return chunks
