"""General data processing and formatting utilities."""

import csv
import io
from datetime import datetime, timezone
from typing import Any


def maybe_load_dotenv() -> None:
    """Attempt to load environment variables from .env file."""
    try:
        from dotenv import load_dotenv
        load_dotenv(override=False)
    except Exception:
        return


def iso_utc(dt: datetime) -> str:
    """Convert a datetime to ISO format in UTC, using a trailing Z."""
    return as_utc(dt).isoformat().replace("+00:00", "Z")


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse a timestamp value into an aware datetime.

    Accepts datetimes, epoch seconds/milliseconds and ISO-8601 strings (with or
    without a trailing ``Z``). Naive values are taken as UTC. Anything that does
    not parse yields ``None``.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        return as_utc(raw)
    if isinstance(raw, (int, float)):
        try:
            ts = float(raw)
            if ts > 10_000_000_000:
                ts = ts / 1000.0
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(raw, str) or not raw.strip():
        return None
    s = raw.strip()
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(s.replace(" ", "T"))
        except ValueError:
            return None
    return as_utc(parsed)


def first_valid_timestamp(candidates: Any) -> datetime | None:
    """Return the first candidate that parses to a valid instant."""
    for raw in candidates or ():
        dt = parse_timestamp(raw)
        if dt is not None:
            return dt
    return None


def csv_bytes_any(rows: list[dict[str, Any]]) -> bytes:
    """Convert dict rows to CSV bytes; columns in first-seen order."""
    if not rows:
        return b""
    fields: list[str] = list(dict.fromkeys(k for r in rows for k in r))
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=fields)
    writer.writeheader()
    for r in rows:
        writer.writerow({k: r.get(k) for k in fields})
    return buf.getvalue().encode("utf-8")


def init_session_state(defaults: dict[str, Any]) -> None:
    """Initialize multiple session state keys with defaults if not already set.

    Example:
        init_session_state({
            "threads_pipeline": None,
            "threads_page": 0,
        })
    """
    import streamlit as st
    for key, default in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = default
