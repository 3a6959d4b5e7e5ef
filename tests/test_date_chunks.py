"""Tests for time-range parsing and chunk partitioning."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from threadscope.date_chunks import (
    POLICY_DAY,
    POLICY_DAYPART,
    chunk_label,
    parse_time_range,
    partition_range,
    validate_time_range,
)
from threadscope.errors import ValidationError
from threadscope.models import TimeRange


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _assert_exact_cover(chunks, time_range: TimeRange) -> None:
    assert chunks[0].start == time_range.start
    assert chunks[-1].end == time_range.end
    for prev, cur in zip(chunks, chunks[1:]):
        assert prev.end == cur.start
    for c in chunks:
        assert c.start < c.end


# ---------------------------------------------------------------------------
# Range parsing / validation
# ---------------------------------------------------------------------------


class TestParseTimeRange:
    def test_iso_strings_without_zone_are_utc(self):
        tr = parse_time_range("2024-01-01T00:00", "2024-01-03T00:00")
        assert tr.start == _utc(2024, 1, 1)
        assert tr.end == _utc(2024, 1, 3)

    def test_accepts_datetimes(self):
        tr = parse_time_range(_utc(2024, 1, 1), _utc(2024, 1, 2))
        assert tr.end - tr.start == timedelta(days=1)

    @pytest.mark.parametrize("start,end", [(None, "2024-01-01"), ("2024-01-01", ""), ("  ", "2024-01-01")])
    def test_missing_side_rejected(self, start, end):
        with pytest.raises(ValidationError, match="Please select both start and end dates"):
            parse_time_range(start, end)

    def test_unparsable_rejected(self):
        with pytest.raises(ValidationError, match="Unparsable start date"):
            parse_time_range("yesterday-ish", "2024-01-02")

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError, match="Start date must be before end date"):
            parse_time_range("2024-01-03T00:00", "2024-01-01T00:00")

    def test_empty_range_rejected(self):
        with pytest.raises(ValidationError):
            validate_time_range(TimeRange(start=_utc(2024, 1, 1), end=_utc(2024, 1, 1)))

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_time_range(TimeRange(start=_utc(2024, 1, 2), end=_utc(2024, 1, 1)))


# ---------------------------------------------------------------------------
# Day policy
# ---------------------------------------------------------------------------


class TestDayPartition:
    def test_two_full_days(self):
        tr = TimeRange(start=_utc(2024, 1, 1), end=_utc(2024, 1, 3))
        chunks = partition_range(tr, POLICY_DAY)

        assert [(c.start, c.end) for c in chunks] == [
            (_utc(2024, 1, 1), _utc(2024, 1, 2)),
            (_utc(2024, 1, 2), _utc(2024, 1, 3)),
        ]
        assert [c.index for c in chunks] == [1, 2]
        assert chunks[0].label == "2024-01-01 00:00-24:00"

    def test_partial_first_and_last_days_are_clipped(self):
        tr = TimeRange(start=_utc(2024, 1, 1, 15, 30), end=_utc(2024, 1, 4, 6))
        chunks = partition_range(tr)

        assert len(chunks) == 4
        _assert_exact_cover(chunks, tr)
        assert chunks[0].label == "2024-01-01 15:30-24:00"
        assert chunks[-1].label == "2024-01-04 00:00-06:00"

    def test_within_a_single_day(self):
        tr = TimeRange(start=_utc(2024, 1, 1, 8), end=_utc(2024, 1, 1, 9))
        chunks = partition_range(tr)
        assert len(chunks) == 1
        assert (chunks[0].start, chunks[0].end) == (tr.start, tr.end)

    def test_deterministic(self):
        tr = TimeRange(start=_utc(2024, 2, 27, 3), end=_utc(2024, 3, 2, 11))
        assert partition_range(tr) == partition_range(tr)

    def test_follows_start_timezone(self):
        cet = timezone(timedelta(hours=1))
        tr = TimeRange(start=datetime(2024, 1, 1, tzinfo=cet), end=datetime(2024, 1, 3, tzinfo=cet))
        chunks = partition_range(tr)
        assert len(chunks) == 2
        assert chunks[1].start == datetime(2024, 1, 2, tzinfo=cet)

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            partition_range(TimeRange(start=_utc(2024, 1, 2), end=_utc(2024, 1, 1)))

    def test_unknown_policy_rejected(self):
        tr = TimeRange(start=_utc(2024, 1, 1), end=_utc(2024, 1, 2))
        with pytest.raises(ValidationError, match="Unknown chunk policy"):
            partition_range(tr, "hourly")


# ---------------------------------------------------------------------------
# Day-part policy
# ---------------------------------------------------------------------------


class TestDaypartPartition:
    def test_full_day_has_five_parts(self):
        tr = TimeRange(start=_utc(2024, 1, 1), end=_utc(2024, 1, 2))
        chunks = partition_range(tr, POLICY_DAYPART)

        assert [c.label for c in chunks] == [
            "2024-01-01 00:00-12:00",
            "2024-01-01 12:00-17:00",
            "2024-01-01 17:00-19:00",
            "2024-01-01 19:00-21:00",
            "2024-01-01 21:00-24:00",
        ]
        _assert_exact_cover(chunks, tr)

    def test_clipped_range_covers_exactly(self):
        tr = TimeRange(start=_utc(2024, 1, 1, 18, 15), end=_utc(2024, 1, 2, 13))
        chunks = partition_range(tr, POLICY_DAYPART)

        _assert_exact_cover(chunks, tr)
        assert chunks[0].label == "2024-01-01 18:15-19:00"
        assert chunks[-1].label == "2024-01-02 12:00-13:00"
        assert [c.index for c in chunks] == list(range(1, len(chunks) + 1))


def test_chunk_label_within_day():
    assert chunk_label(_utc(2024, 5, 6, 12), _utc(2024, 5, 6, 17)) == "2024-05-06 12:00-17:00"
