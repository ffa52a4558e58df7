"""Tests for interval arithmetic and conflict detection."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from clinicbook.domain.scheduling.time_calculator import (
    Interval,
    day_bounds,
    find_conflicts,
    format_clock,
    merge_intervals,
    to_facility_time,
)


def at(hour, minute=0):
    return datetime(2025, 1, 14, hour, minute)


class TestInterval:
    """Test the half-open Interval value."""

    def test_end_must_be_after_start(self):
        with pytest.raises(ValueError):
            Interval(at(10), at(10))
        with pytest.raises(ValueError):
            Interval(at(11), at(10))

    def test_on_day_combines_date_and_clock(self):
        interval = Interval.on_day(date(2025, 1, 14), time(9, 0), time(17, 0))

        assert interval.start == at(9)
        assert interval.end == at(17)
        assert interval.day == date(2025, 1, 14)

    def test_from_columns_requires_both_ends(self):
        assert Interval.from_columns(None, at(10)) is None
        assert Interval.from_columns(at(9), None) is None
        assert Interval.from_columns(at(9), at(10)) == Interval(at(9), at(10))

    def test_contains_start_is_half_open(self):
        window = Interval(at(9), at(17))

        assert window.contains_start(at(9))
        assert window.contains_start(at(16, 59))
        assert not window.contains_start(at(17))
        assert not window.contains_start(at(8, 59))

    def test_label(self):
        assert Interval(at(10), at(11, 30)).label() == "10:00 - 11:30"
        assert format_clock(at(7, 5)) == "07:05"

    def test_offset_aware_bounds_become_facility_time(self):
        plus_eight = timezone(timedelta(hours=8))
        interval = Interval(
            datetime(2025, 1, 14, 10, tzinfo=plus_eight), datetime(2025, 1, 14, 3, tzinfo=timezone.utc)
        )

        assert interval == Interval(at(10), at(11))
        assert interval.start.tzinfo is None
        assert interval.overlaps(Interval(at(10, 30), at(12)))

    def test_mixed_aware_and_naive_bounds(self):
        interval = Interval(at(10), datetime(2025, 1, 14, 11, tzinfo=timezone(timedelta(hours=8))))

        assert interval.end == at(11)
        with pytest.raises(ValueError):
            Interval(at(12), datetime(2025, 1, 14, 11, tzinfo=timezone(timedelta(hours=8))))


class TestFacilityTime:
    def test_naive_values_are_taken_as_facility_time(self):
        assert to_facility_time(at(10)) == at(10)

    def test_conversion_can_change_the_date(self):
        late_utc = datetime(2025, 1, 13, 20, 30, tzinfo=timezone.utc)

        assert to_facility_time(late_utc) == datetime(2025, 1, 14, 4, 30)


class TestOverlap:
    """Overlap is symmetric and back-to-back intervals never conflict."""

    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ((at(10), at(11)), (at(10, 30), at(11, 30)), True),
            ((at(10), at(12)), (at(10, 30), at(11)), True),
            ((at(10), at(11)), (at(10), at(11)), True),
            ((at(10), at(11)), (at(11), at(12)), False),
            ((at(9), at(10)), (at(14), at(15)), False),
        ],
    )
    def test_overlap_is_symmetric(self, a, b, expected):
        first, second = Interval(*a), Interval(*b)

        assert first.overlaps(second) is expected
        assert second.overlaps(first) is expected

    def test_find_conflicts_returns_sorted_subset(self):
        existing = [
            Interval(at(13), at(14)),
            Interval(at(11), at(12)),
            Interval(at(9), at(10)),
        ]

        conflicts = find_conflicts(Interval(at(9, 30), at(13, 30)), existing)

        assert conflicts == [
            Interval(at(9), at(10)),
            Interval(at(11), at(12)),
            Interval(at(13), at(14)),
        ]

    def test_find_conflicts_empty_when_touching(self):
        existing = [Interval(at(9), at(10)), Interval(at(11), at(12))]

        assert find_conflicts(Interval(at(10), at(11)), existing) == []


class TestMergeIntervals:
    def test_merges_overlapping_and_touching(self):
        merged = merge_intervals(
            [
                Interval(at(13), at(17)),
                Interval(at(9), at(12)),
                Interval(at(11), at(13)),
            ]
        )

        assert merged == [Interval(at(9), at(17))]

    def test_keeps_gaps(self):
        merged = merge_intervals([Interval(at(14), at(17)), Interval(at(9), at(12))])

        assert merged == [Interval(at(9), at(12)), Interval(at(14), at(17))]

    def test_day_bounds(self):
        start, end = day_bounds(date(2025, 1, 14))

        assert start == datetime(2025, 1, 14)
        assert end == datetime(2025, 1, 15)
