"""Tests for candidate slot validation rules and their ordering."""

from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

from clinicbook.domain.scheduling.errors import RejectionReason
from clinicbook.domain.scheduling.slot_validator import SlotValidator
from clinicbook.domain.scheduling.time_calculator import Interval, minutes

TUESDAY = date(2025, 1, 14)


def at(hour, minute=0):
    return datetime(2025, 1, 14, hour, minute)


def slot(start, end):
    return Interval(at(*start), at(*end))


@pytest.fixture
def resolver():
    """Provider works Tuesday 09:00-17:00"""
    resolver = MagicMock()
    resolver.resolve.return_value = [slot((9,), (17,))]
    return resolver


@pytest.fixture
def validator(resolver):
    return SlotValidator(resolver, min_duration=minutes(60), buffer=minutes(0))


class TestWindowRules:
    """Rules 1-3 and the closing-time check."""

    def test_no_availability(self, validator, resolver):
        resolver.resolve.return_value = []

        check = validator.validate("dr-smith", TUESDAY, slot((10,), (11,)))

        assert not check.ok
        assert check.rejection.reason == RejectionReason.NO_AVAILABILITY
        assert check.rejection.message == "No availability for this day"

    def test_start_before_window(self, validator):
        check = validator.validate("dr-smith", TUESDAY, slot((8, 30), (9, 30)))

        assert check.rejection.reason == RejectionReason.OUTSIDE_WINDOW
        assert "09:00 - 17:00" in check.rejection.message

    def test_start_at_closing_time_is_outside(self, validator):
        check = validator.validate("dr-smith", TUESDAY, slot((17,), (18,)))

        assert check.rejection.reason == RejectionReason.OUTSIDE_WINDOW

    def test_too_short_before_close_reports_latest_start(self, validator):
        check = validator.validate("dr-smith", TUESDAY, slot((16, 30), (17, 30)))

        assert check.rejection.reason == RejectionReason.TOO_SHORT_BEFORE_CLOSE
        assert check.rejection.latest_start == at(16)
        assert check.rejection.hint == "Latest start time is 16:00"
        assert "17:00" in check.rejection.message

    def test_latest_start_itself_is_accepted(self, validator):
        assert validator.validate("dr-smith", TUESDAY, slot((16,), (17,))).ok

    def test_end_after_close(self, validator):
        check = validator.validate("dr-smith", TUESDAY, slot((15,), (17, 30)))

        assert check.rejection.reason == RejectionReason.OUTSIDE_WINDOW
        assert check.rejection.message == "End time must be at or before 17:00"

    def test_window_shorter_than_minimum(self, validator, resolver):
        resolver.resolve.return_value = [slot((9,), (9, 30))]

        check = validator.validate("dr-smith", TUESDAY, slot((9,), (9, 30)))

        assert check.rejection.reason == RejectionReason.TOO_SHORT_BEFORE_CLOSE
        assert check.rejection.latest_start is None

    def test_start_in_second_window_of_split_shift(self, validator, resolver):
        resolver.resolve.return_value = [slot((9,), (12,)), slot((13,), (17,))]

        assert validator.validate("dr-smith", TUESDAY, slot((13,), (14,))).ok
        assert (
            validator.validate("dr-smith", TUESDAY, slot((12, 15), (13, 15))).rejection.reason
            == RejectionReason.OUTSIDE_WINDOW
        )


class TestBookingRules:
    """Rules 4 and 5 against the provider's booked intervals."""

    def test_overlap_reports_conflicting_interval(self, validator):
        check = validator.validate(
            "dr-smith", TUESDAY, slot((10, 30), (11, 30)), booked=[slot((10,), (11,))]
        )

        assert check.rejection.reason == RejectionReason.OVERLAP
        assert check.rejection.conflicting == slot((10,), (11,))
        assert check.rejection.message == "Time conflicts with another appointment (10:00 - 11:00)"

    def test_exact_fit_before_next_booking_passes(self, validator):
        check = validator.validate("dr-smith", TUESDAY, slot((9,), (10,)), booked=[slot((10, 30), (11, 30))])

        assert check.ok

    def test_back_to_back_bookings_pass(self, validator):
        booked = [slot((10,), (11,)), slot((12,), (13,))]

        assert validator.validate("dr-smith", TUESDAY, slot((11,), (12,)), booked=booked).ok

    def test_short_candidate_without_room_for_minimum(self, validator):
        check = validator.validate(
            "dr-smith", TUESDAY, slot((10, 30), (10, 45)), booked=[slot((11,), (12,))]
        )

        assert check.rejection.reason == RejectionReason.INSUFFICIENT_BUFFER_TO_NEXT
        assert check.rejection.latest_start == at(10)
        assert check.rejection.conflicting == slot((11,), (12,))
        assert check.rejection.hint == "Latest start time is 10:00"

    def test_buffer_before_next_booking(self, resolver):
        validator = SlotValidator(resolver, min_duration=minutes(60), buffer=minutes(15))

        check = validator.validate("dr-smith", TUESDAY, slot((10,), (11,)), booked=[slot((11, 10), (12,))])

        assert check.rejection.reason == RejectionReason.INSUFFICIENT_BUFFER_TO_NEXT
        assert check.rejection.latest_start == at(9, 55)

    def test_bookings_on_other_days_are_ignored(self, validator):
        other_day = Interval(datetime(2025, 1, 21, 10), datetime(2025, 1, 21, 11))

        assert validator.validate("dr-smith", TUESDAY, slot((10,), (11,)), booked=[other_day]).ok


class TestRuleOrdering:
    def test_closing_rule_wins_over_overlap(self, validator):
        check = validator.validate(
            "dr-smith", TUESDAY, slot((16, 30), (17, 30)), booked=[slot((16,), (17,))]
        )

        assert check.rejection.reason == RejectionReason.TOO_SHORT_BEFORE_CLOSE

    def test_window_rule_wins_over_overlap(self, validator):
        check = validator.validate("dr-smith", TUESDAY, slot((8,), (9, 30)), booked=[slot((9,), (10,))])

        assert check.rejection.reason == RejectionReason.OUTSIDE_WINDOW

    def test_validation_is_repeatable(self, validator):
        booked = [slot((10,), (11,))]

        first = validator.validate("dr-smith", TUESDAY, slot((10, 30), (11, 30)), booked=booked)
        second = validator.validate("dr-smith", TUESDAY, slot((10, 30), (11, 30)), booked=booked)

        assert first == second
        assert validator.validate("dr-smith", TUESDAY, slot((13,), (14,))) == validator.validate(
            "dr-smith", TUESDAY, slot((13,), (14,))
        )
