"""
Slot validation: availability window, closing-time and conflict rules

Rules are evaluated in a fixed order and the first failure wins. The
failure messages carry the latest legal start time where one exists,
since the booking screens surface them directly as guidance.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from ...config import BUFFER_MINUTES, MIN_APPOINTMENT_MINUTES
from .availability_service import AvailabilityResolver
from .errors import RejectionReason, SlotRejected
from .time_calculator import Interval, find_conflicts, format_clock, minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotCheck:
    """Outcome of validating one candidate interval"""

    rejection: Optional[SlotRejected] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None

    @classmethod
    def passed(cls) -> "SlotCheck":
        return cls()

    @classmethod
    def rejected(cls, rejection: SlotRejected) -> "SlotCheck":
        return cls(rejection=rejection)


class SlotValidator:
    """Accept/reject decision for a candidate interval on a provider's calendar"""

    def __init__(
        self,
        resolver: AvailabilityResolver,
        min_duration: timedelta = minutes(MIN_APPOINTMENT_MINUTES),
        buffer: timedelta = minutes(BUFFER_MINUTES),
    ):
        self.resolver = resolver
        self.min_duration = min_duration
        self.buffer = buffer

    def validate(
        self,
        provider_id: str,
        day: date,
        candidate: Interval,
        booked: Iterable[Interval] = (),
    ) -> SlotCheck:
        """
        Validate a candidate against the provider's availability and booked intervals.

        Args:
            provider_id: Provider whose calendar is checked
            day: Calendar date the candidate is placed on
            candidate: Requested [start, end) interval
            booked: Booked intervals of other appointments for the same provider and date

        Returns:
            SlotCheck: passed, or carrying the first SlotRejected in rule order
        """
        booked = [interval for interval in booked if interval.start.date() == day]

        # 1. Provider works that day at all
        windows = self.resolver.resolve(provider_id, day)
        if not windows:
            return self._reject(
                RejectionReason.NO_AVAILABILITY,
                "No availability for this day",
                hint="Choose a day the provider is available",
            )

        # 2. Start falls inside one of the day's windows
        window = next((w for w in windows if w.contains_start(candidate.start)), None)
        if window is None:
            hours = ", ".join(w.label() for w in windows)
            return self._reject(
                RejectionReason.OUTSIDE_WINDOW,
                f"Time must be within provider's availability ({hours})",
                hint=f"Pick a start time between {hours}",
            )

        # 3. Enough time before the window closes
        if candidate.start + self.min_duration > window.end:
            latest_start = window.end - self.min_duration
            if latest_start < window.start:
                return self._reject(
                    RejectionReason.TOO_SHORT_BEFORE_CLOSE,
                    f"Availability {window.label()} is shorter than the minimum appointment length",
                    hint="Choose another availability window",
                )
            return self._reject(
                RejectionReason.TOO_SHORT_BEFORE_CLOSE,
                f"Appointment needs at least {self._min_label()} before closing at {format_clock(window.end)}",
                hint=f"Latest start time is {format_clock(latest_start)}",
                latest_start=latest_start,
            )

        # Ends no later than the window closes
        if candidate.end > window.end:
            return self._reject(
                RejectionReason.OUTSIDE_WINDOW,
                f"End time must be at or before {format_clock(window.end)}",
                hint=f"Time must be within provider's availability ({window.label()})",
            )

        # 4. No overlap with booked appointments
        conflicts = find_conflicts(candidate, booked)
        if conflicts:
            conflicting = conflicts[0]
            return self._reject(
                RejectionReason.OVERLAP,
                f"Time conflicts with another appointment ({conflicting.label()})",
                hint="Choose a time outside the booked appointment",
                conflicting=conflicting,
            )

        # 5. Room for the minimum duration before the next booked appointment
        later = [interval for interval in booked if interval.start >= candidate.start]
        if later:
            next_booking = min(later)
            required_end = max(candidate.end, candidate.start + self.min_duration) + self.buffer
            if required_end > next_booking.start:
                latest_start = next_booking.start - self.buffer - self.min_duration
                return self._reject(
                    RejectionReason.INSUFFICIENT_BUFFER_TO_NEXT,
                    f"Not enough time before the next appointment at {format_clock(next_booking.start)}",
                    hint=f"Latest start time is {format_clock(latest_start)}",
                    latest_start=latest_start,
                    conflicting=next_booking,
                )

        return SlotCheck.passed()

    def _min_label(self) -> str:
        total = int(self.min_duration.total_seconds() // 60)
        return f"{total} minutes"

    @staticmethod
    def _reject(reason: RejectionReason, message: str, **details) -> SlotCheck:
        logger.debug(f"Slot rejected ({reason.value}): {message}")
        return SlotCheck.rejected(SlotRejected(reason, message, **details))
