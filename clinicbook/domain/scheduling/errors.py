"""Scheduling error taxonomy

Every failure the booking core can report is a SchedulingError subclass
carrying a stable code, a human-readable message and an optional
remediation hint. The orchestrator returns these to its caller instead of
letting them escape as unstructured exceptions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .time_calculator import Interval


class RejectionReason(str, Enum):
    """Slot validation failures, in the order they are evaluated"""

    IN_THE_PAST = "in_the_past"  # checked by the orchestrator before slot validation
    NO_AVAILABILITY = "no_availability"
    OUTSIDE_WINDOW = "outside_window"
    TOO_SHORT_BEFORE_CLOSE = "too_short_before_close"
    OVERLAP = "overlap"
    INSUFFICIENT_BUFFER_TO_NEXT = "insufficient_buffer_to_next"


class SchedulingError(Exception):
    """Base class for reportable scheduling failures"""

    code = "scheduling_error"
    http_status = 400

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.hint:
            payload["hint"] = self.hint
        return payload


class NotFound(SchedulingError):
    code = "not_found"
    http_status = 404


class IllegalTransition(SchedulingError):
    code = "illegal_transition"
    http_status = 409


class Conflict(SchedulingError):
    """Commit-time race lost; caller must re-read competing bookings and retry"""

    code = "conflict"
    http_status = 409

    def __init__(
        self,
        message: str = "The time slot was taken by a concurrent booking",
        hint: Optional[str] = None,
    ):
        super().__init__(message, hint or "Refresh the schedule and choose a time again")


class PersistenceFailure(SchedulingError):
    code = "persistence_failure"
    http_status = 503


class SlotRejected(SchedulingError):
    """A candidate interval failed slot validation"""

    code = "slot_rejected"
    http_status = 422

    def __init__(
        self,
        reason: RejectionReason,
        message: str,
        hint: Optional[str] = None,
        latest_start: Optional[datetime] = None,
        conflicting: Optional["Interval"] = None,
    ):
        super().__init__(message, hint)
        self.reason = reason
        self.latest_start = latest_start
        self.conflicting = conflicting

    def __eq__(self, other):
        if not isinstance(other, SlotRejected):
            return NotImplemented
        return (
            self.reason == other.reason
            and self.message == other.message
            and self.latest_start == other.latest_start
            and self.conflicting == other.conflicting
        )

    def __hash__(self):
        return hash((self.reason, self.message, self.latest_start, self.conflicting))

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["reason"] = self.reason.value
        if self.latest_start is not None:
            payload["latest_start"] = self.latest_start.isoformat()
        if self.conflicting is not None:
            payload["conflicting"] = {
                "start": self.conflicting.start.isoformat(),
                "end": self.conflicting.end.isoformat(),
            }
        return payload
