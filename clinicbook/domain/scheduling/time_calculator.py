"""
Interval arithmetic for scheduling: half-open [start, end) ranges,
overlap detection and clock formatting for user-facing messages
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from ...config import FACILITY_TIMEZONE

FACILITY_TZ = ZoneInfo(FACILITY_TIMEZONE)


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open civil time range [start, end) in the facility-local zone"""

    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, "start", to_facility_time(self.start))
        object.__setattr__(self, "end", to_facility_time(self.end))
        if self.end <= self.start:
            raise ValueError("Interval end must be after start")

    @classmethod
    def on_day(cls, day: date, start: time, end: time) -> "Interval":
        return cls(datetime.combine(day, start), datetime.combine(day, end))

    @classmethod
    def from_columns(cls, start: Optional[datetime], end: Optional[datetime]) -> Optional["Interval"]:
        """Build an interval from a nullable start/end column pair"""
        if start is None or end is None:
            return None
        return cls(start, end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def day(self) -> date:
        return self.start.date()

    def overlaps(self, other: "Interval") -> bool:
        """[a,b) and [c,d) conflict iff a < d and c < b; touching ranges do not"""
        return self.start < other.end and other.start < self.end

    def contains_start(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def label(self) -> str:
        return f"{format_clock(self.start)} - {format_clock(self.end)}"


def find_conflicts(candidate: Interval, existing: Iterable[Interval]) -> list[Interval]:
    """Return the subset of existing intervals the candidate overlaps, in time order"""
    return sorted(interval for interval in existing if candidate.overlaps(interval))


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Collapse overlapping or touching intervals into a sorted disjoint list"""
    merged: list[Interval] = []
    for interval in sorted(intervals):
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Midnight-to-midnight range for a calendar date"""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def minutes(value: int) -> timedelta:
    return timedelta(minutes=value)


def format_clock(moment: datetime) -> str:
    """HH:MM in 24-hour form"""
    return moment.strftime("%H:%M")


def to_facility_time(moment: datetime) -> datetime:
    """Naive facility-local wall-clock time; offset-aware values are converted first"""
    if moment.tzinfo is None or moment.utcoffset() is None:
        return moment.replace(tzinfo=None)
    return moment.astimezone(FACILITY_TZ).replace(tzinfo=None)


def facility_now() -> datetime:
    return datetime.now(FACILITY_TZ).replace(tzinfo=None)
