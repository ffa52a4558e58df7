"""Provider directory access and availability resolution"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AvailabilityWindow, Provider
from .time_calculator import Interval, merge_intervals

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class ProviderDirectory:
    """Read-only view over provider identity and weekly availability"""

    @staticmethod
    def get_provider(db: Session, provider_id: str) -> Optional[Provider]:
        return db.query(Provider).filter(Provider.id == provider_id).first()

    @staticmethod
    def get_availability(db: Session, provider_id: str) -> list[AvailabilityWindow]:
        """Enabled weekly windows for a provider, ordered by weekday and start"""
        return (
            db.query(AvailabilityWindow)
            .filter(
                AvailabilityWindow.provider_id == provider_id,
                AvailabilityWindow.is_enabled.is_(True),
            )
            .order_by(AvailabilityWindow.weekday, AvailabilityWindow.start_time)
            .all()
        )


class AvailabilityResolver:
    """Turns recurring weekly windows into concrete intervals for a date"""

    def __init__(self, db: Session, directory: Optional[ProviderDirectory] = None):
        self.db = db
        self.directory = directory or ProviderDirectory()

    def resolve(self, provider_id: str, day: date) -> list[Interval]:
        """
        Available intervals for the provider on the given date.

        Windows whose weekday matches the date are combined into a sorted
        list of disjoint intervals. An empty list means a day off.
        """
        windows = [
            window
            for window in self.directory.get_availability(self.db, provider_id)
            if window.weekday == day.weekday()
        ]
        intervals = merge_intervals(
            Interval.on_day(day, window.start_time, window.end_time) for window in windows
        )
        if not intervals:
            logger.debug(f"No availability for provider {provider_id} on {WEEKDAY_NAMES[day.weekday()]} {day}")
        return intervals
