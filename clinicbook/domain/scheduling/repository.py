"""Appointment repository - Database operations for the booking core"""

from datetime import date
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ...models import Appointment, ProviderDayLock
from .lifecycle import BLOCKING_STATUSES, AppointmentStatus
from .time_calculator import Interval, day_bounds

BLOCKING_STATUS_VALUES = [status.value for status in BLOCKING_STATUSES]


class AppointmentRepository:
    """Repository for appointment reads and staged writes (callers commit)"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        """Get an appointment, refreshing any stale copy held by the session"""
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id)
            .populate_existing()
            .first()
        )

    @staticmethod
    def add_appointment(db: Session, **appointment_data) -> Appointment:
        """Stage a new appointment and flush so its id is assigned"""
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_competing_bookings(
        db: Session, provider_id: str, day: date, exclude_id: Optional[str] = None
    ) -> list[Interval]:
        """Booked intervals that block the provider's calendar on a date"""
        start, end = day_bounds(day)
        query = db.query(Appointment.booked_start, Appointment.booked_end).filter(
            Appointment.provider_id == provider_id,
            Appointment.status.in_(BLOCKING_STATUS_VALUES),
            Appointment.booked_start.isnot(None),
            Appointment.booked_end.isnot(None),
            Appointment.booked_start >= start,
            Appointment.booked_start < end,
        )
        if exclude_id:
            query = query.filter(Appointment.id != exclude_id)
        return sorted(Interval(row.booked_start, row.booked_end) for row in query.all())

    @staticmethod
    def get_day_version(db: Session, provider_id: str, day: date) -> int:
        """Unlocked read of the provider-day version used as the validation snapshot"""
        version = (
            db.query(ProviderDayLock.version)
            .filter(ProviderDayLock.provider_id == provider_id, ProviderDayLock.day == day)
            .scalar()
        )
        return version or 0

    @staticmethod
    def lock_day(db: Session, provider_id: str, day: date) -> ProviderDayLock:
        """
        Lock the provider-day row for the rest of the transaction.

        The row is created on first use. Two workers racing to create it
        surface as an IntegrityError at flush, which callers treat as a
        lost race.
        """
        day_lock = (
            db.query(ProviderDayLock)
            .filter(ProviderDayLock.provider_id == provider_id, ProviderDayLock.day == day)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if day_lock is None:
            day_lock = ProviderDayLock(provider_id=provider_id, day=day, version=0)
            db.add(day_lock)
            db.flush()
        return day_lock

    @staticmethod
    def list_for_provider(
        db: Session,
        provider_id: str,
        day: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> list[Appointment]:
        """Provider's appointments, optionally for one date (by current interval) and status"""
        query = db.query(Appointment).filter(Appointment.provider_id == provider_id)
        if status:
            query = query.filter(Appointment.status == status.value)
        if day:
            start, end = day_bounds(day)
            # Same precedence as current_interval: booked, then proposed, then requested
            query = query.filter(
                or_(
                    and_(Appointment.booked_start >= start, Appointment.booked_start < end),
                    and_(
                        Appointment.booked_start.is_(None),
                        Appointment.proposed_start >= start,
                        Appointment.proposed_start < end,
                    ),
                    and_(
                        Appointment.booked_start.is_(None),
                        Appointment.proposed_start.is_(None),
                        Appointment.requested_start >= start,
                        Appointment.requested_start < end,
                    ),
                )
            )
        return query.order_by(Appointment.requested_start).all()

    @staticmethod
    def list_for_patient(db: Session, patient_id: str, active_only: bool = False) -> list[Appointment]:
        """Patient's appointments, newest first"""
        query = db.query(Appointment).filter(Appointment.patient_id == patient_id)
        if active_only:
            query = query.filter(Appointment.is_active.is_(True))
        return query.order_by(Appointment.created_at.desc(), Appointment.requested_start.desc()).all()


def current_interval(appointment: Appointment) -> Interval:
    """
    The authoritative interval for the appointment's status: booked once
    booked or later, proposed while proposed (and for a cancelled proposal),
    otherwise the original request.
    """
    booked = Interval.from_columns(appointment.booked_start, appointment.booked_end)
    if booked:
        return booked
    proposed = Interval.from_columns(appointment.proposed_start, appointment.proposed_end)
    if proposed:
        return proposed
    return Interval(appointment.requested_start, appointment.requested_end)
