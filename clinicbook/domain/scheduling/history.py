"""History ledger - insert-only audit trail of appointment transitions"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Appointment, AppointmentHistory
from .lifecycle import DEFAULT_NOTES, ActorRole, AppointmentStatus
from .time_calculator import Interval


class HistoryLedger:
    """
    Append and list history entries.

    Entries are never updated or deleted. append() only stages the
    entry on the session; the caller commits it together with the
    appointment mutation that caused it.
    """

    @staticmethod
    def append(
        db: Session,
        appointment: Appointment,
        status: AppointmentStatus,
        actor_id: str,
        actor_role: ActorRole,
        related: Optional[Interval] = None,
        feedback: Optional[str] = None,
    ) -> AppointmentHistory:
        """Stage a history entry for the status being entered"""
        entry = AppointmentHistory(
            appointment_id=appointment.id,
            sequence=HistoryLedger._next_sequence(db, appointment.id),
            status=status.value,
            actor_id=actor_id,
            actor_role=actor_role.value,
            note=DEFAULT_NOTES[status],
            feedback=feedback.strip() if feedback and feedback.strip() else None,
            related_start=related.start if related else None,
            related_end=related.end if related else None,
            created_at=datetime.now(),
        )
        db.add(entry)
        return entry

    @staticmethod
    def list(db: Session, appointment_id: str, descending: bool = False) -> list[AppointmentHistory]:
        """Entries for an appointment by time, ties broken by insertion order"""
        query = db.query(AppointmentHistory).filter(AppointmentHistory.appointment_id == appointment_id)
        if descending:
            query = query.order_by(AppointmentHistory.created_at.desc(), AppointmentHistory.sequence.desc())
        else:
            query = query.order_by(AppointmentHistory.created_at, AppointmentHistory.sequence)
        return query.all()

    @staticmethod
    def _next_sequence(db: Session, appointment_id: str) -> int:
        current = (
            db.query(func.max(AppointmentHistory.sequence))
            .filter(AppointmentHistory.appointment_id == appointment_id)
            .scalar()
        )
        return (current or 0) + 1
