"""Booking orchestrator - transactional boundary of the scheduling core"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...config import DEFAULT_REQUEST_MINUTES
from ...models import Appointment, AppointmentHistory
from .availability_service import AvailabilityResolver, ProviderDirectory
from .errors import (
    Conflict,
    IllegalTransition,
    NotFound,
    PersistenceFailure,
    RejectionReason,
    SchedulingError,
    SlotRejected,
)
from .history import HistoryLedger
from .lifecycle import (
    FEEDBACK_REQUIRED,
    ActorRole,
    AppointmentStatus,
    TimeEffect,
    Transition,
    check_transition,
    is_terminal,
)
from .locks import ProviderDayLocks, booking_locks
from .notifications import ChangeEvent, ChangeNotifier, notifier as default_notifier
from .repository import AppointmentRepository, current_interval
from .slot_validator import SlotCheck, SlotValidator
from .time_calculator import Interval, facility_now, format_clock, minutes, to_facility_time

logger = logging.getLogger(__name__)

LOCK_ERROR_MARKERS = ("deadlock detected", "lock timeout", "could not obtain lock", "database is locked")


@dataclass(frozen=True)
class Actor:
    """Who is asking for a change; identity comes from the caller"""

    id: str
    role: ActorRole


@dataclass(frozen=True)
class TransitionPayload:
    interval: Optional[Interval] = None
    feedback: Optional[str] = None


@dataclass
class TransitionResult:
    """Ok(appointment) or Reject(error), returned instead of raised"""

    appointment: Optional[Appointment] = None
    error: Optional[SchedulingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def accepted(cls, appointment: Appointment) -> "TransitionResult":
        return cls(appointment=appointment)

    @classmethod
    def rejected(cls, error: SchedulingError) -> "TransitionResult":
        return cls(error=error)


class BookingOrchestrator:
    """
    Validates and commits appointment changes.

    Every change is written as one unit: the appointment mutation and its
    history entry commit together or not at all, and the change event is
    published only after the commit succeeds. Changes that assign a time
    are validated against the provider's bookings while holding the
    provider-day lock, so two callers cannot both claim the same slot.
    """

    def __init__(
        self,
        db: Session,
        notifier: Optional[ChangeNotifier] = None,
        locks: Optional[ProviderDayLocks] = None,
        validator: Optional[SlotValidator] = None,
        default_request_minutes: int = DEFAULT_REQUEST_MINUTES,
        now: Callable[[], datetime] = facility_now,
    ):
        self.db = db
        self.repo = AppointmentRepository()
        self.directory = ProviderDirectory()
        self.ledger = HistoryLedger()
        self.resolver = AvailabilityResolver(db, self.directory)
        self.validator = validator if validator is not None else SlotValidator(self.resolver)
        self.notifier = notifier if notifier is not None else default_notifier
        self.locks = locks if locks is not None else booking_locks
        self.now = now
        self.default_request_duration = minutes(default_request_minutes)

    # ============================================================================
    # WRITES
    # ============================================================================

    def request_appointment(
        self,
        actor: Actor,
        patient_id: str,
        provider_id: str,
        start: datetime,
        concern: str,
        end: Optional[datetime] = None,
    ) -> TransitionResult:
        """Create an appointment in the requested status with its first history entry"""
        start = to_facility_time(start)
        end = to_facility_time(end) if end is not None else None

        def create() -> Appointment:
            if actor.role == ActorRole.PATIENT and actor.id != patient_id:
                raise IllegalTransition("Patients can only request appointments for themselves")
            if not self.directory.get_provider(self.db, provider_id):
                raise NotFound("Provider not found")
            if not concern or not concern.strip():
                raise IllegalTransition("A reason for the visit is required")
            if end is not None and end <= start:
                raise IllegalTransition("End time must be after start time")
            requested = Interval(start, end or start + self.default_request_duration)
            self._reject_if_past(requested)

            appointment = self.repo.add_appointment(
                self.db,
                patient_id=patient_id,
                provider_id=provider_id,
                requested_start=requested.start,
                requested_end=requested.end,
                status=AppointmentStatus.REQUESTED.value,
                concern=concern.strip(),
                is_active=True,
            )
            self.ledger.append(
                self.db, appointment, AppointmentStatus.REQUESTED, actor.id, actor.role, related=requested
            )
            self.db.commit()
            logger.info(f"📥 Appointment {appointment.id} requested by {actor.role.value} {actor.id}")
            return appointment

        result = self._guarded("request appointment", create)
        if result.ok:
            self._publish(result.appointment, None)
        return result

    def apply_transition(
        self,
        appointment_id: str,
        target_status: AppointmentStatus,
        actor: Actor,
        payload: Optional[TransitionPayload] = None,
    ) -> TransitionResult:
        """
        Move an appointment to target_status on behalf of actor.

        Args:
            appointment_id: Appointment to change
            target_status: Status to enter
            actor: Caller identity and role
            payload: Optional proposed interval and staff feedback

        Returns:
            TransitionResult: the updated appointment, or the specific rejection
        """
        payload = payload or TransitionPayload()
        previous: dict = {}

        def transition() -> Appointment:
            appointment = self._load(appointment_id)
            current = AppointmentStatus(appointment.status)
            previous["status"] = current
            step = check_transition(current, target_status, actor.role)
            if actor.role == ActorRole.PATIENT and actor.id != appointment.patient_id:
                raise IllegalTransition("Patients can only act on their own appointments")
            if step.target in FEEDBACK_REQUIRED and not (payload.feedback or "").strip():
                raise IllegalTransition(
                    "A reason for the patient is required",
                    hint=f"Add feedback explaining why the appointment is {step.target.value}",
                )
            interval = self._interval_for(appointment, step, payload)

            if interval is None:
                self._apply(appointment, step, None)
                self.ledger.append(
                    self.db,
                    appointment,
                    step.target,
                    actor.id,
                    actor.role,
                    related=current_interval(appointment),
                    feedback=payload.feedback,
                )
                self.db.commit()
            else:
                self._commit_timed(appointment, step, interval, actor, payload.feedback)

            logger.info(
                f"✅ Appointment {appointment_id}: {current.value} → {step.target.value} "
                f"by {actor.role.value} {actor.id}"
            )
            return appointment

        result = self._guarded(f"{target_status.value} appointment {appointment_id}", transition)
        if result.ok:
            self._publish(result.appointment, previous["status"])
        return result

    def dismiss(self, appointment_id: str, actor: Actor) -> TransitionResult:
        """Hide a finished appointment from the patient's current view"""

        def hide() -> Appointment:
            appointment = self._load(appointment_id)
            if actor.role != ActorRole.PATIENT or actor.id != appointment.patient_id:
                raise IllegalTransition("Only the patient can dismiss their appointment")
            if not is_terminal(AppointmentStatus(appointment.status)):
                raise IllegalTransition(
                    "Only completed, rejected or cancelled appointments can be dismissed"
                )
            appointment.is_active = False
            self.db.commit()
            logger.info(f"🙈 Appointment {appointment_id} dismissed by patient {actor.id}")
            return appointment

        return self._guarded(f"dismiss appointment {appointment_id}", hide)

    # ============================================================================
    # READS
    # ============================================================================

    def get_appointment(self, appointment_id: str) -> Appointment:
        return self._load(appointment_id)

    def get_history(self, appointment_id: str, descending: bool = False) -> list[AppointmentHistory]:
        self._load(appointment_id)
        return self.ledger.list(self.db, appointment_id, descending=descending)

    def list_for_provider(
        self, provider_id: str, day: Optional[date] = None, status: Optional[AppointmentStatus] = None
    ) -> list[Appointment]:
        self._require_provider(provider_id)
        return self.repo.list_for_provider(self.db, provider_id, day=day, status=status)

    def list_for_patient(self, patient_id: str, active_only: bool = False) -> list[Appointment]:
        return self.repo.list_for_patient(self.db, patient_id, active_only=active_only)

    def check_slot(
        self, provider_id: str, candidate: Interval, exclude_id: Optional[str] = None
    ) -> SlotCheck:
        """Read-only validation of a candidate against the current bookings"""
        self._require_provider(provider_id)
        past = self._past_rejection(candidate)
        if past:
            return SlotCheck.rejected(past)
        booked = self.repo.get_competing_bookings(self.db, provider_id, candidate.day, exclude_id)
        return self.validator.validate(provider_id, candidate.day, candidate, booked)

    def provider_day_overview(self, provider_id: str, day: date) -> tuple[list[Interval], list[Interval]]:
        """Open intervals and booked intervals for a provider on a date"""
        self._require_provider(provider_id)
        available = self.resolver.resolve(provider_id, day)
        busy = self.repo.get_competing_bookings(self.db, provider_id, day)
        return available, busy

    # ============================================================================
    # INTERNALS
    # ============================================================================

    def _load(self, appointment_id: str) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found")
        return appointment

    def _require_provider(self, provider_id: str) -> None:
        if not self.directory.get_provider(self.db, provider_id):
            raise NotFound("Provider not found")

    def _past_rejection(self, interval: Interval) -> Optional[SlotRejected]:
        now = self.now()
        if interval.start >= now:
            return None
        return SlotRejected(
            RejectionReason.IN_THE_PAST,
            "Cannot schedule an appointment in the past",
            hint=f"Choose a time after {now:%Y-%m-%d} {format_clock(now)}",
        )

    def _reject_if_past(self, interval: Interval) -> None:
        rejection = self._past_rejection(interval)
        if rejection:
            raise rejection

    @staticmethod
    def _interval_for(
        appointment: Appointment, step: Transition, payload: TransitionPayload
    ) -> Optional[Interval]:
        """The interval a transition assigns, or None if it leaves times alone"""
        if step.time_effect == TimeEffect.PROPOSE:
            return payload.interval or Interval(appointment.requested_start, appointment.requested_end)

        if payload.interval is not None:
            if step.time_effect == TimeEffect.BOOK:
                raise IllegalTransition(
                    "Booking confirms the proposed time and cannot change it",
                    hint="Ask the clinic to propose a different time",
                )
            raise IllegalTransition(f"Moving to {step.target.value} does not change the appointment time")

        if step.time_effect == TimeEffect.BOOK:
            proposed = Interval.from_columns(appointment.proposed_start, appointment.proposed_end)
            if proposed is None:
                raise IllegalTransition("There is no proposed time to confirm")
            return proposed
        return None

    @staticmethod
    def _apply(appointment: Appointment, step: Transition, interval: Optional[Interval]) -> None:
        appointment.status = step.target.value
        if step.time_effect == TimeEffect.PROPOSE:
            appointment.proposed_start = interval.start
            appointment.proposed_end = interval.end
        elif step.time_effect == TimeEffect.BOOK:
            appointment.booked_start = interval.start
            appointment.booked_end = interval.end

    def _commit_timed(
        self,
        appointment: Appointment,
        step: Transition,
        interval: Interval,
        actor: Actor,
        feedback: Optional[str],
    ) -> None:
        """Validate against a snapshot, then re-check and commit under the provider-day lock"""
        provider_id = appointment.provider_id
        day = interval.day

        self._reject_if_past(interval)
        snapshot_version = self.repo.get_day_version(self.db, provider_id, day)
        booked = self.repo.get_competing_bookings(self.db, provider_id, day, exclude_id=appointment.id)
        check = self.validator.validate(provider_id, day, interval, booked)
        if not check.ok:
            raise check.rejection

        with self.locks.hold(provider_id, day):
            day_lock = self.repo.lock_day(self.db, provider_id, day)
            fresh = self.repo.get_competing_bookings(self.db, provider_id, day, exclude_id=appointment.id)
            recheck = self.validator.validate(provider_id, day, interval, fresh)
            if not recheck.ok:
                if day_lock.version != snapshot_version:
                    logger.warning(
                        f"⚠️ Lost booking race for provider {provider_id} on {day}: {recheck.rejection.message}"
                    )
                    raise Conflict(hint=recheck.rejection.message)
                raise recheck.rejection

            self._apply(appointment, step, interval)
            self.ledger.append(
                self.db, appointment, step.target, actor.id, actor.role, related=interval, feedback=feedback
            )
            day_lock.version += 1
            self.db.commit()

    def _guarded(self, action: str, operation: Callable[[], Appointment]) -> TransitionResult:
        """Run a unit of work, rolling back and converting every failure into a rejection"""
        try:
            return TransitionResult.accepted(operation())
        except SchedulingError as e:
            self.db.rollback()
            logger.info(f"🚫 Could not {action}: {e.code} - {e.message}")
            return TransitionResult.rejected(e)
        except (StaleDataError, IntegrityError) as e:
            self.db.rollback()
            logger.warning(f"⚠️ Concurrent update while trying to {action}: {e}")
            return TransitionResult.rejected(Conflict("The appointment was changed by another request"))
        except OperationalError as e:
            self.db.rollback()
            if any(marker in str(e).lower() for marker in LOCK_ERROR_MARKERS):
                logger.warning(f"⚠️ Lock contention while trying to {action}: {e}")
                return TransitionResult.rejected(Conflict())
            logger.error(f"❌ Database unavailable while trying to {action}: {e}")
            return TransitionResult.rejected(PersistenceFailure("Appointment storage is unavailable"))
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to {action}: {e}")
            return TransitionResult.rejected(PersistenceFailure("Appointment storage is unavailable"))

    def _publish(self, appointment: Appointment, old_status: Optional[AppointmentStatus]) -> None:
        self.notifier.publish(
            ChangeEvent(
                appointment_id=appointment.id,
                provider_id=appointment.provider_id,
                patient_id=appointment.patient_id,
                old_status=old_status.value if old_status else None,
                new_status=appointment.status,
            )
        )
