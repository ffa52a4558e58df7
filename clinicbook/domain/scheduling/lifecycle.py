"""
Appointment status workflow

requested → proposed → booked → arrived → ongoing → completed
requested → rejected
proposed / booked / arrived → cancelled

Completed, rejected and cancelled are terminal. Every legal move is listed
in TRANSITIONS together with the roles allowed to request it; anything not
listed is an IllegalTransition.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .errors import IllegalTransition


class AppointmentStatus(str, Enum):
    REQUESTED = "requested"
    PROPOSED = "proposed"
    BOOKED = "booked"
    ARRIVED = "arrived"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ActorRole(str, Enum):
    PATIENT = "patient"
    PROVIDER = "provider"
    STAFF = "staff"


class TimeEffect(str, Enum):
    """What a transition does to the appointment's intervals"""

    NONE = "none"
    PROPOSE = "propose"  # sets proposed interval (counter-offer or re-affirmed request)
    BOOK = "book"  # copies proposed interval into booked interval


# Statuses whose booked interval occupies the provider's calendar
BLOCKING_STATUSES = frozenset(
    {
        AppointmentStatus.BOOKED,
        AppointmentStatus.ARRIVED,
        AppointmentStatus.ONGOING,
        AppointmentStatus.COMPLETED,
    }
)

TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.REJECTED, AppointmentStatus.CANCELLED}
)

# Statuses the patient must be given a reason for
FEEDBACK_REQUIRED = frozenset({AppointmentStatus.REJECTED, AppointmentStatus.CANCELLED})

# Dentists and front-desk staff share the clinic-side workflow
CLINIC_ROLES = frozenset({ActorRole.PROVIDER, ActorRole.STAFF})
PATIENT_ONLY = frozenset({ActorRole.PATIENT})


@dataclass(frozen=True)
class Transition:
    source: AppointmentStatus
    target: AppointmentStatus
    roles: frozenset
    time_effect: TimeEffect = TimeEffect.NONE


TRANSITIONS: dict[AppointmentStatus, dict[AppointmentStatus, Transition]] = {}


def _register(source, target, roles, time_effect=TimeEffect.NONE):
    TRANSITIONS.setdefault(source, {})[target] = Transition(source, target, roles, time_effect)


_register(AppointmentStatus.REQUESTED, AppointmentStatus.PROPOSED, CLINIC_ROLES, TimeEffect.PROPOSE)
_register(AppointmentStatus.REQUESTED, AppointmentStatus.REJECTED, CLINIC_ROLES)
_register(AppointmentStatus.PROPOSED, AppointmentStatus.BOOKED, PATIENT_ONLY, TimeEffect.BOOK)
_register(AppointmentStatus.PROPOSED, AppointmentStatus.CANCELLED, CLINIC_ROLES)
_register(AppointmentStatus.BOOKED, AppointmentStatus.ARRIVED, CLINIC_ROLES)
_register(AppointmentStatus.BOOKED, AppointmentStatus.CANCELLED, CLINIC_ROLES)
_register(AppointmentStatus.ARRIVED, AppointmentStatus.ONGOING, CLINIC_ROLES)
_register(AppointmentStatus.ARRIVED, AppointmentStatus.CANCELLED, CLINIC_ROLES)
_register(AppointmentStatus.ONGOING, AppointmentStatus.COMPLETED, CLINIC_ROLES)

# System message recorded in history when a status is entered
DEFAULT_NOTES = {
    AppointmentStatus.REQUESTED: "Your appointment request has been sent.",
    AppointmentStatus.PROPOSED: "The clinic has proposed a new schedule.",
    AppointmentStatus.BOOKED: "Your appointment is confirmed.",
    AppointmentStatus.ARRIVED: "You have been marked as arrived at the clinic.",
    AppointmentStatus.ONGOING: "Your appointment is currently ongoing.",
    AppointmentStatus.COMPLETED: "Your appointment is completed. Thank you!",
    AppointmentStatus.REJECTED: "Your appointment request was declined.",
    AppointmentStatus.CANCELLED: "Your appointment was cancelled.",
}


def is_terminal(status: AppointmentStatus) -> bool:
    return status in TERMINAL_STATUSES


def allowed_targets(status: AppointmentStatus, role: Optional[ActorRole] = None) -> list[AppointmentStatus]:
    """Statuses reachable from `status`, optionally restricted to what `role` may request"""
    return [
        target
        for target, transition in TRANSITIONS.get(status, {}).items()
        if role is None or role in transition.roles
    ]


def check_transition(
    current: AppointmentStatus, target: AppointmentStatus, role: ActorRole
) -> Transition:
    """Return the transition for current → target, or raise IllegalTransition"""
    transition = TRANSITIONS.get(current, {}).get(target)
    if transition is None:
        if is_terminal(current):
            raise IllegalTransition(
                f"Appointment is {current.value} and cannot change status",
                hint="Terminal appointments can only be dismissed",
            )
        legal = ", ".join(t.value for t in allowed_targets(current)) or "none"
        raise IllegalTransition(
            f"Cannot move appointment from {current.value} to {target.value}",
            hint=f"Allowed next statuses: {legal}",
        )
    if role not in transition.roles:
        allowed = ", ".join(sorted(r.value for r in transition.roles))
        raise IllegalTransition(
            f"A {role.value} cannot move an appointment from {current.value} to {target.value}",
            hint=f"This step is performed by: {allowed}",
        )
    return transition


def is_valid_walk(statuses: Iterable[AppointmentStatus]) -> bool:
    """True if the sequence starts at requested and follows legal transitions"""
    sequence = list(statuses)
    if not sequence or sequence[0] != AppointmentStatus.REQUESTED:
        return False
    return all(
        target in TRANSITIONS.get(source, {}) for source, target in zip(sequence, sequence[1:])
    )
