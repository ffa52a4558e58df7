"""Shared fixtures for the scheduling tests."""

import os

# Keep the module-level engine in memory and notifications local during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NOTIFICATIONS_REDIS_ENABLED", "false")
# UTC+8 with no daylight saving, so "+08:00" input maps to the same wall-clock time
os.environ["FACILITY_TIMEZONE"] = "Asia/Manila"

from datetime import date, datetime, time  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinicbook.database import Base  # noqa: E402
from clinicbook.domain.scheduling.lifecycle import ActorRole, AppointmentStatus  # noqa: E402
from clinicbook.domain.scheduling.locks import ProviderDayLocks  # noqa: E402
from clinicbook.domain.scheduling.notifications import ChangeNotifier  # noqa: E402
from clinicbook.domain.scheduling.service import (  # noqa: E402
    Actor,
    BookingOrchestrator,
    TransitionPayload,
)
from clinicbook.domain.scheduling.time_calculator import Interval  # noqa: E402
from clinicbook.models import AvailabilityWindow, Provider  # noqa: E402

# 2025-01-14 is a Tuesday
TUESDAY = date(2025, 1, 14)


class FixedClock:
    """Settable stand-in for the facility wall clock"""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def provider(db):
    """Dr. Smith, available Tuesdays 09:00-17:00"""
    provider = Provider(id="dr-smith", name="Dr. Smith", specialty="General Dentistry")
    provider.availability_windows.append(
        AvailabilityWindow(weekday=TUESDAY.weekday(), start_time=time(9, 0), end_time=time(17, 0))
    )
    db.add(provider)
    db.commit()
    return provider


@pytest.fixture
def notifier():
    return ChangeNotifier(redis_enabled=False)


@pytest.fixture
def clock():
    """The Monday morning before the Tuesday every test books on"""
    return FixedClock(datetime(2025, 1, 13, 8, 0))


@pytest.fixture
def orchestrator(db, notifier, clock):
    return BookingOrchestrator(db, notifier=notifier, locks=ProviderDayLocks(timeout=1), now=clock)


@pytest.fixture
def patient():
    return Actor(id="patient-1", role=ActorRole.PATIENT)


@pytest.fixture
def staff():
    return Actor(id="staff-1", role=ActorRole.STAFF)


@pytest.fixture
def make_appointment(orchestrator, provider, staff):
    """Drive a new appointment to `status`, booking it at [start, end) when it gets that far"""

    def _make(start, end, status=AppointmentStatus.BOOKED, patient_id="patient-1"):
        patient = Actor(id=patient_id, role=ActorRole.PATIENT)
        result = orchestrator.request_appointment(
            patient, patient_id, provider.id, start, "Toothache", end=end
        )
        assert result.ok, result.error
        appointment = result.appointment
        if status == AppointmentStatus.REQUESTED:
            return appointment

        steps = [
            (AppointmentStatus.PROPOSED, staff, TransitionPayload(interval=Interval(start, end))),
            (AppointmentStatus.BOOKED, patient, None),
            (AppointmentStatus.ARRIVED, staff, None),
            (AppointmentStatus.ONGOING, staff, None),
            (AppointmentStatus.COMPLETED, staff, None),
        ]
        for target, actor, payload in steps:
            result = orchestrator.apply_transition(appointment.id, target, actor, payload)
            assert result.ok, result.error
            if target == status:
                break
        return result.appointment

    return _make
